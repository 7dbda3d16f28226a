"""Device-hint matching logic."""

from __future__ import annotations

from blescan.core.model import DiscoveredDevice


def match_score(device: DiscoveredDevice, hint: str) -> int:
    lowered = hint.strip().lower()
    if not lowered:
        return 0
    identity = device.identity.lower()
    if identity == lowered:
        return 3
    if lowered in identity:
        return 2
    if lowered in device.name.lower():
        return 1
    return 0


def best_devices_for_hint(devices: list[DiscoveredDevice], hint: str) -> list[DiscoveredDevice]:
    """Return the devices sharing the highest non-zero score for ``hint``."""
    best: list[DiscoveredDevice] = []
    best_score = 0
    for device in devices:
        score = match_score(device, hint)
        if score > best_score:
            best = [device]
            best_score = score
        elif score and score == best_score:
            best.append(device)
    return best
