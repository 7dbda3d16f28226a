"""Stable public API for building tooling on top of blescan.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from blescan.core.config_loader import ScanConfig
from blescan.core.errors import (
    AdapterUnavailableError,
    BlescanError,
    CharacteristicDiscoveryError,
    ConfigLoadError,
    ConfigValidationError,
    ConnectError,
    DeviceSelectionError,
    DisconnectError,
    DiscoveryError,
    NotifyError,
    RadioError,
    RadioTimeoutError,
    ReadError,
    ServiceDiscoveryError,
)
from blescan.core.manager import DeviceManager
from blescan.core.model import (
    AdapterState,
    CharacteristicNode,
    CharacteristicProperties,
    Connection,
    DiscoveredDevice,
    ExploreResult,
    ManagerSnapshot,
    ServiceNode,
)
from blescan.core.service import ScanService
from blescan.radio.base import Radio
from blescan.radio.bleak_radio import BleakRadio

__all__ = [
    "BlescanError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceSelectionError",
    "RadioError",
    "AdapterUnavailableError",
    "DiscoveryError",
    "ConnectError",
    "DisconnectError",
    "ServiceDiscoveryError",
    "CharacteristicDiscoveryError",
    "ReadError",
    "NotifyError",
    "RadioTimeoutError",
    "AdapterState",
    "CharacteristicNode",
    "CharacteristicProperties",
    "Connection",
    "DiscoveredDevice",
    "ExploreResult",
    "ManagerSnapshot",
    "ServiceNode",
    "ScanConfig",
    "DeviceManager",
    "Radio",
    "BleakRadio",
    "Client",
]


class Client:
    """Public client for interacting with blescan core capabilities.

    A `Client` instance wraps configuration loading, scanning, device hint
    resolution, and GATT exploration behind a stable API intended for
    third-party tools (GUI/TUI/services/scripts). Frontends that need live
    state should drive a `DeviceManager` directly and subscribe to it.
    """

    def __init__(
        self,
        *,
        radio: Radio | None = None,
        config: ScanConfig | None = None,
    ) -> None:
        self._service = ScanService(radio=radio, config=config)

    @property
    def config(self) -> ScanConfig:
        return self._service.config

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def scan(
        self,
        *,
        timeout_s: float | None = None,
        service_uuids: Sequence[str] | None = None,
    ) -> list[DiscoveredDevice]:
        return self._service.list_devices(timeout_s=timeout_s, service_uuids=service_uuids)

    def resolve_target(
        self,
        device_hint: str,
        *,
        timeout_s: float | None = None,
    ) -> DiscoveredDevice:
        return self._service.resolve_target(device_hint, timeout_s=timeout_s)

    def explore(
        self,
        device_hint: str,
        *,
        scan_timeout_s: float | None = None,
        notify_uuids: Sequence[str] = (),
        listen_s: float = 0.0,
        on_value: Callable[[str, str | None], None] | None = None,
    ) -> ExploreResult:
        return self._service.explore(
            device_hint,
            scan_timeout_s=scan_timeout_s,
            notify_uuids=notify_uuids,
            listen_s=listen_s,
            on_value=on_value,
        )
