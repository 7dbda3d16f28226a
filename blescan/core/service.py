"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence

from blescan.core.config_loader import ScanConfig, load_config, normalize_uuids
from blescan.core.device_match import best_devices_for_hint
from blescan.core.errors import (
    AdapterUnavailableError,
    ConnectError,
    DeviceSelectionError,
    DiscoveryError,
    NotifyError,
    RadioTimeoutError,
)
from blescan.core.manager import DeviceManager
from blescan.core.model import AdapterState, DiscoveredDevice, ExploreResult, ManagerSnapshot
from blescan.radio.base import Radio
from blescan.radio.bleak_radio import BleakRadio

POLL_INTERVAL_S = 0.05

LogCallback = Callable[[str], None]
ValueCallback = Callable[[str, "str | None"], None]


class ScanService:
    def __init__(
        self,
        *,
        radio: Radio | None = None,
        config: ScanConfig | None = None,
    ) -> None:
        if config is None:
            loaded = load_config()
            self.config = loaded.config
            self.config_sources = loaded.sources
            self.load_warnings = loaded.warnings
        else:
            self.config = config
            self.config_sources = ()
            self.load_warnings = ()
        self.radio = radio or BleakRadio(
            adapter=self.config.adapter,
            connect_timeout_s=self.config.connect_timeout_s,
        )

    def list_devices(
        self,
        *,
        timeout_s: float | None = None,
        service_uuids: Sequence[str] | None = None,
        on_log: LogCallback | None = None,
    ) -> list[DiscoveredDevice]:
        return asyncio.run(
            self._list_devices(
                timeout_s=timeout_s,
                service_uuids=service_uuids,
                on_log=on_log,
            )
        )

    def resolve_target(
        self,
        device_hint: str,
        *,
        timeout_s: float | None = None,
        service_uuids: Sequence[str] | None = None,
    ) -> DiscoveredDevice:
        devices = self.list_devices(timeout_s=timeout_s, service_uuids=service_uuids)
        return select_device(devices, device_hint)

    def explore(
        self,
        device_hint: str,
        *,
        scan_timeout_s: float | None = None,
        service_uuids: Sequence[str] | None = None,
        notify_uuids: Sequence[str] = (),
        listen_s: float = 0.0,
        on_log: LogCallback | None = None,
        on_value: ValueCallback | None = None,
    ) -> ExploreResult:
        return asyncio.run(
            self._explore(
                device_hint,
                scan_timeout_s=scan_timeout_s,
                service_uuids=service_uuids,
                notify_uuids=normalize_uuids(tuple(notify_uuids)),
                listen_s=listen_s,
                on_log=on_log,
                on_value=on_value,
            )
        )

    async def _list_devices(
        self,
        *,
        timeout_s: float | None,
        service_uuids: Sequence[str] | None,
        on_log: LogCallback | None,
    ) -> list[DiscoveredDevice]:
        manager = DeviceManager(self.radio)
        if on_log is not None:
            manager.subscribe(_forward_new_logs(on_log))
        try:
            await self._power_on(manager)
            return list(await self._scan(manager, timeout_s, service_uuids))
        finally:
            await self.radio.aclose()

    async def _explore(
        self,
        device_hint: str,
        *,
        scan_timeout_s: float | None,
        service_uuids: Sequence[str] | None,
        notify_uuids: tuple[str, ...],
        listen_s: float,
        on_log: LogCallback | None,
        on_value: ValueCallback | None,
    ) -> ExploreResult:
        manager = DeviceManager(self.radio)
        if on_log is not None:
            manager.subscribe(_forward_new_logs(on_log))
        if on_value is not None and notify_uuids:
            manager.subscribe(_forward_preview_changes(notify_uuids, on_value))

        try:
            await self._power_on(manager)
            devices = await self._scan(manager, scan_timeout_s, service_uuids)
            device = select_device(list(devices), device_hint)

            manager.connect(device)
            await _wait_for(
                lambda: manager.is_connected or manager.connection is None,
                self.config.connect_timeout_s,
            )
            if manager.connection is None:
                raise ConnectError(_last_log(manager, f"Could not connect to {device.identity}"))
            if not manager.is_connected:
                raise RadioTimeoutError(
                    f"Timed out after {self.config.connect_timeout_s}s connecting to {device.identity}"
                )

            await _wait_for(lambda: _tree_complete(manager), self.config.connect_timeout_s)
            await asyncio.sleep(self.config.settle_s)
            if not manager.is_connected:
                raise ConnectError(_last_log(manager, f"Lost connection to {device.identity}"))

            if notify_uuids:
                for uuid in notify_uuids:
                    node = manager.snapshot().characteristic(uuid)
                    if node is None:
                        raise NotifyError(f"Characteristic {uuid} not found on {device.identity}")
                    if not (node.properties.notify or node.properties.indicate):
                        raise NotifyError(f"Characteristic {uuid} does not support notifications")
                    manager.toggle_notification(node)
                await asyncio.sleep(listen_s)

            snapshot = manager.snapshot()
            manager.disconnect()
            return ExploreResult(
                device=device,
                services=snapshot.services,
                characteristics=snapshot.characteristics,
                logs=manager.logs,
            )
        finally:
            if manager.connection is not None:
                manager.disconnect()
            await self.radio.aclose()

    async def _power_on(self, manager: DeviceManager) -> None:
        self.radio.open()
        await _wait_for(
            lambda: manager.adapter_state is not AdapterState.UNKNOWN,
            self.config.connect_timeout_s,
        )
        if manager.adapter_state is not AdapterState.POWERED_ON:
            raise AdapterUnavailableError(
                f"Bluetooth adapter is not powered on (state: {manager.adapter_state.value})"
            )

    async def _scan(
        self,
        manager: DeviceManager,
        timeout_s: float | None,
        service_uuids: Sequence[str] | None,
    ) -> tuple[DiscoveredDevice, ...]:
        uuids = normalize_uuids(tuple(service_uuids)) if service_uuids else self.config.service_uuids
        manager.start_scan(uuids or None)
        if not manager.scanning:
            raise DiscoveryError(_last_log(manager, "Scan could not be started"))

        timeout = self.config.scan_timeout_s if timeout_s is None else timeout_s
        ended_early = await _wait_for(lambda: not manager.scanning, timeout)
        if ended_early:
            raise DiscoveryError(_last_log(manager, "Scan stopped unexpectedly"))
        manager.stop_scan()
        return manager.devices


def select_device(devices: list[DiscoveredDevice], device_hint: str) -> DiscoveredDevice:
    if not devices:
        raise DeviceSelectionError("No BLE devices found. Ensure the peripheral is advertising and in range.")

    candidates = best_devices_for_hint(devices, device_hint)
    if not candidates:
        raise DeviceSelectionError(f"No device found matching '{device_hint}'")

    if len(candidates) > 1:
        candidate_desc = ", ".join(f"{d.identity} ({d.name})" for d in candidates)
        raise DeviceSelectionError(
            f"Multiple candidate devices found: {candidate_desc}. Use the full address to choose one."
        )

    return candidates[0]


async def _wait_for(predicate: Callable[[], bool], timeout_s: float) -> bool:
    deadline = time.monotonic() + timeout_s
    while not predicate():
        if time.monotonic() >= deadline:
            return False
        await asyncio.sleep(POLL_INTERVAL_S)
    return True


def _tree_complete(manager: DeviceManager) -> bool:
    if not manager.is_connected or not manager.services:
        return False
    characteristics = manager.characteristics
    return all(service.uuid in characteristics for service in manager.services)


def _last_log(manager: DeviceManager, fallback: str) -> str:
    logs = manager.logs
    return logs[-1] if logs else fallback


def _forward_new_logs(callback: LogCallback) -> Callable[[ManagerSnapshot], None]:
    seen = 0

    def _observer(snapshot: ManagerSnapshot) -> None:
        nonlocal seen
        for line in snapshot.logs[seen:]:
            callback(line)
        seen = len(snapshot.logs)

    return _observer


def _forward_preview_changes(
    uuids: tuple[str, ...],
    callback: ValueCallback,
) -> Callable[[ManagerSnapshot], None]:
    last: dict[str, str | None] = {}

    def _observer(snapshot: ManagerSnapshot) -> None:
        for uuid in uuids:
            node = snapshot.characteristic(uuid)
            if node is None or node.preview is None:
                continue
            if last.get(uuid) != node.preview:
                last[uuid] = node.preview
                callback(uuid, node.preview)

    return _observer
