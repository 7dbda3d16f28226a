"""BLE radio implementation on top of bleak."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Sequence
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from blescan.core.errors import (
    CharacteristicDiscoveryError,
    ConnectError,
    DisconnectError,
    DiscoveryError,
    NotifyError,
    ReadError,
    ServiceDiscoveryError,
)
from blescan.core.events import (
    AdapterStateChanged,
    CharacteristicsDiscovered,
    ConnectFailed,
    Connected,
    DeviceDiscovered,
    Disconnected,
    NotifyStateChanged,
    RadioEvent,
    ScanFailed,
    ServicesDiscovered,
    ValueUpdated,
)
from blescan.core.model import AdapterState, CharacteristicNode, CharacteristicProperties, ServiceNode
from blescan.radio.base import EventSink

LOGGER = logging.getLogger(__name__)

_RADIO_FAILURES = (BleakError, asyncio.TimeoutError, OSError)


def adapter_state_for_error(exc: BaseException) -> AdapterState:
    """Best-effort mapping of a failed adapter probe onto an adapter state."""
    if isinstance(exc, PermissionError):
        return AdapterState.UNAUTHORIZED
    message = str(exc).lower()
    if "not authorized" in message or "denied" in message:
        return AdapterState.UNAUTHORIZED
    if "no bluetooth adapters" in message or "not found" in message or "not supported" in message:
        return AdapterState.UNSUPPORTED
    if isinstance(exc, BleakError):
        return AdapterState.POWERED_OFF
    return AdapterState.UNSUPPORTED


class BleakRadio:
    def __init__(
        self,
        *,
        adapter: str | None = None,
        connect_timeout_s: float = 10.0,
    ) -> None:
        self._backend_kwargs: dict[str, Any] = {"adapter": adapter} if adapter else {}
        self._connect_timeout_s = connect_timeout_s
        self._sink: EventSink | None = None
        self._scanner: BleakScanner | None = None
        self._scan_wanted = False
        self._allow_duplicates = False
        self._seen: dict[str, tuple[str | None, int]] = {}
        self._ble_devices: dict[str, BLEDevice] = {}
        self._clients: dict[str, BleakClient] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def attach(self, sink: EventSink) -> None:
        self._sink = sink

    def open(self) -> None:
        self._spawn(self._probe_adapter())

    def start_discovery(
        self,
        service_uuids: Sequence[str] | None,
        *,
        allow_duplicates: bool = False,
    ) -> None:
        self._scan_wanted = True
        self._allow_duplicates = allow_duplicates
        self._seen.clear()
        self._spawn(self._start_scan(list(service_uuids) if service_uuids else None))

    def stop_discovery(self) -> None:
        self._scan_wanted = False
        self._spawn(self._stop_scan())

    def connect(self, identity: str) -> None:
        self._spawn(self._connect(identity))

    def disconnect(self, identity: str) -> None:
        self._spawn(self._disconnect(identity))

    def discover_services(self, identity: str) -> None:
        self._spawn(self._discover_services(identity))

    def discover_characteristics(self, identity: str, service_uuid: str) -> None:
        self._spawn(self._discover_characteristics(identity, service_uuid))

    def read(self, identity: str, characteristic_uuid: str) -> None:
        self._spawn(self._read(identity, characteristic_uuid))

    def set_notify(self, identity: str, characteristic_uuid: str, enabled: bool) -> None:
        self._spawn(self._set_notify(identity, characteristic_uuid, enabled))

    async def aclose(self) -> None:
        self._scan_wanted = False
        while self._tasks:
            results = await asyncio.gather(*list(self._tasks), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    LOGGER.warning("Radio task failed: %r", result)
        await self._stop_scan()
        for identity in list(self._clients):
            await self._disconnect(identity)

    # Scheduling

    def _emit(self, event: RadioEvent) -> None:
        if self._sink is None:
            LOGGER.debug("No sink attached; dropping %r", event)
            return
        self._sink(event)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # Adapter and scanning

    async def _probe_adapter(self) -> None:
        scanner = BleakScanner(**self._backend_kwargs)
        try:
            await scanner.start()
            await scanner.stop()
        except _RADIO_FAILURES as exc:
            LOGGER.debug("Adapter probe failed: %s", exc)
            self._emit(AdapterStateChanged(adapter_state_for_error(exc)))
            return
        self._emit(AdapterStateChanged(AdapterState.POWERED_ON))

    async def _start_scan(self, service_uuids: list[str] | None) -> None:
        await self._stop_scan()
        scanner = BleakScanner(
            detection_callback=self._on_detection,
            service_uuids=service_uuids,
            **self._backend_kwargs,
        )
        try:
            await scanner.start()
        except _RADIO_FAILURES as exc:
            self._emit(ScanFailed(DiscoveryError(f"Could not start BLE scan: {exc}")))
            return
        self._scanner = scanner
        if not self._scan_wanted:
            await self._stop_scan()

    async def _stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except _RADIO_FAILURES as exc:
            LOGGER.warning("Stopping BLE scan failed: %s", exc)

    def _on_detection(self, device: BLEDevice, advertisement: AdvertisementData) -> None:
        self._ble_devices[device.address] = device
        key = (advertisement.local_name, advertisement.rssi)
        if not self._allow_duplicates and self._seen.get(device.address) == key:
            return
        self._seen[device.address] = key
        self._emit(
            DeviceDiscovered(
                identity=device.address,
                rssi=advertisement.rssi,
                local_name=advertisement.local_name,
                peripheral_name=device.name,
            )
        )

    # Connections

    async def _connect(self, identity: str) -> None:
        target = self._ble_devices.get(identity, identity)
        client = BleakClient(
            target,
            disconnected_callback=self._on_disconnected,
            timeout=self._connect_timeout_s,
            **self._backend_kwargs,
        )
        self._clients[identity] = client
        try:
            await client.connect()
        except _RADIO_FAILURES as exc:
            if self._clients.get(identity) is not client:
                LOGGER.debug("Abandoned connect to %s failed: %s", identity, exc)
                return
            del self._clients[identity]
            self._emit(ConnectFailed(identity, ConnectError(f"BLE connect failed for {identity}: {exc}")))
            return
        if self._clients.get(identity) is not client:
            LOGGER.debug("Disconnect arrived while connecting to %s; dropping link", identity)
            try:
                await client.disconnect()
            except _RADIO_FAILURES as exc:
                LOGGER.warning("Dropping abandoned link to %s failed: %s", identity, exc)
            return
        self._emit(Connected(identity))

    async def _disconnect(self, identity: str) -> None:
        client = self._clients.pop(identity, None)
        if client is None:
            return
        try:
            await client.disconnect()
        except _RADIO_FAILURES as exc:
            self._emit(Disconnected(identity, DisconnectError(f"BLE disconnect failed for {identity}: {exc}")))

    def _on_disconnected(self, client: BleakClient) -> None:
        tracked = self._clients.get(client.address)
        if tracked is not None and tracked is not client:
            return
        self._clients.pop(client.address, None)
        self._emit(Disconnected(client.address))

    def _client(self, identity: str) -> BleakClient | None:
        client = self._clients.get(identity)
        if client is None or not client.is_connected:
            return None
        return client

    # GATT

    async def _discover_services(self, identity: str) -> None:
        client = self._client(identity)
        if client is None:
            self._emit(ServicesDiscovered(identity, error=ServiceDiscoveryError(f"{identity} is not connected")))
            return
        try:
            services = tuple(
                ServiceNode(uuid=service.uuid, description=service.description)
                for service in client.services
            )
        except BleakError as exc:
            self._emit(ServicesDiscovered(identity, error=ServiceDiscoveryError(str(exc))))
            return
        self._emit(ServicesDiscovered(identity, services))

    async def _discover_characteristics(self, identity: str, service_uuid: str) -> None:
        client = self._client(identity)
        if client is None:
            self._emit(
                CharacteristicsDiscovered(
                    identity,
                    service_uuid,
                    error=CharacteristicDiscoveryError(f"{identity} is not connected"),
                )
            )
            return
        try:
            service = client.services.get_service(service_uuid)
        except BleakError as exc:
            self._emit(
                CharacteristicsDiscovered(identity, service_uuid, error=CharacteristicDiscoveryError(str(exc)))
            )
            return
        if service is None:
            self._emit(
                CharacteristicsDiscovered(
                    identity,
                    service_uuid,
                    error=CharacteristicDiscoveryError(f"Service {service_uuid} not found on {identity}"),
                )
            )
            return
        nodes = tuple(
            CharacteristicNode(
                uuid=char.uuid,
                properties=CharacteristicProperties.from_names(char.properties),
                description=char.description,
            )
            for char in service.characteristics
        )
        self._emit(CharacteristicsDiscovered(identity, service_uuid, nodes))

    async def _read(self, identity: str, characteristic_uuid: str) -> None:
        client = self._client(identity)
        if client is None:
            self._emit(ValueUpdated(identity, characteristic_uuid, error=ReadError(f"{identity} is not connected")))
            return
        try:
            data = await client.read_gatt_char(characteristic_uuid)
        except _RADIO_FAILURES as exc:
            self._emit(
                ValueUpdated(
                    identity,
                    characteristic_uuid,
                    error=ReadError(f"Read of {characteristic_uuid} failed: {exc}"),
                )
            )
            return
        self._emit(ValueUpdated(identity, characteristic_uuid, bytes(data)))

    async def _set_notify(self, identity: str, characteristic_uuid: str, enabled: bool) -> None:
        client = self._client(identity)
        if client is None:
            self._emit(
                NotifyStateChanged(
                    identity,
                    characteristic_uuid,
                    not enabled,
                    NotifyError(f"{identity} is not connected"),
                )
            )
            return

        def _notify_handler(_: BleakGATTCharacteristic, data: bytearray) -> None:
            self._emit(ValueUpdated(identity, characteristic_uuid, bytes(data)))

        try:
            if enabled:
                await client.start_notify(characteristic_uuid, _notify_handler)
            else:
                await client.stop_notify(characteristic_uuid)
        except _RADIO_FAILURES as exc:
            self._emit(
                NotifyStateChanged(
                    identity,
                    characteristic_uuid,
                    not enabled,
                    NotifyError(f"Notify toggle on {characteristic_uuid} failed: {exc}"),
                )
            )
            return
        self._emit(NotifyStateChanged(identity, characteristic_uuid, enabled))
