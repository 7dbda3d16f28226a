"""Device/connection manager: radio events in, observable state out."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace

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
from blescan.core.model import (
    AdapterState,
    CharacteristicNode,
    Connection,
    DiscoveredDevice,
    ManagerSnapshot,
    ServiceNode,
)
from blescan.core.preview import decode_preview
from blescan.radio.base import Radio

UNKNOWN_DEVICE_NAME = "Unknown"
LOGGER = logging.getLogger(__name__)

Observer = Callable[[ManagerSnapshot], None]


class DeviceManager:
    """Single-writer owner of scan, connection, and GATT tree state.

    Radio events are queued in an inbox and handled strictly in arrival
    order. Events posted while an operation or another event is being handled
    wait in the inbox until the current one finishes.
    """

    def __init__(self, radio: Radio) -> None:
        self._radio = radio
        self._inbox: deque[RadioEvent] = deque()
        self._busy = False
        self._observers: list[Observer] = []

        self._adapter_state = AdapterState.UNKNOWN
        self._scanning = False
        self._devices: dict[str, DiscoveredDevice] = {}
        self._rssi: dict[str, int] = {}
        self._connection: Connection | None = None
        self._services: list[ServiceNode] = []
        self._characteristics: dict[str, list[CharacteristicNode]] = {}
        self._logs: list[str] = []

        radio.attach(self.post)

    # Observable state

    @property
    def adapter_state(self) -> AdapterState:
        return self._adapter_state

    @property
    def scanning(self) -> bool:
        return self._scanning

    @property
    def devices(self) -> tuple[DiscoveredDevice, ...]:
        return tuple(sorted(self._devices.values(), key=lambda d: d.rssi, reverse=True))

    @property
    def connection(self) -> Connection | None:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    @property
    def services(self) -> tuple[ServiceNode, ...]:
        return tuple(self._services)

    @property
    def characteristics(self) -> dict[str, tuple[CharacteristicNode, ...]]:
        return {uuid: tuple(nodes) for uuid, nodes in self._characteristics.items()}

    @property
    def logs(self) -> tuple[str, ...]:
        return tuple(self._logs)

    def snapshot(self) -> ManagerSnapshot:
        return ManagerSnapshot(
            adapter_state=self._adapter_state,
            scanning=self._scanning,
            devices=self.devices,
            connection=self._connection,
            services=self.services,
            characteristics=self.characteristics,
            logs=self.logs,
        )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Call ``observer`` with a fresh snapshot after every state change.

        Returns a callable that removes the observer again.
        """
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    # Operations

    def start_scan(self, service_uuids: Sequence[str] | None = None) -> None:
        with self._operation():
            if self._adapter_state is not AdapterState.POWERED_ON:
                self._log(f"Bluetooth is not powered on yet ({self._adapter_state.value})")
                return
            self._devices.clear()
            self._rssi.clear()
            self._scanning = True
            self._log("Scanning started")
            self._radio.start_discovery(
                list(service_uuids) if service_uuids else None,
                allow_duplicates=False,
            )

    def stop_scan(self) -> None:
        with self._operation():
            self._scanning = False
            self._radio.stop_discovery()
            self._log("Scanning stopped")

    def connect(self, device: DiscoveredDevice) -> None:
        with self._operation():
            if self._scanning:
                self.stop_scan()
            if self._connection is not None:
                if self._connection.identity == device.identity:
                    self._log(f"Already connecting to {device.name}")
                    return
                self.disconnect()
            self._connection = Connection(identity=device.identity, name=device.name)
            self._log(f"Connecting to {device.name}")
            self._radio.connect(device.identity)

    def disconnect(self) -> None:
        with self._operation():
            if self._connection is None:
                self._log("Disconnect requested with no active connection")
                return
            self._radio.disconnect(self._connection.identity)
            self._drop_connection()
            self._log("Disconnected")

    def discover_all_services(self) -> None:
        with self._operation():
            if self.is_connected:
                self._radio.discover_services(self._connection.identity)

    def discover_characteristics(self, service: ServiceNode) -> None:
        with self._operation():
            if self.is_connected:
                self._radio.discover_characteristics(self._connection.identity, service.uuid)

    def read_value(self, characteristic: CharacteristicNode) -> None:
        with self._operation():
            if self.is_connected:
                self._radio.read(self._connection.identity, characteristic.uuid)

    def toggle_notification(self, characteristic: CharacteristicNode) -> None:
        with self._operation():
            if not self.is_connected:
                return
            current = self._find_characteristic(characteristic.uuid)
            notifying = current.notifying if current is not None else characteristic.notifying
            self._radio.set_notify(self._connection.identity, characteristic.uuid, not notifying)

    # Event inbox

    def post(self, event: RadioEvent) -> None:
        """Queue a radio event; handle it now unless something is already running."""
        self._inbox.append(event)
        if not self._busy:
            self._drain()

    @contextmanager
    def _operation(self) -> Iterator[None]:
        if self._busy:
            yield
            return
        self._busy = True
        try:
            yield
        finally:
            self._busy = False
            self._drain()

    def _drain(self) -> None:
        self._busy = True
        try:
            while self._inbox:
                self._dispatch(self._inbox.popleft())
        finally:
            self._busy = False
        self._publish()

    def _publish(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for observer in list(self._observers):
            observer(snapshot)

    def _dispatch(self, event: RadioEvent) -> None:
        if isinstance(event, AdapterStateChanged):
            self._on_adapter_state(event)
        elif isinstance(event, DeviceDiscovered):
            self._on_device_discovered(event)
        elif isinstance(event, ScanFailed):
            self._scanning = False
            self._log(f"Scan failed: {event.error}")
        elif isinstance(event, Connected):
            self._on_connected(event)
        elif isinstance(event, Disconnected):
            self._log(f"Disconnected: {event.identity} {_describe(event.error)}".rstrip())
            self._release(event.identity)
        elif isinstance(event, ConnectFailed):
            self._log(f"Failed to connect to {event.identity} {_describe(event.error)}".rstrip())
            self._release(event.identity)
        elif isinstance(event, ServicesDiscovered):
            self._on_services(event)
        elif isinstance(event, CharacteristicsDiscovered):
            self._on_characteristics(event)
        elif isinstance(event, ValueUpdated):
            self._on_value(event)
        elif isinstance(event, NotifyStateChanged):
            self._on_notify_state(event)
        else:
            LOGGER.warning("Ignoring unsupported radio event %r", event)

    # Event handlers

    def _on_adapter_state(self, event: AdapterStateChanged) -> None:
        self._adapter_state = event.state
        self._log(f"State: {event.state.value}")
        if event.state is not AdapterState.POWERED_ON:
            self._scanning = False

    def _on_device_discovered(self, event: DeviceDiscovered) -> None:
        if not self._scanning:
            LOGGER.debug("Dropping advertisement from %s received after scan stop", event.identity)
            return
        name = event.local_name or event.peripheral_name or UNKNOWN_DEVICE_NAME
        self._rssi[event.identity] = event.rssi
        self._devices[event.identity] = DiscoveredDevice(
            identity=event.identity,
            name=name,
            rssi=event.rssi,
        )

    def _on_connected(self, event: Connected) -> None:
        if self._connection is None or self._connection.identity != event.identity:
            self._log(f"Ignoring connection to {event.identity}; not requested")
            self._radio.disconnect(event.identity)
            return
        self._connection = replace(self._connection, connected=True)
        self._log(f"Connected to {event.identity}")
        self._services.clear()
        self._characteristics.clear()
        self._radio.discover_services(event.identity)

    def _on_services(self, event: ServicesDiscovered) -> None:
        if not self._is_active(event.identity):
            return
        if event.error is not None:
            self._log(f"discoverServices error: {event.error}")
            return
        self._services = list(event.services)
        self._log(f"Found {len(self._services)} services")
        for service in self._services:
            self._radio.discover_characteristics(event.identity, service.uuid)

    def _on_characteristics(self, event: CharacteristicsDiscovered) -> None:
        if not self._is_active(event.identity):
            return
        if event.error is not None:
            self._log(f"discoverCharacteristics error: {event.error}")
            return
        nodes = list(event.characteristics)
        self._characteristics[event.service_uuid] = nodes
        self._log(f"service {event.service_uuid} -> characteristics: {len(nodes)}")
        for node in nodes:
            if node.properties.read:
                self._radio.read(event.identity, node.uuid)

    def _on_value(self, event: ValueUpdated) -> None:
        if not self._is_active(event.identity):
            return
        if event.error is not None:
            self._log(f"updateValue error: {event.error}")
            return
        for nodes in self._characteristics.values():
            for index, node in enumerate(nodes):
                if node.uuid == event.characteristic_uuid:
                    preview = decode_preview(event.value or b"", node.properties)
                    nodes[index] = replace(node, preview=preview)
                    return

    def _on_notify_state(self, event: NotifyStateChanged) -> None:
        if not self._is_active(event.identity):
            return
        if event.error is not None:
            self._log(f"notifyState error: {event.error}")
            return
        self._log(f"Notify {event.characteristic_uuid}: {event.notifying}")
        for nodes in self._characteristics.values():
            for index, node in enumerate(nodes):
                if node.uuid == event.characteristic_uuid:
                    nodes[index] = replace(node, notifying=event.notifying)
                    return

    # Helpers

    def _is_active(self, identity: str) -> bool:
        if self.is_connected and self._connection.identity == identity:
            return True
        LOGGER.debug("Dropping late radio result for %s", identity)
        return False

    def _release(self, identity: str) -> None:
        if self._connection is not None and self._connection.identity == identity:
            self._drop_connection()

    def _drop_connection(self) -> None:
        self._connection = None
        self._services.clear()
        self._characteristics.clear()

    def _find_characteristic(self, uuid: str) -> CharacteristicNode | None:
        for nodes in self._characteristics.values():
            for node in nodes:
                if node.uuid == uuid:
                    return node
        return None

    def _log(self, message: str) -> None:
        self._logs.append(message)
        LOGGER.info(message)


def _describe(error: Exception | None) -> str:
    return str(error) if error is not None else ""
