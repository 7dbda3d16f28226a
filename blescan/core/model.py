"""Core data models used across the manager, radio, service, and CLI."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum


class AdapterState(str, Enum):
    UNKNOWN = "unknown"
    RESETTING = "resetting"
    UNSUPPORTED = "unsupported"
    UNAUTHORIZED = "unauthorized"
    POWERED_OFF = "poweredOff"
    POWERED_ON = "poweredOn"


@dataclass(frozen=True)
class DiscoveredDevice:
    identity: str
    name: str
    rssi: int


@dataclass(frozen=True)
class Connection:
    identity: str
    name: str
    connected: bool = False


@dataclass(frozen=True)
class CharacteristicProperties:
    read: bool = False
    write: bool = False
    write_without_response: bool = False
    notify: bool = False
    indicate: bool = False

    @classmethod
    def from_names(cls, names: Iterable[str]) -> CharacteristicProperties:
        """Build flags from bleak-style property names (``"write-without-response"``)."""
        normalized = {name.strip().lower().replace("_", "-") for name in names}
        return cls(
            read="read" in normalized,
            write="write" in normalized,
            write_without_response="write-without-response" in normalized,
            notify="notify" in normalized,
            indicate="indicate" in normalized,
        )

    def describe(self) -> str:
        parts: list[str] = []
        if self.read:
            parts.append("read")
        if self.write:
            parts.append("write")
        if self.write_without_response:
            parts.append("writeNR")
        if self.notify:
            parts.append("notify")
        if self.indicate:
            parts.append("indicate")
        return " | ".join(parts)


@dataclass(frozen=True)
class ServiceNode:
    uuid: str
    description: str = ""


@dataclass(frozen=True)
class CharacteristicNode:
    uuid: str
    properties: CharacteristicProperties
    description: str = ""
    notifying: bool = False
    preview: str | None = None


@dataclass(frozen=True)
class ManagerSnapshot:
    """Point-in-time copy of everything the manager exposes to a frontend."""

    adapter_state: AdapterState
    scanning: bool
    devices: tuple[DiscoveredDevice, ...]
    connection: Connection | None
    services: tuple[ServiceNode, ...]
    characteristics: dict[str, tuple[CharacteristicNode, ...]] = field(default_factory=dict)
    logs: tuple[str, ...] = ()

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and self.connection.connected

    def characteristic(self, uuid: str) -> CharacteristicNode | None:
        for nodes in self.characteristics.values():
            for node in nodes:
                if node.uuid == uuid:
                    return node
        return None


@dataclass(frozen=True)
class ExploreResult:
    device: DiscoveredDevice
    services: tuple[ServiceNode, ...]
    characteristics: dict[str, tuple[CharacteristicNode, ...]]
    logs: tuple[str, ...]
