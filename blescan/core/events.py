"""Inbound radio events, one type per radio-stack callback."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from blescan.core.errors import RadioError
from blescan.core.model import AdapterState, CharacteristicNode, ServiceNode


@dataclass(frozen=True)
class AdapterStateChanged:
    state: AdapterState


@dataclass(frozen=True)
class DeviceDiscovered:
    identity: str
    rssi: int
    local_name: str | None = None
    peripheral_name: str | None = None


@dataclass(frozen=True)
class ScanFailed:
    error: RadioError


@dataclass(frozen=True)
class Connected:
    identity: str


@dataclass(frozen=True)
class Disconnected:
    identity: str
    error: RadioError | None = None


@dataclass(frozen=True)
class ConnectFailed:
    identity: str
    error: RadioError | None = None


@dataclass(frozen=True)
class ServicesDiscovered:
    identity: str
    services: tuple[ServiceNode, ...] = ()
    error: RadioError | None = None


@dataclass(frozen=True)
class CharacteristicsDiscovered:
    identity: str
    service_uuid: str
    characteristics: tuple[CharacteristicNode, ...] = ()
    error: RadioError | None = None


@dataclass(frozen=True)
class ValueUpdated:
    identity: str
    characteristic_uuid: str
    value: bytes | None = None
    error: RadioError | None = None


@dataclass(frozen=True)
class NotifyStateChanged:
    identity: str
    characteristic_uuid: str
    notifying: bool
    error: RadioError | None = None


RadioEvent = Union[
    AdapterStateChanged,
    DeviceDiscovered,
    ScanFailed,
    Connected,
    Disconnected,
    ConnectFailed,
    ServicesDiscovered,
    CharacteristicsDiscovered,
    ValueUpdated,
    NotifyStateChanged,
]
