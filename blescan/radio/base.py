"""Radio interfaces."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from blescan.core.events import RadioEvent

EventSink = Callable[[RadioEvent], None]


class Radio(Protocol):
    """Capability interface over a BLE stack.

    Every request is fire-and-forget; outcomes arrive later as events passed
    to the attached sink.
    """

    def attach(self, sink: EventSink) -> None:
        """Route all future events to ``sink``."""

    def open(self) -> None:
        """Probe the adapter and report an ``AdapterStateChanged`` event."""

    def start_discovery(
        self,
        service_uuids: Sequence[str] | None,
        *,
        allow_duplicates: bool = False,
    ) -> None: ...

    def stop_discovery(self) -> None: ...

    def connect(self, identity: str) -> None: ...

    def disconnect(self, identity: str) -> None: ...

    def discover_services(self, identity: str) -> None: ...

    def discover_characteristics(self, identity: str, service_uuid: str) -> None: ...

    def read(self, identity: str, characteristic_uuid: str) -> None: ...

    def set_notify(self, identity: str, characteristic_uuid: str, enabled: bool) -> None: ...

    async def aclose(self) -> None:
        """Stop scanning, drop connections, and wait for in-flight requests."""
