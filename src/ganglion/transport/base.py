"""Transport capability interface shared by native BLE and BLED112."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from ..models.peripheral import PeripheralRecord


class LinkEventKind(Enum):
    UP = "up"
    DOWN = "down"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class DiscoveryEvent:
    """A peripheral seen while scanning."""

    peripheral: PeripheralRecord


@dataclass(frozen=True, slots=True)
class LinkEvent:
    """Unsolicited change of link state reported by a transport.

    Transports report DOWN only for disconnects they did not initiate
    themselves, and ERROR for failures outside any awaited operation (for
    example a serial port vanishing mid-stream).
    """

    kind: LinkEventKind
    reason: str | None = None
    error: Exception | None = None


class TransportListener:
    """Callbacks a transport invokes on the event loop thread."""

    def __init__(
            self,
            on_discovery: Callable[[DiscoveryEvent], None],
            on_link: Callable[[LinkEvent], None],
            on_data: Callable[[bytes], None],
    ):
        self.on_discovery = on_discovery
        self.on_link = on_link
        self.on_data = on_data


class Transport(ABC):
    """Link to a Ganglion: discovery, connection, notifications and writes.

    Implementations wrap their library errors in TransportError subclasses
    and deliver all callbacks on the asyncio event loop, one at a time.
    """

    def __init__(self) -> None:
        self._listener: TransportListener | None = None

    def set_listener(self, listener: TransportListener | None) -> None:
        self._listener = listener

    def _notify_discovery(self, peripheral: PeripheralRecord) -> None:
        if self._listener is not None:
            self._listener.on_discovery(DiscoveryEvent(peripheral))

    def _notify_link(self, event: LinkEvent) -> None:
        if self._listener is not None:
            self._listener.on_link(event)

    def _notify_data(self, data: bytes) -> None:
        if self._listener is not None:
            self._listener.on_data(data)

    async def open(self) -> None:
        """Acquire transport resources (no-op unless overridden)."""

    async def close(self) -> None:
        """Release transport resources (no-op unless overridden)."""

    @abstractmethod
    async def start_scan(self) -> None:
        """Begin reporting peripherals through the listener."""

    @abstractmethod
    async def stop_scan(self) -> None:
        """Stop an active scan."""

    @abstractmethod
    async def connect(self, peripheral: PeripheralRecord) -> None:
        """Connect and enable notifications; returns once data can flow."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Tear down the link."""

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write bytes to the board."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the link is up."""
