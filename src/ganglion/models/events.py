"""Events published by a Ganglion session.

Every emission is one of the frozen dataclasses below; ``SessionEvent`` is
the closed union of them and ``EventType`` tags each variant so consumers
can dispatch either with ``match`` on the class or on ``event.type``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Union

if TYPE_CHECKING:
    from .peripheral import PeripheralRecord
    from .sample import AccelVector, Sample


class EventType(Enum):
    GANGLION_FOUND = "ganglion_found"
    READY = "ready"
    SAMPLE = "sample"
    ACCELEROMETER = "accelerometer"
    IMPEDANCE = "impedance"
    MESSAGE = "message"
    DROPPED_PACKET = "dropped_packet"
    CLOSE = "close"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class GanglionFound:
    peripheral: PeripheralRecord
    type: ClassVar[EventType] = EventType.GANGLION_FOUND


@dataclass(frozen=True, slots=True)
class Ready:
    peripheral: PeripheralRecord
    type: ClassVar[EventType] = EventType.READY


@dataclass(frozen=True, slots=True)
class SampleReceived:
    sample: Sample
    type: ClassVar[EventType] = EventType.SAMPLE


@dataclass(frozen=True, slots=True)
class AccelerometerReading:
    vector: AccelVector
    type: ClassVar[EventType] = EventType.ACCELEROMETER


@dataclass(frozen=True, slots=True)
class ImpedanceReading:
    """Impedance in ohms for channel 1-4, or 0 for the reference electrode."""

    channel_number: int
    impedance_value: int
    type: ClassVar[EventType] = EventType.IMPEDANCE


@dataclass(frozen=True, slots=True)
class MessageReceived:
    """Out-of-band payload.

    ``kind`` is "multi_packet" for reassembled 206/207 messages and "other"
    for opaque 255 frames.
    """

    data: bytes
    kind: str = "multi_packet"
    type: ClassVar[EventType] = EventType.MESSAGE


@dataclass(frozen=True, slots=True)
class DroppedPacket:
    """A gap in the board's byteId sequence."""

    count: int
    missing_byte_ids: tuple[int, ...] = ()
    type: ClassVar[EventType] = EventType.DROPPED_PACKET


@dataclass(frozen=True, slots=True)
class Closed:
    """Link is gone. ``manual`` is False for transport-initiated disconnects."""

    manual: bool
    reason: str | None = None
    type: ClassVar[EventType] = EventType.CLOSE


@dataclass(frozen=True, slots=True)
class ErrorOccurred:
    error: Exception
    type: ClassVar[EventType] = EventType.ERROR


SessionEvent = Union[
    GanglionFound,
    Ready,
    SampleReceived,
    AccelerometerReading,
    ImpedanceReading,
    MessageReceived,
    DroppedPacket,
    Closed,
    ErrorOccurred,
]
