"""Data models for Ganglion sessions."""

from .enums import (
    AccelAxis,
    AccelEmitPolicy,
    ConnectionState,
    ImpedanceQuality,
    PacketType,
    TransportKind,
    impedance_quality,
)
from .events import (
    AccelerometerReading,
    Closed,
    DroppedPacket,
    ErrorOccurred,
    EventType,
    GanglionFound,
    ImpedanceReading,
    MessageReceived,
    Ready,
    SampleReceived,
    SessionEvent,
)
from .options import GanglionOptions
from .peripheral import GANGLION_NAME_PREFIX, PeripheralRecord, format_address, parse_address
from .sample import AccelVector, Sample

__all__ = [
    "AccelAxis",
    "AccelEmitPolicy",
    "AccelVector",
    "AccelerometerReading",
    "Closed",
    "ConnectionState",
    "DroppedPacket",
    "ErrorOccurred",
    "EventType",
    "GANGLION_NAME_PREFIX",
    "GanglionFound",
    "GanglionOptions",
    "ImpedanceQuality",
    "ImpedanceReading",
    "MessageReceived",
    "PacketType",
    "PeripheralRecord",
    "Ready",
    "Sample",
    "SampleReceived",
    "SessionEvent",
    "TransportKind",
    "format_address",
    "impedance_quality",
    "parse_address",
]
