from __future__ import annotations

from enum import Enum, IntEnum
from typing import Final


class ConnectionState(Enum):
    """Lifecycle of a driver session."""
    IDLE = "idle"
    SCANNING = "scanning"
    FOUND = "found"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STREAMING = "streaming"
    DISCONNECTING = "disconnecting"
    CLOSED = "closed"


class TransportKind(Enum):
    """Link used to reach the board."""
    BLE = "ble"
    BLED112 = "bled112"


class PacketType(Enum):
    """Handler category selected by a frame's leading byteId."""
    UNCOMPRESSED = "uncompressed"
    COMPRESSED_18BIT = "compressed_18bit"
    COMPRESSED_19BIT = "compressed_19bit"
    IMPEDANCE = "impedance"
    MULTI_PACKET = "multi_packet"
    MULTI_PACKET_STOP = "multi_packet_stop"
    OTHER = "other"
    INVALID = "invalid"


class AccelAxis(IntEnum):
    """Accelerometer axis carried by an 18-bit packet."""
    X = 1
    Y = 2
    Z = 3


class AccelEmitPolicy(Enum):
    """When the accelerometer extractor publishes its vector.

    EVERY_UPDATE emits after every Nth axis update (N = accel_emit_interval).
    FULL_ROTATION emits once X, Y and Z have all been refreshed.
    """
    EVERY_UPDATE = "every_update"
    FULL_ROTATION = "full_rotation"


class ImpedanceQuality(Enum):
    """Coarse electrode contact rating."""
    GOOD = "good"
    OK = "ok"
    BAD = "bad"
    NONE = "none"


# Inclusive ohm ranges
_IMPEDANCE_RANGES: Final[tuple[tuple[ImpedanceQuality, int, int], ...]] = (
    (ImpedanceQuality.GOOD, 0, 5000),
    (ImpedanceQuality.OK, 5001, 10000),
    (ImpedanceQuality.BAD, 10001, 1000000),
)


def impedance_quality(value: int) -> ImpedanceQuality:
    """Rate a raw impedance reading in ohms."""
    for quality, low, high in _IMPEDANCE_RANGES:
        if low <= value <= high:
            return quality
    return ImpedanceQuality.NONE
