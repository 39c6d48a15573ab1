"""OpenBCI Ganglion driver.

  Pure Python package for streaming from OpenBCI Ganglion boards over native
  BLE or a BLED112 serial bridge.
  """

from .device import GanglionDevice
from .discovery import discover_devices
from .exceptions import (
    AlreadyConnectedError,
    AlreadyScanningError,
    BLEConnectionError,
    BLETimeoutError,
    GanglionError,
    InvalidResponseError,
    InvalidStateError,
    NotConnectedError,
    PeripheralNotFoundError,
    ProtocolError,
    SearchTimeoutError,
    SerialPortError,
    StateError,
    TransportError,
)
from .models.enums import (
    AccelEmitPolicy,
    ConnectionState,
    ImpedanceQuality,
    PacketType,
    TransportKind,
    impedance_quality,
)
from .models.events import (
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
from .models.options import GanglionOptions
from .models.peripheral import PeripheralRecord
from .models.sample import AccelVector, Sample
from .protocol import BoardCommand, decode18, decode19
from .transport import BLEConnection, Bled112Transport, Transport

__version__ = "0.1.0"

__all__ = [
    # Main API
    "GanglionDevice",
    "GanglionOptions",
    "discover_devices",
    # Exceptions
    "GanglionError",
    "TransportError",
    "BLEConnectionError",
    "BLETimeoutError",
    "SerialPortError",
    "ProtocolError",
    "InvalidResponseError",
    "StateError",
    "AlreadyScanningError",
    "AlreadyConnectedError",
    "NotConnectedError",
    "PeripheralNotFoundError",
    "InvalidStateError",
    "SearchTimeoutError",
    # Events
    "SessionEvent",
    "EventType",
    "GanglionFound",
    "Ready",
    "SampleReceived",
    "AccelerometerReading",
    "ImpedanceReading",
    "MessageReceived",
    "DroppedPacket",
    "Closed",
    "ErrorOccurred",
    # Models
    "Sample",
    "AccelVector",
    "PeripheralRecord",
    # Enums
    "AccelEmitPolicy",
    "ConnectionState",
    "ImpedanceQuality",
    "PacketType",
    "TransportKind",
    "BoardCommand",
    # Transports
    "Transport",
    "BLEConnection",
    "Bled112Transport",
    # Utilities
    "decode18",
    "decode19",
    "impedance_quality",
]
