"""Exception hierarchy for the Ganglion driver."""

from __future__ import annotations


class GanglionError(Exception):
    """Base exception for all Ganglion driver errors."""


class TransportError(GanglionError):
    """Link, write or serial failure in the underlying transport."""


class BLEConnectionError(TransportError):
    """Native BLE connection or GATT operation failed."""


class BLETimeoutError(TransportError):
    """BLE operation did not complete in time."""


class SerialPortError(TransportError):
    """BLED112 serial port could not be opened, read or written."""


class ProtocolError(GanglionError):
    """Invalid or unrecognized data received from the board or dongle."""


class InvalidResponseError(ProtocolError):
    """BLED112 answered a command with a failure result code."""

    def __init__(self, message: str, result_code: int | None = None):
        super().__init__(message)
        self.result_code = result_code


class StateError(GanglionError):
    """Operation invoked while the session is in the wrong state."""


class AlreadyScanningError(StateError):
    """A search is already in progress."""


class AlreadyConnectedError(StateError):
    """A connection is already established or being established."""


class NotConnectedError(StateError):
    """Operation requires an established connection."""


class PeripheralNotFoundError(StateError):
    """Name or address does not match any discovered peripheral."""


class InvalidStateError(StateError):
    """Operation conflicts with the current streaming or scanning state."""


class SearchTimeoutError(GanglionError):
    """Search did not find a Ganglion before its timeout."""
