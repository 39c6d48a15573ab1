"""BLED112 (BGAPI) frame codec.

Every frame is a 4-byte header followed by a payload:
- [0]: message type (0x00 command/response, 0x80 event) | payload length bits 8-10
- [1]: payload length bits 0-7
- [2]: class id
- [3]: command id

Multi-byte integers are little-endian. Device addresses travel in reversed
byte order compared to the AA:BB:CC:DD:EE:FF identifier used elsewhere;
builders and parsers reverse them so callers always deal in identifier
order.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from ..exceptions import InvalidResponseError, ProtocolError
from ..models.peripheral import PeripheralRecord, format_address

_LOGGER = logging.getLogger(__name__)

HEADER_SIZE: Final[int] = 4
MESSAGE_TYPE_COMMAND: Final[int] = 0x00
MESSAGE_TYPE_EVENT: Final[int] = 0x80
_LENGTH_HIGH_MASK: Final[int] = 0x07
_TECHNOLOGY_MASK: Final[int] = 0x78

GAP_DISCOVER_OBSERVATION: Final[int] = 0x02
CONNECTION_FLAG_CONNECTED: Final[int] = 0x01

# GATT attribute types, in identifier (big-endian) byte order
UUID_PRIMARY_SERVICE: Final[bytes] = bytes.fromhex("2800")
UUID_CLIENT_CHARACTERISTIC_CONFIG: Final[bytes] = bytes.fromhex("2902")
UUID_SIMBLEE_SERVICE: Final[bytes] = bytes.fromhex("fe84")
UUID_RECEIVE_CHARACTERISTIC: Final[bytes] = bytes.fromhex("2d30c082f39f4ce6923f3484ea480596")
UUID_SEND_CHARACTERISTIC: Final[bytes] = bytes.fromhex("2d30c083f39f4ce6923f3484ea480596")

CCC_ENABLE_NOTIFICATIONS: Final[bytes] = b"\x01\x00"

AD_TYPE_SHORT_LOCAL_NAME: Final[int] = 0x08
AD_TYPE_COMPLETE_LOCAL_NAME: Final[int] = 0x09


class BgapiClass(IntEnum):
    """BGAPI message classes used by the driver."""
    SYSTEM = 0x00
    CONNECTION = 0x03
    ATTCLIENT = 0x04
    GAP = 0x06


# (class, command) of the messages the driver sends or consumes
RSP_CONNECTION_DISCONNECT: Final = (BgapiClass.CONNECTION, 0x00)
RSP_ATTCLIENT_READ_BY_GROUP_TYPE: Final = (BgapiClass.ATTCLIENT, 0x01)
RSP_ATTCLIENT_FIND_INFORMATION: Final = (BgapiClass.ATTCLIENT, 0x03)
RSP_ATTCLIENT_ATTRIBUTE_WRITE: Final = (BgapiClass.ATTCLIENT, 0x05)
RSP_GAP_DISCOVER: Final = (BgapiClass.GAP, 0x02)
RSP_GAP_CONNECT_DIRECT: Final = (BgapiClass.GAP, 0x03)
RSP_GAP_END_PROCEDURE: Final = (BgapiClass.GAP, 0x04)

EVT_CONNECTION_STATUS: Final = (BgapiClass.CONNECTION, 0x00)
EVT_CONNECTION_DISCONNECTED: Final = (BgapiClass.CONNECTION, 0x04)
EVT_ATTCLIENT_PROCEDURE_COMPLETED: Final = (BgapiClass.ATTCLIENT, 0x01)
EVT_ATTCLIENT_GROUP_FOUND: Final = (BgapiClass.ATTCLIENT, 0x02)
EVT_ATTCLIENT_FIND_INFORMATION_FOUND: Final = (BgapiClass.ATTCLIENT, 0x04)
EVT_ATTCLIENT_ATTRIBUTE_VALUE: Final = (BgapiClass.ATTCLIENT, 0x05)
EVT_GAP_SCAN_RESPONSE: Final = (BgapiClass.GAP, 0x00)

DISCONNECT_REASONS: Final[dict[int, str]] = {
    0x0000: "Disconnected by request",
    0x0208: "Link supervision timeout has expired.",
    0x0213: "Remote user terminated connection",
    0x0216: "Connection terminated by local host",
    0x023E: "Connection failed to be established",
}


@dataclass(frozen=True, slots=True)
class Bled112Frame:
    """One BGAPI message."""

    message_type: int
    class_id: int
    command_id: int
    payload: bytes

    @property
    def is_event(self) -> bool:
        return self.message_type == MESSAGE_TYPE_EVENT

    @property
    def key(self) -> tuple[int, int]:
        return self.class_id, self.command_id

    def to_bytes(self) -> bytes:
        length = len(self.payload)
        return bytes([
            self.message_type | ((length >> 8) & _LENGTH_HIGH_MASK),
            length & 0xFF,
            self.class_id,
            self.command_id,
        ]) + self.payload

    @classmethod
    def from_bytes(cls, data: bytes) -> Bled112Frame:
        """Parse one complete frame.

        Raises:
            ProtocolError: If the header is invalid or the length disagrees
        """
        if len(data) < HEADER_SIZE:
            raise ProtocolError(f"BLED112 frame too short: {len(data)} bytes")
        if data[0] & _TECHNOLOGY_MASK:
            raise ProtocolError(f"Invalid BLED112 header byte 0x{data[0]:02x}")

        length = ((data[0] & _LENGTH_HIGH_MASK) << 8) | data[1]
        if len(data) != HEADER_SIZE + length:
            raise ProtocolError(
                f"BLED112 frame length mismatch: header says {length}, "
                f"got {len(data) - HEADER_SIZE}"
            )
        return cls(
            message_type=data[0] & MESSAGE_TYPE_EVENT,
            class_id=data[2],
            command_id=data[3],
            payload=bytes(data[HEADER_SIZE:]),
        )


class Bled112FrameReader:
    """Splits the dongle's serial byte stream into frames.

    Bytes may arrive in arbitrary chunks; frames are released only once
    complete. A header byte that cannot start a BGAPI frame is discarded
    one byte at a time until the stream resynchronizes.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[Bled112Frame]:
        """Add received bytes and return every frame completed by them."""
        self._buffer.extend(data)
        frames = []
        while len(self._buffer) >= HEADER_SIZE:
            lead = self._buffer[0]
            if lead & _TECHNOLOGY_MASK:
                _LOGGER.warning("Discarding unexpected BLED112 byte 0x%02x", lead)
                del self._buffer[0]
                continue

            total = HEADER_SIZE + (((lead & _LENGTH_HIGH_MASK) << 8) | self._buffer[1])
            if len(self._buffer) < total:
                break

            raw = bytes(self._buffer[:total])
            del self._buffer[:total]
            frames.append(Bled112Frame.from_bytes(raw))
        return frames

    def reset(self) -> None:
        self._buffer.clear()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a complete frame."""
        return len(self._buffer)


def _command(key: tuple[int, int], payload: bytes = b"") -> bytes:
    class_id, command_id = key
    return Bled112Frame(MESSAGE_TYPE_COMMAND, class_id, command_id, payload).to_bytes()


def build_gap_discover(mode: int = GAP_DISCOVER_OBSERVATION) -> bytes:
    """Build gap_discover (start scanning)."""
    return _command(RSP_GAP_DISCOVER, bytes([mode]))


def build_gap_end_procedure() -> bytes:
    """Build gap_end_procedure (stop scanning)."""
    return _command(RSP_GAP_END_PROCEDURE)


def build_connect_direct(
        address: bytes,
        address_type: int = 1,
        interval_min: int = 60,
        interval_max: int = 76,
        timeout: int = 100,
        latency: int = 0,
) -> bytes:
    """Build gap_connect_direct.

    Args:
        address: 6-byte device identifier, most significant byte first
        address_type: 0 public, 1 random
        interval_min: Minimum connection interval (1.25 ms units)
        interval_max: Maximum connection interval (1.25 ms units)
        timeout: Supervision timeout (10 ms units)
        latency: Slave latency

    Returns:
        Command frame bytes
    """
    if len(address) != 6:
        raise ValueError(f"Address must be 6 bytes, got {len(address)}")
    payload = bytes(reversed(address)) + struct.pack(
        "<BHHHH", address_type, interval_min, interval_max, timeout, latency
    )
    return _command(RSP_GAP_CONNECT_DIRECT, payload)


def build_disconnect(connection: int) -> bytes:
    """Build connection_disconnect."""
    return _command(RSP_CONNECTION_DISCONNECT, bytes([connection]))


def build_read_by_group_type(
        connection: int,
        start: int = 0x0001,
        end: int = 0xFFFF,
        uuid: bytes = UUID_PRIMARY_SERVICE,
) -> bytes:
    """Build attclient_read_by_group_type (primary service discovery)."""
    payload = struct.pack("<BHHB", connection, start, end, len(uuid)) + bytes(reversed(uuid))
    return _command(RSP_ATTCLIENT_READ_BY_GROUP_TYPE, payload)


def build_find_information(connection: int, start: int, end: int) -> bytes:
    """Build attclient_find_information over a handle range."""
    return _command(RSP_ATTCLIENT_FIND_INFORMATION, struct.pack("<BHH", connection, start, end))


def build_attribute_write(connection: int, handle: int, value: bytes) -> bytes:
    """Build attclient_attribute_write."""
    if len(value) > 0xFF:
        raise ValueError(f"Attribute value too long: {len(value)} bytes")
    payload = struct.pack("<BHB", connection, handle, len(value)) + value
    return _command(RSP_ATTCLIENT_ATTRIBUTE_WRITE, payload)


@dataclass(frozen=True, slots=True)
class ScanResponse:
    rssi: int
    packet_type: int
    sender: bytes
    address_type: int
    bond: int
    data: bytes

    @property
    def local_name(self) -> str:
        return parse_local_name(self.data)


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    connection: int
    flags: int
    address: bytes
    address_type: int
    conn_interval: int
    timeout: int
    latency: int
    bonding: int

    @property
    def is_connected(self) -> bool:
        return bool(self.flags & CONNECTION_FLAG_CONNECTED)


@dataclass(frozen=True, slots=True)
class ConnectionDisconnected:
    connection: int
    reason: int

    @property
    def reason_text(self) -> str:
        return DISCONNECT_REASONS.get(self.reason, f"Unknown reason 0x{self.reason:04x}")


@dataclass(frozen=True, slots=True)
class GroupFound:
    connection: int
    start: int
    end: int
    uuid: bytes


@dataclass(frozen=True, slots=True)
class FindInformationFound:
    connection: int
    handle: int
    uuid: bytes


@dataclass(frozen=True, slots=True)
class ProcedureCompleted:
    connection: int
    result: int
    handle: int


@dataclass(frozen=True, slots=True)
class AttributeValue:
    connection: int
    handle: int
    value_type: int
    value: bytes


@dataclass(frozen=True, slots=True)
class CommandResponse:
    """Generic response: result code plus the connection handle where present."""

    key: tuple[int, int]
    result: int
    connection: int | None = None

    @property
    def ok(self) -> bool:
        return self.result == 0


def _expect(
        data: bytes | Bled112Frame,
        key: tuple[int, int],
        event: bool,
        min_payload: int,
) -> bytes:
    frame = data if isinstance(data, Bled112Frame) else Bled112Frame.from_bytes(data)
    if frame.is_event != event or frame.key != tuple(key):
        raise ProtocolError(
            f"Unexpected BLED112 message {frame.message_type:#04x}/"
            f"{frame.class_id:#04x}/{frame.command_id:#04x}"
        )
    if len(frame.payload) < min_payload:
        raise ProtocolError(
            f"BLED112 payload too short: {len(frame.payload)} bytes (need {min_payload})"
        )
    return frame.payload


def parse_scan_response(data: bytes | Bled112Frame) -> ScanResponse:
    """Parse gap_scan_response event."""
    p = _expect(data, EVT_GAP_SCAN_RESPONSE, True, 11)
    data_length = p[10]
    return ScanResponse(
        rssi=struct.unpack("<b", p[0:1])[0],
        packet_type=p[1],
        sender=bytes(reversed(p[2:8])),
        address_type=p[8],
        bond=p[9],
        data=bytes(p[11:11 + data_length]),
    )


def parse_connection_status(data: bytes | Bled112Frame) -> ConnectionStatus:
    """Parse connection_status event."""
    p = _expect(data, EVT_CONNECTION_STATUS, True, 16)
    interval, timeout, latency = struct.unpack("<HHH", p[9:15])
    return ConnectionStatus(
        connection=p[0],
        flags=p[1],
        address=bytes(reversed(p[2:8])),
        address_type=p[8],
        conn_interval=interval,
        timeout=timeout,
        latency=latency,
        bonding=p[15],
    )


def parse_connection_disconnected(data: bytes | Bled112Frame) -> ConnectionDisconnected:
    """Parse connection_disconnected event."""
    p = _expect(data, EVT_CONNECTION_DISCONNECTED, True, 3)
    return ConnectionDisconnected(connection=p[0], reason=struct.unpack("<H", p[1:3])[0])


def parse_group_found(data: bytes | Bled112Frame) -> GroupFound:
    """Parse attclient_group_found event."""
    p = _expect(data, EVT_ATTCLIENT_GROUP_FOUND, True, 6)
    connection, start, end, uuid_length = struct.unpack("<BHHB", p[0:6])
    return GroupFound(
        connection=connection,
        start=start,
        end=end,
        uuid=bytes(reversed(p[6:6 + uuid_length])),
    )


def parse_find_information_found(data: bytes | Bled112Frame) -> FindInformationFound:
    """Parse attclient_find_information_found event."""
    p = _expect(data, EVT_ATTCLIENT_FIND_INFORMATION_FOUND, True, 4)
    connection, handle, uuid_length = struct.unpack("<BHB", p[0:4])
    return FindInformationFound(
        connection=connection,
        handle=handle,
        uuid=bytes(reversed(p[4:4 + uuid_length])),
    )


def parse_procedure_completed(data: bytes | Bled112Frame) -> ProcedureCompleted:
    """Parse attclient_procedure_completed event."""
    p = _expect(data, EVT_ATTCLIENT_PROCEDURE_COMPLETED, True, 5)
    connection, result, handle = struct.unpack("<BHH", p[0:5])
    return ProcedureCompleted(connection=connection, result=result, handle=handle)


def parse_attribute_value(data: bytes | Bled112Frame) -> AttributeValue:
    """Parse attclient_attribute_value event (notification payload)."""
    p = _expect(data, EVT_ATTCLIENT_ATTRIBUTE_VALUE, True, 5)
    connection, handle, value_type, value_length = struct.unpack("<BHBB", p[0:5])
    return AttributeValue(
        connection=connection,
        handle=handle,
        value_type=value_type,
        value=bytes(p[5:5 + value_length]),
    )


def parse_command_response(data: bytes | Bled112Frame) -> CommandResponse:
    """Parse the response to any command the driver sends.

    Raises:
        ProtocolError: If the message is not a known response
    """
    frame = data if isinstance(data, Bled112Frame) else Bled112Frame.from_bytes(data)
    key = frame.key
    if key in (RSP_GAP_DISCOVER, RSP_GAP_END_PROCEDURE):
        p = _expect(frame, key, False, 2)
        return CommandResponse(key=key, result=struct.unpack("<H", p[0:2])[0])
    if key == RSP_GAP_CONNECT_DIRECT:
        p = _expect(frame, key, False, 3)
        result, connection = struct.unpack("<HB", p[0:3])
        return CommandResponse(key=key, result=result, connection=connection)
    if key in (
        RSP_CONNECTION_DISCONNECT,
        RSP_ATTCLIENT_READ_BY_GROUP_TYPE,
        RSP_ATTCLIENT_FIND_INFORMATION,
        RSP_ATTCLIENT_ATTRIBUTE_WRITE,
    ):
        p = _expect(frame, key, False, 3)
        connection, result = struct.unpack("<BH", p[0:3])
        return CommandResponse(key=key, result=result, connection=connection)
    raise ProtocolError(f"Unknown BLED112 response {frame.class_id:#04x}/{frame.command_id:#04x}")


def check_result(response: CommandResponse | ProcedureCompleted, action: str) -> None:
    """Raise if the dongle reported a non-zero result code.

    Raises:
        InvalidResponseError: If result is non-zero
    """
    if response.result != 0:
        raise InvalidResponseError(
            f"{action} failed with result 0x{response.result:04x}",
            result_code=response.result,
        )


def parse_local_name(advertisement: bytes) -> str:
    """Extract the local name from raw advertisement AD structures."""
    index = 0
    while index < len(advertisement):
        length = advertisement[index]
        if length == 0 or index + 1 + length > len(advertisement):
            break
        ad_type = advertisement[index + 1]
        if ad_type in (AD_TYPE_COMPLETE_LOCAL_NAME, AD_TYPE_SHORT_LOCAL_NAME):
            value = advertisement[index + 2:index + 1 + length]
            return value.decode("utf-8", errors="replace")
        index += 1 + length
    return ""


def peripheral_from_scan_response(response: ScanResponse) -> PeripheralRecord:
    """Normalize a scan response into the record native BLE discovery yields."""
    return PeripheralRecord(
        name=response.local_name,
        address=format_address(response.sender),
        rssi=response.rssi,
        address_type=response.address_type,
    )
