"""Board command bytes and protocol constants."""

from __future__ import annotations

from enum import Enum
from typing import Final

# Simblee GATT layout used by the Ganglion firmware
SIMBLEE_SERVICE_UUID: Final[str] = "0000fe84-0000-1000-8000-00805f9b34fb"
RECEIVE_CHARACTERISTIC_UUID: Final[str] = "2d30c082-f39f-4ce6-923f-3484ea480596"
SEND_CHARACTERISTIC_UUID: Final[str] = "2d30c083-f39f-4ce6-923f-3484ea480596"
DISCONNECT_CHARACTERISTIC_UUID: Final[str] = "2d30c084-f39f-4ce6-923f-3484ea480596"

SEARCH_TIMEOUT: Final[float] = 20.0  # seconds

NUMBER_OF_CHANNELS: Final[int] = 4
SAMPLE_RATE: Final[int] = 200
FRAME_SIZE: Final[int] = 20

# byteId ranges
BYTE_ID_UNCOMPRESSED: Final[int] = 0
BYTE_ID_18BIT_MIN: Final[int] = 1
BYTE_ID_18BIT_MAX: Final[int] = 100
BYTE_ID_19BIT_MIN: Final[int] = 101
BYTE_ID_19BIT_MAX: Final[int] = 200
BYTE_ID_IMPEDANCE_MIN: Final[int] = 201
BYTE_ID_IMPEDANCE_MAX: Final[int] = 205
BYTE_ID_IMPEDANCE_REFERENCE: Final[int] = 205
BYTE_ID_MULTI_PACKET: Final[int] = 206
BYTE_ID_MULTI_PACKET_STOP: Final[int] = 207
BYTE_ID_OTHER: Final[int] = 255

# Scale factors
MCP3912_VREF: Final[float] = 1.2
MCP3912_GAIN: Final[float] = 1.0
GANGLION_GAIN: Final[float] = 51.0
SCALE_FACTOR_PER_COUNT_VOLTS: Final[float] = MCP3912_VREF / (
    8388607.0 * MCP3912_GAIN * 1.5 * GANGLION_GAIN
)
ACCEL_SCALE_FACTOR: Final[float] = 0.032  # g per count

IMPEDANCE_STOP_MARKER: Final[str] = "Z"


class BoardCommand(Enum):
    """Single byte commands written to the Ganglion."""

    STREAM_START = b"b"
    STREAM_STOP = b"s"
    ACCEL_START = b"n"
    ACCEL_STOP = b"N"
    IMPEDANCE_START = b"z"
    IMPEDANCE_STOP = b"Z"
    SOFT_RESET = b"v"
    SYNTHETIC_DATA_ENABLE = b"t"
    SYNTHETIC_DATA_DISABLE = b"T"
    REGISTER_QUERY = b"?"
    CHANNEL_1_OFF = b"1"
    CHANNEL_2_OFF = b"2"
    CHANNEL_3_OFF = b"3"
    CHANNEL_4_OFF = b"4"
    CHANNEL_1_ON = b"!"
    CHANNEL_2_ON = b"@"
    CHANNEL_3_ON = b"#"
    CHANNEL_4_ON = b"$"


_CHANNEL_ON: Final[dict[int, BoardCommand]] = {
    1: BoardCommand.CHANNEL_1_ON,
    2: BoardCommand.CHANNEL_2_ON,
    3: BoardCommand.CHANNEL_3_ON,
    4: BoardCommand.CHANNEL_4_ON,
}

_CHANNEL_OFF: Final[dict[int, BoardCommand]] = {
    1: BoardCommand.CHANNEL_1_OFF,
    2: BoardCommand.CHANNEL_2_OFF,
    3: BoardCommand.CHANNEL_3_OFF,
    4: BoardCommand.CHANNEL_4_OFF,
}


def build_channel_command(channel_number: int, enable: bool) -> bytes:
    """Build the command toggling a single channel.

    Args:
        channel_number: Channel 1-4
        enable: True to turn the channel on, False to turn it off

    Returns:
        Single command byte

    Raises:
        ValueError: If channel_number is not 1-4
    """
    table = _CHANNEL_ON if enable else _CHANNEL_OFF
    command = table.get(channel_number)
    if command is None:
        raise ValueError(
            f"Invalid channel number: {channel_number} (must be 1-{NUMBER_OF_CHANNELS})"
        )
    return command.value
