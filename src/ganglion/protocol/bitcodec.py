"""Bit-level codec for Ganglion compressed sample packets.

Compressed packets carry 8 signed deltas (2 samples x 4 channels) packed
MSB-first with no padding. The firmware stores the sign in the least
significant bit of each field rather than the most significant one, so a
field is negative when its lowest bit is set and is then sign extended by
filling every bit above its width.
"""

from __future__ import annotations

from typing import Final

SAMPLES_PER_PACKET: Final[int] = 2
CHANNELS_PER_SAMPLE: Final[int] = 4
FIELDS_PER_PACKET: Final[int] = SAMPLES_PER_PACKET * CHANNELS_PER_SAMPLE


def _field_windows(width: int) -> tuple[tuple[int, int], ...]:
    """(start_bit, width) of each packed field, in wire order."""
    return tuple((index * width, width) for index in range(FIELDS_PER_PACKET))


FIELD_WINDOWS_18BIT: Final[tuple[tuple[int, int], ...]] = _field_windows(18)
FIELD_WINDOWS_19BIT: Final[tuple[tuple[int, int], ...]] = _field_windows(19)

PAYLOAD_SIZE_18BIT: Final[int] = 18
PAYLOAD_SIZE_19BIT: Final[int] = 19


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _decode(data: bytes, width: int) -> int:
    if len(data) != 3:
        raise ValueError(f"Expected 3 bytes, got {len(data)}")

    value = (data[0] << 16) | (data[1] << 8) | data[2]
    if (data[2] & 0x01) != 0:
        value |= (0xFFFFFFFF << width) & 0xFFFFFFFF
    return _to_int32(value)


def decode18(data: bytes) -> int:
    """Decode a right-aligned 18-bit field stored in 3 bytes.

    Args:
        data: 3 bytes, big-endian

    Returns:
        Signed 32-bit integer

    Raises:
        ValueError: If data is not exactly 3 bytes
    """
    return _decode(data, 18)


def decode19(data: bytes) -> int:
    """Decode a right-aligned 19-bit field stored in 3 bytes.

    Args:
        data: 3 bytes, big-endian

    Returns:
        Signed 32-bit integer

    Raises:
        ValueError: If data is not exactly 3 bytes
    """
    return _decode(data, 19)


def extract_window(payload: bytes, start_bit: int, width: int) -> bytes:
    """Extract an MSB-first bit window and right-align it into 3 bytes."""
    total_bits = len(payload) * 8
    if start_bit < 0 or width > 24 or start_bit + width > total_bits:
        raise ValueError(
            f"Window ({start_bit}, {width}) outside {total_bits}-bit payload"
        )

    packed = int.from_bytes(payload, "big")
    field = (packed >> (total_bits - start_bit - width)) & ((1 << width) - 1)
    return field.to_bytes(3, "big")


def _decompress(
    payload: bytes,
    size: int,
    windows: tuple[tuple[int, int], ...],
    decoder,
) -> list[list[int]]:
    if len(payload) != size:
        raise ValueError(f"Expected {size} byte payload, got {len(payload)}")

    deltas = [decoder(extract_window(payload, start, width)) for start, width in windows]
    return [
        deltas[index * CHANNELS_PER_SAMPLE:(index + 1) * CHANNELS_PER_SAMPLE]
        for index in range(SAMPLES_PER_PACKET)
    ]


def decompress_deltas_18bit(payload: bytes) -> list[list[int]]:
    """Unpack the 8 deltas of an 18-bit compressed packet.

    Args:
        payload: 18 bytes following the byteId

    Returns:
        Two lists of 4 channel deltas, one per sample

    Raises:
        ValueError: If payload is not 18 bytes
    """
    return _decompress(payload, PAYLOAD_SIZE_18BIT, FIELD_WINDOWS_18BIT, decode18)


def decompress_deltas_19bit(payload: bytes) -> list[list[int]]:
    """Unpack the 8 deltas of a 19-bit compressed packet.

    Args:
        payload: 19 bytes following the byteId

    Returns:
        Two lists of 4 channel deltas, one per sample

    Raises:
        ValueError: If payload is not 19 bytes
    """
    return _decompress(payload, PAYLOAD_SIZE_19BIT, FIELD_WINDOWS_19BIT, decode19)


def interpret_24bit_as_int32(data: bytes) -> int:
    """Decode a conventional 24-bit big-endian two's complement value."""
    if len(data) != 3:
        raise ValueError(f"Expected 3 bytes, got {len(data)}")
    return int.from_bytes(data, "big", signed=True)
