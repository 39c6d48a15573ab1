"""Impedance packet parsing."""

from __future__ import annotations

from ..exceptions import ProtocolError
from ..models.events import ImpedanceReading
from .commands import (
    BYTE_ID_IMPEDANCE_MAX,
    BYTE_ID_IMPEDANCE_MIN,
    BYTE_ID_IMPEDANCE_REFERENCE,
    IMPEDANCE_STOP_MARKER,
)


def impedance_channel(byte_id: int) -> int:
    """Channel number for an impedance byteId; the reference electrode is 0."""
    if not BYTE_ID_IMPEDANCE_MIN <= byte_id <= BYTE_ID_IMPEDANCE_MAX:
        raise ProtocolError(f"Not an impedance byteId: {byte_id}")
    if byte_id == BYTE_ID_IMPEDANCE_REFERENCE:
        return 0
    return byte_id - BYTE_ID_IMPEDANCE_MIN + 1


def parse_impedance_value(payload: bytes) -> int:
    """Parse the ASCII decimal value preceding the stop marker.

    Trailing bytes that are not part of the number (the stop marker and any
    padding) are ignored. A payload without leading digits reads as 0.
    """
    text = payload.decode("ascii", errors="replace")
    marker = text.find(IMPEDANCE_STOP_MARKER)
    if marker >= 0:
        text = text[:marker]

    digits = ""
    for char in text:
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else 0


def parse_impedance(frame: bytes) -> ImpedanceReading:
    """Parse a 201-205 frame.

    Args:
        frame: Raw frame including the byteId

    Returns:
        Channel number and impedance value in ohms

    Raises:
        ProtocolError: If the frame is empty or not an impedance frame
    """
    if not frame:
        raise ProtocolError("Empty impedance frame")

    return ImpedanceReading(
        channel_number=impedance_channel(frame[0]),
        impedance_value=parse_impedance_value(bytes(frame[1:])),
    )
