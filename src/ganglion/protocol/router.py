"""Dispatch of inbound Ganglion frames by byteId."""

from __future__ import annotations

import logging

from ..exceptions import ProtocolError
from ..models.enums import PacketType
from ..models.events import MessageReceived
from .accelerometer import AccelerometerExtractor
from .commands import (
    BYTE_ID_18BIT_MAX,
    BYTE_ID_18BIT_MIN,
    BYTE_ID_19BIT_MAX,
    BYTE_ID_19BIT_MIN,
    BYTE_ID_IMPEDANCE_MAX,
    BYTE_ID_IMPEDANCE_MIN,
    BYTE_ID_MULTI_PACKET,
    BYTE_ID_MULTI_PACKET_STOP,
    BYTE_ID_OTHER,
    BYTE_ID_UNCOMPRESSED,
)
from .decompressor import SampleDecompressor
from .impedance import parse_impedance
from .reassembly import MultiPacketAssembler

_LOGGER = logging.getLogger(__name__)


def classify_byte_id(byte_id: int) -> PacketType:
    """Map a leading byteId to its packet type.

    Total over 0-255; anything outside the known ranges is INVALID.

    Raises:
        ValueError: If byte_id is not a byte value
    """
    if not 0 <= byte_id <= 0xFF:
        raise ValueError(f"byteId out of range: {byte_id}")

    if byte_id == BYTE_ID_UNCOMPRESSED:
        return PacketType.UNCOMPRESSED
    if BYTE_ID_18BIT_MIN <= byte_id <= BYTE_ID_18BIT_MAX:
        return PacketType.COMPRESSED_18BIT
    if BYTE_ID_19BIT_MIN <= byte_id <= BYTE_ID_19BIT_MAX:
        return PacketType.COMPRESSED_19BIT
    if BYTE_ID_IMPEDANCE_MIN <= byte_id <= BYTE_ID_IMPEDANCE_MAX:
        return PacketType.IMPEDANCE
    if byte_id == BYTE_ID_MULTI_PACKET:
        return PacketType.MULTI_PACKET
    if byte_id == BYTE_ID_MULTI_PACKET_STOP:
        return PacketType.MULTI_PACKET_STOP
    if byte_id == BYTE_ID_OTHER:
        return PacketType.OTHER
    return PacketType.INVALID


class PacketRouter:
    """Routes each frame to exactly one handler.

    The router keeps no state of its own: decoder baselines, the
    multi-packet buffer and the accelerometer vector live in the handlers,
    which belong to the session that created the router.
    """

    def __init__(
            self,
            decompressor: SampleDecompressor,
            assembler: MultiPacketAssembler,
            accelerometer: AccelerometerExtractor,
    ):
        self.decompressor = decompressor
        self.assembler = assembler
        self.accelerometer = accelerometer

    def route(self, frame: bytes) -> list:
        """Decode one frame into session events.

        Protocol anomalies (unknown byteId, truncated frame) are logged and
        the frame is dropped; they never propagate to the caller.
        """
        if not frame:
            _LOGGER.warning("Dropping empty frame")
            return []

        packet_type = classify_byte_id(frame[0])
        try:
            return self._dispatch(packet_type, frame)
        except ProtocolError as e:
            _LOGGER.warning("Dropping %s frame: %s", packet_type.value, e)
            return []

    def _dispatch(self, packet_type: PacketType, frame: bytes) -> list:
        if packet_type is PacketType.UNCOMPRESSED:
            return self.decompressor.process_uncompressed(frame)

        if packet_type is PacketType.COMPRESSED_18BIT:
            events = self.decompressor.process_18bit(frame)
            reading = self.accelerometer.process(frame)
            if reading is not None:
                events.append(reading)
            return events

        if packet_type is PacketType.COMPRESSED_19BIT:
            return self.decompressor.process_19bit(frame)

        if packet_type is PacketType.IMPEDANCE:
            return [parse_impedance(frame)]

        if packet_type is PacketType.MULTI_PACKET:
            self.assembler.add_fragment(frame)
            return []

        if packet_type is PacketType.MULTI_PACKET_STOP:
            return [self.assembler.add_terminator(frame)]

        if packet_type is PacketType.OTHER:
            _LOGGER.debug("Other data packet: %s", bytes(frame[1:]).hex())
            return [MessageReceived(data=bytes(frame[1:]), kind="other")]

        raise ProtocolError(f"Unknown byteId {frame[0]}")
