"""Stateful delta decoding of Ganglion sample packets."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..exceptions import ProtocolError
from ..models.events import DroppedPacket, SampleReceived
from ..models.sample import Sample
from .bitcodec import (
    PAYLOAD_SIZE_18BIT,
    PAYLOAD_SIZE_19BIT,
    decompress_deltas_18bit,
    decompress_deltas_19bit,
    interpret_24bit_as_int32,
)
from .commands import (
    BYTE_ID_18BIT_MAX,
    BYTE_ID_19BIT_MAX,
    BYTE_ID_19BIT_MIN,
    NUMBER_OF_CHANNELS,
    SCALE_FACTOR_PER_COUNT_VOLTS,
)

_LOGGER = logging.getLogger(__name__)

# Positions 0, 1..100 make up one board cycle; 101..200 reuse positions 1..100
CYCLE_LENGTH = BYTE_ID_18BIT_MAX + 1

UNCOMPRESSED_FRAME_SIZE = 1 + 3 * NUMBER_OF_CHANNELS
COMPRESSED_18BIT_FRAME_SIZE = 1 + PAYLOAD_SIZE_18BIT
COMPRESSED_19BIT_FRAME_SIZE = 1 + PAYLOAD_SIZE_19BIT


def cycle_position(byte_id: int) -> int:
    """Position of a sample byteId within the board's packet cycle."""
    if byte_id > BYTE_ID_18BIT_MAX:
        return byte_id - BYTE_ID_18BIT_MAX
    return byte_id


def _byte_id_at(position: int, range_offset: int) -> int:
    return 0 if position == 0 else position + range_offset


def _range_offset(byte_id: int) -> int:
    return BYTE_ID_18BIT_MAX if BYTE_ID_19BIT_MIN <= byte_id <= BYTE_ID_19BIT_MAX else 0


def missing_byte_ids(last_byte_id: int, byte_id: int) -> tuple[int, ...]:
    """ByteIds skipped between two consecutively received sample packets.

    Args:
        last_byte_id: Previously received sample byteId (0-200)
        byte_id: Newly received sample byteId (0-200)

    Returns:
        Missing byteIds in the order the board would have sent them
    """
    expected = (cycle_position(last_byte_id) + 1) % CYCLE_LENGTH
    gap = (cycle_position(byte_id) - expected) % CYCLE_LENGTH

    # Before wrapping through 0 the board stays in the last packet's range
    offset = _range_offset(last_byte_id if last_byte_id != 0 else byte_id)
    missing = []
    position = expected
    for _ in range(gap):
        if position == 0:
            offset = _range_offset(byte_id)
        missing.append(_byte_id_at(position, offset))
        position = (position + 1) % CYCLE_LENGTH
    return tuple(missing)


@dataclass
class DecoderState:
    """Delta decoding state for one connection."""

    previous_sample_channels: list[int] = field(
        default_factory=lambda: [0] * NUMBER_OF_CHANNELS
    )
    last_byte_id: int = 0
    first_packet_since_reset: bool = True
    dropped_packet_counter: int = 0
    baseline_synced: bool = False

    def reset(self) -> None:
        self.previous_sample_channels = [0] * NUMBER_OF_CHANNELS
        self.last_byte_id = 0
        self.first_packet_since_reset = True
        self.dropped_packet_counter = 0
        self.baseline_synced = False


class SampleDecompressor:
    """Turns uncompressed and delta compressed packets into samples.

    Each 18-bit or 19-bit packet yields two samples. Sample 1 is the stored
    baseline plus the first set of deltas and sample 2 is sample 1 plus the
    second set; sample 2 then becomes the new baseline. A byteId 0 packet
    carries absolute values and re-anchors the baseline.

    Gaps in the byteId sequence are reported once as a DroppedPacket event.
    Decoding continues from the new byteId; the lost baselines are not
    recovered, so samples are flagged invalid until the next uncompressed
    packet.
    """

    def __init__(self, send_counts: bool = False):
        self.send_counts = send_counts
        self.state = DecoderState()

    def reset(self) -> None:
        """Forget the baseline and sequence history."""
        self.state.reset()

    def process_uncompressed(self, frame: bytes) -> list:
        """Decode a byteId 0 packet holding 4 absolute 24-bit values."""
        if len(frame) < UNCOMPRESSED_FRAME_SIZE:
            raise ProtocolError(
                f"Uncompressed packet too short: {len(frame)} bytes "
                f"(need at least {UNCOMPRESSED_FRAME_SIZE})"
            )

        events: list = self._check_sequence(frame[0])
        channels = [
            interpret_24bit_as_int32(frame[1 + 3 * i:4 + 3 * i])
            for i in range(NUMBER_OF_CHANNELS)
        ]
        self.state.previous_sample_channels = channels
        self.state.baseline_synced = True
        events.append(SampleReceived(self._build_sample(0, channels)))
        return events

    def process_18bit(self, frame: bytes) -> list:
        """Decode a byteId 1-100 packet."""
        if len(frame) < COMPRESSED_18BIT_FRAME_SIZE:
            raise ProtocolError(
                f"18-bit packet too short: {len(frame)} bytes "
                f"(need at least {COMPRESSED_18BIT_FRAME_SIZE})"
            )

        byte_id = frame[0]
        events: list = self._check_sequence(byte_id)
        deltas = decompress_deltas_18bit(bytes(frame[1:COMPRESSED_18BIT_FRAME_SIZE]))
        events.extend(self._reconstruct(byte_id * 2 - 1, deltas))
        return events

    def process_19bit(self, frame: bytes) -> list:
        """Decode a byteId 101-200 packet."""
        if len(frame) < COMPRESSED_19BIT_FRAME_SIZE:
            raise ProtocolError(
                f"19-bit packet too short: {len(frame)} bytes "
                f"(need at least {COMPRESSED_19BIT_FRAME_SIZE})"
            )

        byte_id = frame[0]
        events: list = self._check_sequence(byte_id)
        deltas = decompress_deltas_19bit(bytes(frame[1:COMPRESSED_19BIT_FRAME_SIZE]))
        events.extend(
            self._reconstruct((byte_id - BYTE_ID_18BIT_MAX) * 2 - 1, deltas)
        )
        return events

    def _check_sequence(self, byte_id: int) -> list:
        state = self.state
        last_byte_id = state.last_byte_id
        state.last_byte_id = byte_id

        if state.first_packet_since_reset:
            state.first_packet_since_reset = False
            return []

        missing = missing_byte_ids(last_byte_id, byte_id)
        if not missing:
            return []

        state.dropped_packet_counter += len(missing)
        state.baseline_synced = False
        _LOGGER.warning(
            "Dropped %d packet(s) between byteId %d and %d",
            len(missing),
            last_byte_id,
            byte_id,
        )
        return [DroppedPacket(count=len(missing), missing_byte_ids=missing)]

    def _reconstruct(self, first_sample_number: int, deltas: list[list[int]]) -> list:
        events = []
        baseline = self.state.previous_sample_channels
        for offset, sample_deltas in enumerate(deltas):
            current = [
                previous + delta for previous, delta in zip(baseline, sample_deltas)
            ]
            events.append(
                SampleReceived(self._build_sample(first_sample_number + offset, current))
            )
            baseline = current
        self.state.previous_sample_channels = baseline
        return events

    def _build_sample(self, sample_number: int, counts: list[int]) -> Sample:
        if self.send_counts:
            channel_data = tuple(counts)
        else:
            channel_data = tuple(c * SCALE_FACTOR_PER_COUNT_VOLTS for c in counts)
        return Sample(
            sample_number=sample_number,
            channel_data=channel_data,
            valid=self.state.baseline_synced,
        )
