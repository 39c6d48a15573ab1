"""Test byteId classification and frame dispatch."""

from __future__ import annotations

import pytest

from ganglion.models.enums import AccelEmitPolicy, PacketType
from ganglion.models.events import (
    AccelerometerReading,
    ImpedanceReading,
    MessageReceived,
    SampleReceived,
)
from ganglion.protocol.accelerometer import AccelerometerExtractor
from ganglion.protocol.decompressor import SampleDecompressor
from ganglion.protocol.reassembly import MultiPacketAssembler
from ganglion.protocol.router import PacketRouter, classify_byte_id


def _router(**accel_kwargs) -> PacketRouter:
    return PacketRouter(
        SampleDecompressor(send_counts=True),
        MultiPacketAssembler(),
        AccelerometerExtractor(send_counts=True, **accel_kwargs),
    )


class TestClassify:
    def test_total_over_all_byte_ids(self) -> None:
        """Every byteId lands in exactly one category."""
        counts: dict[PacketType, int] = {}
        for byte_id in range(256):
            packet_type = classify_byte_id(byte_id)
            assert isinstance(packet_type, PacketType)
            counts[packet_type] = counts.get(packet_type, 0) + 1

        assert sum(counts.values()) == 256
        assert counts[PacketType.UNCOMPRESSED] == 1
        assert counts[PacketType.COMPRESSED_18BIT] == 100
        assert counts[PacketType.COMPRESSED_19BIT] == 100
        assert counts[PacketType.IMPEDANCE] == 5
        assert counts[PacketType.MULTI_PACKET] == 1
        assert counts[PacketType.MULTI_PACKET_STOP] == 1
        assert counts[PacketType.OTHER] == 1
        assert counts[PacketType.INVALID] == 256 - 209

    @pytest.mark.parametrize(
        ("byte_id", "expected"),
        [
            (0, PacketType.UNCOMPRESSED),
            (1, PacketType.COMPRESSED_18BIT),
            (100, PacketType.COMPRESSED_18BIT),
            (101, PacketType.COMPRESSED_19BIT),
            (200, PacketType.COMPRESSED_19BIT),
            (201, PacketType.IMPEDANCE),
            (205, PacketType.IMPEDANCE),
            (206, PacketType.MULTI_PACKET),
            (207, PacketType.MULTI_PACKET_STOP),
            (208, PacketType.INVALID),
            (254, PacketType.INVALID),
            (255, PacketType.OTHER),
        ],
    )
    def test_range_boundaries(self, byte_id, expected) -> None:
        """Range edges classify correctly."""
        assert classify_byte_id(byte_id) is expected

    def test_out_of_range(self) -> None:
        """Values outside a byte are refused."""
        with pytest.raises(ValueError):
            classify_byte_id(256)


class TestRoute:
    def test_compressed_frames_yield_two_samples(self, payload_18bit, payload_19bit) -> None:
        """Compressed frames without an axis carry exactly two samples."""
        events = _router().route(bytes([4]) + payload_18bit + b"\x00")
        events += _router().route(bytes([101]) + payload_19bit)

        assert [type(e) for e in events] == [SampleReceived] * 4

    def test_accelerometer_rides_on_18bit_frames(self, payload_18bit) -> None:
        """The aux byte of an axis frame becomes a reading."""
        router = _router()

        events = router.route(bytes([2]) + payload_18bit + b"\x05")

        assert isinstance(events[-1], AccelerometerReading)
        assert events[-1].vector.y == 5

    def test_impedance(self) -> None:
        """Impedance frames are routed to the impedance parser."""
        router = _router()

        assert router.route(bytes([203]) + b"1099Z") == [
            ImpedanceReading(channel_number=3, impedance_value=1099)
        ]

    def test_multi_packet(self) -> None:
        """Fragments buffer until the terminator is routed."""
        router = _router()

        assert router.route(bytes([206]) + b"abc") == []
        assert router.assembler.buffer == b"abc"
        assert router.route(bytes([207]) + b"def") == [MessageReceived(data=b"abcdef")]
        assert router.assembler.buffer is None

    def test_other_message(self) -> None:
        """byteId 255 is surfaced as an other message."""
        router = _router()

        assert router.route(bytes([255, 1, 2])) == [MessageReceived(data=b"\x01\x02", kind="other")]

    @pytest.mark.parametrize("frame", [b"", bytes([208, 1, 2]), bytes([1, 2, 3]), bytes([0, 1])])
    def test_anomalies_are_dropped(self, frame, caplog) -> None:
        """Malformed frames are logged and produce nothing."""
        router = _router()

        assert router.route(frame) == []
        assert "Dropping" in caplog.text

    def test_stream_continues_after_anomaly(self, payload_19bit) -> None:
        """A dropped frame does not disturb later frames."""
        router = _router()
        router.route(bytes([250]) + bytes(19))

        events = router.route(bytes([101]) + payload_19bit)

        assert len(events) == 2


class TestAccelerometerPolicy:
    def test_every_nth_update(self, payload_18bit) -> None:
        """EVERY_UPDATE emits on every Nth axis update."""
        router = _router(policy=AccelEmitPolicy.EVERY_UPDATE, interval=3)

        readings = []
        for byte_id in (1, 2, 3, 11, 12, 13):
            events = router.route(bytes([byte_id]) + payload_18bit + bytes([byte_id]))
            readings += [e for e in events if isinstance(e, AccelerometerReading)]

        assert [r.vector.as_tuple() for r in readings] == [(1, 2, 3), (11, 12, 13)]

    def test_full_rotation(self, payload_18bit) -> None:
        """FULL_ROTATION waits for X, Y and Z."""
        router = _router(policy=AccelEmitPolicy.FULL_ROTATION)

        readings = []
        for byte_id in (3, 1, 1, 2, 4):
            events = router.route(bytes([byte_id]) + payload_18bit + bytes([byte_id]))
            readings += [e for e in events if isinstance(e, AccelerometerReading)]

        assert [r.vector.as_tuple() for r in readings] == [(1, 2, 3)]
