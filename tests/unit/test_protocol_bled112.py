"""Test BLED112 frame builders, parsers and stream framing."""

from __future__ import annotations

import pytest

from ganglion.exceptions import InvalidResponseError, ProtocolError
from ganglion.protocol.bled112 import (
    RSP_GAP_CONNECT_DIRECT,
    UUID_CLIENT_CHARACTERISTIC_CONFIG,
    UUID_SIMBLEE_SERVICE,
    Bled112Frame,
    Bled112FrameReader,
    build_attribute_write,
    build_connect_direct,
    build_disconnect,
    build_find_information,
    build_gap_discover,
    build_gap_end_procedure,
    build_read_by_group_type,
    check_result,
    parse_attribute_value,
    parse_command_response,
    parse_connection_disconnected,
    parse_connection_status,
    parse_find_information_found,
    parse_group_found,
    parse_local_name,
    parse_procedure_completed,
    parse_scan_response,
    peripheral_from_scan_response,
)


class TestBuilders:
    """Builders must reproduce the dongle's byte sequences exactly."""

    def test_gap_discover(self) -> None:
        """Scan start in discover-all mode."""
        assert build_gap_discover() == bytes.fromhex("00 01 06 02 02")

    def test_gap_end_procedure(self) -> None:
        """Scan stop has no payload."""
        assert build_gap_end_procedure() == bytes.fromhex("00 00 06 04")

    def test_connect_direct_reverses_address(self, ganglion_address) -> None:
        """The address goes out least significant byte first."""
        assert build_connect_direct(ganglion_address) == bytes.fromhex(
            "00 0F 06 03 D9 66 CE 00 53 E9 01 3C 00 4C 00 64 00 00 00"
        )

    def test_connect_direct_rejects_short_address(self) -> None:
        """Addresses must be six bytes."""
        with pytest.raises(ValueError, match="6 bytes"):
            build_connect_direct(b"\x01\x02")

    def test_disconnect(self) -> None:
        """Disconnect names the connection handle."""
        assert build_disconnect(1) == bytes.fromhex("00 01 03 00 01")

    def test_read_by_group_type(self) -> None:
        """Primary service discovery over the full handle range."""
        assert build_read_by_group_type(0) == bytes.fromhex("00 08 04 01 00 01 00 FF FF 02 00 28")

    def test_find_information(self) -> None:
        """Descriptor discovery within the service's handle range."""
        assert build_find_information(0, 23, 30) == bytes.fromhex("00 05 04 03 00 17 00 1E 00")

    def test_attribute_write_command_byte(self) -> None:
        """Single-byte board commands match the dongle capture."""
        assert build_attribute_write(1, 0x1B, b"b") == bytes.fromhex("00 05 04 05 01 1B 00 01 62")

    def test_attribute_write_ccc(self) -> None:
        """The two-byte CCC write grows the length fields."""
        assert build_attribute_write(1, 0x1E, b"\x01\x00") == bytes.fromhex(
            "00 06 04 05 01 1E 00 02 01 00"
        )


class TestParsers:
    def test_scan_response(self, scan_response_frame, ganglion_address) -> None:
        """All scan response fields are decoded."""
        response = parse_scan_response(scan_response_frame)

        assert response.rssi == -51
        assert response.packet_type == 0
        assert response.sender == ganglion_address
        assert response.address_type == 1
        assert response.bond == 0xFF
        assert response.data == scan_response_frame[15:]
        assert response.local_name == "Ganglion-54ca"

    def test_scan_response_to_peripheral(self, scan_response_frame) -> None:
        """Scan responses normalise into peripheral records."""
        peripheral = peripheral_from_scan_response(parse_scan_response(scan_response_frame))

        assert peripheral.name == "Ganglion-54ca"
        assert peripheral.address == "E9:53:00:CE:66:D9"
        assert peripheral.rssi == -51
        assert peripheral.address_type == 1
        assert peripheral.is_ganglion

    def test_connection_status(self, connection_status_frame, ganglion_address) -> None:
        """Connection status carries the link parameters."""
        status = parse_connection_status(connection_status_frame)

        assert status.connection == 1
        assert status.flags == 5
        assert status.is_connected
        assert status.address == ganglion_address
        assert status.address_type == 1
        assert status.conn_interval == 60
        assert status.timeout == 100
        assert status.latency == 0
        assert status.bonding == 0xFF

    def test_group_found(self, group_found_frame) -> None:
        """Group found yields the service handle range."""
        group = parse_group_found(group_found_frame)

        assert (group.connection, group.start, group.end) == (0, 23, 30)
        assert group.uuid == UUID_SIMBLEE_SERVICE

    def test_find_information_found(self, find_information_ccc_frame) -> None:
        """Descriptor UUIDs come back most significant byte first."""
        info = parse_find_information_found(find_information_ccc_frame)

        assert info.connection == 1
        assert info.handle == 26
        assert info.uuid == UUID_CLIENT_CHARACTERISTIC_CONFIG

    def test_connect_direct_response(self, connect_direct_response_frame) -> None:
        """Connect direct answers with the new connection handle."""
        response = parse_command_response(connect_direct_response_frame)

        assert response.key == RSP_GAP_CONNECT_DIRECT
        assert response.connection == 1
        assert response.result == 0
        assert response.ok

    def test_attribute_write_response(self) -> None:
        """Attribute write answers with a connection and result."""
        response = parse_command_response(bytes.fromhex("00 03 04 05 01 00 00"))

        assert (response.connection, response.result) == (1, 0)

    def test_gap_discover_error(self) -> None:
        """A failing result code raises with the code attached."""
        response = parse_command_response(bytes.fromhex("00 02 06 02 81 01"))

        assert response.result == 0x0181
        with pytest.raises(InvalidResponseError, match="0x0181") as exc_info:
            check_result(response, "Scan start")
        assert exc_info.value.result_code == 0x0181

    def test_disconnected(self) -> None:
        """Disconnect reasons are translated to text."""
        event = parse_connection_disconnected(bytes.fromhex("80 03 03 04 01 08 02"))

        assert event.connection == 1
        assert event.reason == 0x0208
        assert event.reason_text == "Link supervision timeout has expired."

    def test_procedure_completed(self) -> None:
        """Procedure completed reports result and handle."""
        completed = parse_procedure_completed(bytes.fromhex("80 05 04 01 01 00 00 1E 00"))

        assert (completed.connection, completed.result, completed.handle) == (1, 0, 30)

    def test_attribute_value(self) -> None:
        """Notifications carry the full Ganglion frame."""
        notification = bytes([0x64]) + bytes(range(19))
        frame = bytes.fromhex("80 19 04 05 01 19 00 01 14") + notification

        value = parse_attribute_value(frame)

        assert value.connection == 1
        assert value.handle == 25
        assert value.value == notification

    def test_wrong_message_rejected(self, connection_status_frame) -> None:
        """Parsers refuse other message types."""
        with pytest.raises(ProtocolError, match="Unexpected BLED112 message"):
            parse_scan_response(connection_status_frame)

    def test_length_mismatch_rejected(self, group_found_frame) -> None:
        """Truncated frames are refused."""
        with pytest.raises(ProtocolError, match="length mismatch"):
            parse_group_found(group_found_frame[:-1])

    def test_local_name_absent(self) -> None:
        """Advertisements without a name give an empty string."""
        assert parse_local_name(bytes.fromhex("02 01 06")) == ""


class TestFrameReader:
    def test_frames_split_across_chunks(self, scan_response_frame, connect_direct_response_frame) -> None:
        """Frames survive arbitrary serial chunking."""
        reader = Bled112FrameReader()
        stream = connect_direct_response_frame + scan_response_frame

        assert reader.feed(stream[:3]) == []
        frames = reader.feed(stream[3:20])
        frames += reader.feed(stream[20:])

        assert [f.to_bytes() for f in frames] == [connect_direct_response_frame, scan_response_frame]
        assert frames[0].is_event is False
        assert frames[1].is_event is True
        assert reader.pending == 0

    def test_resynchronizes_after_garbage(self, connect_direct_response_frame, caplog) -> None:
        """Stray bytes are skipped until a valid header."""
        reader = Bled112FrameReader()

        frames = reader.feed(b"\x42\x13" + connect_direct_response_frame)

        assert [f.to_bytes() for f in frames] == [connect_direct_response_frame]
        assert "Discarding unexpected BLED112 byte" in caplog.text

    def test_long_frame_length_bits(self) -> None:
        """Payloads over 255 bytes use the high length bits."""
        frame = Bled112Frame(0x80, 0x04, 0x05, bytes(300))
        raw = frame.to_bytes()

        assert raw[0] == 0x81
        assert raw[1] == 300 - 256
        assert Bled112FrameReader().feed(raw) == [frame]
