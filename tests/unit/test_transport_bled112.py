"""Test the BLED112 transport against a scripted fake dongle."""

from __future__ import annotations

import asyncio
import time

import pytest

from ganglion.exceptions import BLEConnectionError, BLETimeoutError, SerialPortError
from ganglion.models.peripheral import PeripheralRecord
from ganglion.protocol.bled112 import (
    UUID_RECEIVE_CHARACTERISTIC,
    UUID_SEND_CHARACTERISTIC,
    Bled112Frame,
    build_attribute_write,
    build_connect_direct,
    build_find_information,
    build_read_by_group_type,
)
from ganglion.transport.base import LinkEventKind, TransportListener
from ganglion.transport.bled112 import Bled112Transport

GANGLION = PeripheralRecord(name="Ganglion-54ca", address="E9:53:00:CE:66:D9")

RECEIVE_HANDLE = 0x19
CCC_HANDLE = 0x1A
SEND_HANDLE = 0x1C


def _event(class_id: int, command_id: int, payload: bytes) -> bytes:
    return Bled112Frame(0x80, class_id, command_id, payload).to_bytes()


def _find_info(handle: int, uuid: bytes) -> bytes:
    payload = bytes([1]) + handle.to_bytes(2, "little") + bytes([len(uuid)]) + bytes(reversed(uuid))
    return _event(0x04, 0x04, payload)


PROCEDURE_COMPLETED = bytes.fromhex("80 05 04 01 01 00 00 1E 00")


class _FakeDongle:
    """Answers driver commands the way a BLED112 with a Ganglion in range does."""

    def __init__(self, scan_response: bytes, connection_status: bytes):
        self.scan_response = scan_response
        self.connection_status = connection_status
        self.silent = False

    def replies(self, command: bytes) -> list[bytes]:
        if self.silent:
            return []
        header = command[:4]
        if header == bytes.fromhex("00 01 06 02"):
            return [bytes.fromhex("00 02 06 02 00 00"), self.scan_response]
        if header == bytes.fromhex("00 00 06 04"):
            return [bytes.fromhex("00 02 06 04 00 00")]
        if header == bytes.fromhex("00 0F 06 03"):
            return [bytes.fromhex("00 03 06 03 00 00 01"), self.connection_status]
        if header == bytes.fromhex("00 08 04 01"):
            return [
                bytes.fromhex("00 03 04 01 01 00 00"),
                bytes.fromhex("80 08 04 02 01 01 00 07 00 02 00 18"),
                bytes.fromhex("80 08 04 02 01 17 00 1E 00 02 84 FE"),
                PROCEDURE_COMPLETED,
            ]
        if header == bytes.fromhex("00 05 04 03"):
            return [
                bytes.fromhex("00 03 04 03 01 00 00"),
                _find_info(0x17, bytes.fromhex("2800")),
                _find_info(0x18, bytes.fromhex("2803")),
                _find_info(RECEIVE_HANDLE, UUID_RECEIVE_CHARACTERISTIC),
                _find_info(CCC_HANDLE, bytes.fromhex("2902")),
                _find_info(0x1B, bytes.fromhex("2803")),
                _find_info(SEND_HANDLE, UUID_SEND_CHARACTERISTIC),
                _find_info(0x1D, bytes.fromhex("2902")),
                PROCEDURE_COMPLETED,
            ]
        if header[2:] == bytes.fromhex("04 05"):
            replies = [bytes.fromhex("00 03 04 05 01 00 00")]
            if command[5:7] == CCC_HANDLE.to_bytes(2, "little"):
                replies.append(PROCEDURE_COMPLETED)
            return replies
        if header == bytes.fromhex("00 01 03 00"):
            return [bytes.fromhex("00 03 03 00 01 00 00")]
        return []


class _FakeSerial:
    def __init__(self, dongle: _FakeDongle, **kwargs):
        self.dongle = dongle
        self.kwargs = kwargs
        self.written: list[bytes] = []
        self.in_waiting = 0
        self.transport: Bled112Transport | None = None
        self.closed = False

    def read(self, size: int = 1) -> bytes:
        time.sleep(0.005)
        return b""

    def write(self, data: bytes) -> int:
        self.written.append(bytes(data))
        loop = asyncio.get_running_loop()
        for reply in self.dongle.replies(bytes(data)):
            loop.call_soon(self.transport.feed, reply)
        return len(data)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def dongle(scan_response_frame, connection_status_frame):
    return _FakeDongle(scan_response_frame, connection_status_frame)


@pytest.fixture
def bled112(dongle):
    ports: list[_FakeSerial] = []

    def factory(**kwargs):
        port = _FakeSerial(dongle, **kwargs)
        ports.append(port)
        return port

    transport = Bled112Transport(port="/dev/ttyACM0", timeout=0.5, serial_factory=factory)
    discovered: list = []
    links: list = []
    data: list[bytes] = []
    transport.set_listener(
        TransportListener(
            on_discovery=lambda event: discovered.append(event.peripheral),
            on_link=links.append,
            on_data=data.append,
        )
    )

    async def opened():
        await transport.open()
        ports[0].transport = transport
        return transport, ports[0], discovered, links, data

    return opened


@pytest.mark.asyncio
async def test_open_uses_port_settings(bled112) -> None:
    """The port opens at 256000 baud with a short read timeout."""
    transport, port, *_ = await bled112()

    assert port.kwargs == {"port": "/dev/ttyACM0", "baudrate": 256000, "timeout": 0.1}

    await transport.close()
    assert port.closed


@pytest.mark.asyncio
async def test_open_failure_wrapped() -> None:
    """pyserial failures surface as SerialPortError."""
    import serial

    def factory(**kwargs):
        raise serial.SerialException("could not open port")

    transport = Bled112Transport(port="/dev/missing", serial_factory=factory)

    with pytest.raises(SerialPortError, match="could not open port"):
        await transport.open()


@pytest.mark.asyncio
async def test_scan_reports_peripherals(bled112) -> None:
    """Scan responses are reported as discoveries."""
    transport, port, discovered, _, _ = await bled112()

    await transport.start_scan()
    await asyncio.sleep(0)
    await transport.stop_scan()

    assert port.written == [bytes.fromhex("00 01 06 02 02"), bytes.fromhex("00 00 06 04")]
    assert [p.name for p in discovered] == ["Ganglion-54ca"]
    assert discovered[0].address == "E9:53:00:CE:66:D9"
    await transport.close()


@pytest.mark.asyncio
async def test_connect_sequence(bled112, ganglion_address) -> None:
    """Connecting walks the GATT database and enables notifications."""
    transport, port, _, _, _ = await bled112()

    await transport.connect(GANGLION)

    assert transport.is_connected
    assert port.written == [
        build_connect_direct(ganglion_address),
        build_read_by_group_type(1),
        build_find_information(1, 0x17, 0x1E),
        build_attribute_write(1, CCC_HANDLE, b"\x01\x00"),
    ]
    await transport.close()


@pytest.mark.asyncio
async def test_write_targets_send_characteristic(bled112) -> None:
    """Board commands are written to the send handle."""
    transport, port, _, _, _ = await bled112()
    await transport.connect(GANGLION)

    await transport.write(b"b")

    assert port.written[-1] == bytes.fromhex("00 05 04 05 01 1C 00 01 62")
    await transport.close()


@pytest.mark.asyncio
async def test_notifications_forwarded(bled112) -> None:
    """Only receive-handle values are forwarded as frames."""
    transport, _, _, _, data = await bled112()
    await transport.connect(GANGLION)
    frame = bytes([101]) + bytes(19)

    transport.feed(_event(0x04, 0x05, bytes([1, RECEIVE_HANDLE, 0, 1, len(frame)]) + frame))
    transport.feed(_event(0x04, 0x05, bytes([1, SEND_HANDLE, 0, 1, 1, 0x62])))

    assert data == [frame]
    await transport.close()


@pytest.mark.asyncio
async def test_unexpected_disconnect_reported(bled112) -> None:
    """A dongle disconnect event becomes a DOWN link event."""
    transport, _, _, links, _ = await bled112()
    await transport.connect(GANGLION)

    transport.feed(bytes.fromhex("80 03 03 04 01 08 02"))

    assert not transport.is_connected
    assert [(e.kind, e.reason) for e in links] == [
        (LinkEventKind.DOWN, "Link supervision timeout has expired.")
    ]
    await transport.close()


@pytest.mark.asyncio
async def test_requested_disconnect_is_silent(bled112) -> None:
    """Disconnects we asked for are not reported."""
    transport, port, _, links, _ = await bled112()
    await transport.connect(GANGLION)

    await transport.disconnect()
    transport.feed(bytes.fromhex("80 03 03 04 01 16 02"))

    assert port.written[-1] == bytes.fromhex("00 01 03 00 01")
    assert links == []
    await transport.close()


@pytest.mark.asyncio
async def test_missing_service_fails_connect(bled112, dongle) -> None:
    """A peripheral without the Ganglion service is abandoned."""
    transport, port, _, _, _ = await bled112()
    original = dongle.replies

    def without_ganglion_service(command: bytes) -> list[bytes]:
        replies = original(command)
        return [r for r in replies if not r.endswith(bytes.fromhex("84 FE"))]

    dongle.replies = without_ganglion_service

    with pytest.raises(BLEConnectionError, match="service not found"):
        await transport.connect(GANGLION)

    assert not transport.is_connected
    assert port.written[-1] == bytes.fromhex("00 01 03 00 01")
    await transport.close()


@pytest.mark.asyncio
async def test_silent_dongle_times_out(bled112, dongle) -> None:
    """Unanswered commands raise BLETimeoutError."""
    transport, _, _, _, _ = await bled112()
    dongle.silent = True

    with pytest.raises(BLETimeoutError):
        await transport.start_scan()
    await transport.close()


@pytest.mark.asyncio
async def test_write_requires_connection(bled112) -> None:
    """Writes without a link are refused."""
    transport, _, _, _, _ = await bled112()

    with pytest.raises(BLEConnectionError, match="Not connected"):
        await transport.write(b"b")
    await transport.close()


@pytest.mark.asyncio
async def test_serial_failure_while_connected(bled112) -> None:
    """A dead port mid-stream drops the link with an ERROR event."""
    transport, _, _, links, _ = await bled112()
    await transport.connect(GANGLION)

    transport._on_serial_error(OSError("device reports readiness to read but returned no data"))

    assert not transport.is_connected
    assert links[0].kind is LinkEventKind.ERROR
    assert isinstance(links[0].error, SerialPortError)
    await transport.close()


@pytest.mark.asyncio
async def test_serial_failure_while_scanning(bled112) -> None:
    """A dead port is reported even without a connection."""
    transport, _, _, links, _ = await bled112()
    await transport.start_scan()

    transport._on_serial_error(OSError("device reports readiness to read but returned no data"))

    assert [e.kind for e in links] == [LinkEventKind.ERROR]
    assert isinstance(links[0].error, SerialPortError)
    await transport.close()
