"""BLED112 serial bridge transport."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable

import serial
from serial.tools import list_ports

from ..exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    InvalidResponseError,
    ProtocolError,
    SerialPortError,
    TransportError,
)
from ..models.options import BLED112_BAUDRATE
from ..models.peripheral import PeripheralRecord
from ..protocol.bled112 import (
    CCC_ENABLE_NOTIFICATIONS,
    EVT_ATTCLIENT_ATTRIBUTE_VALUE,
    EVT_ATTCLIENT_FIND_INFORMATION_FOUND,
    EVT_ATTCLIENT_GROUP_FOUND,
    EVT_ATTCLIENT_PROCEDURE_COMPLETED,
    EVT_CONNECTION_DISCONNECTED,
    EVT_CONNECTION_STATUS,
    EVT_GAP_SCAN_RESPONSE,
    RSP_ATTCLIENT_ATTRIBUTE_WRITE,
    RSP_ATTCLIENT_FIND_INFORMATION,
    RSP_ATTCLIENT_READ_BY_GROUP_TYPE,
    RSP_CONNECTION_DISCONNECT,
    RSP_GAP_CONNECT_DIRECT,
    RSP_GAP_DISCOVER,
    RSP_GAP_END_PROCEDURE,
    UUID_CLIENT_CHARACTERISTIC_CONFIG,
    UUID_RECEIVE_CHARACTERISTIC,
    UUID_SEND_CHARACTERISTIC,
    UUID_SIMBLEE_SERVICE,
    Bled112Frame,
    Bled112FrameReader,
    CommandResponse,
    GroupFound,
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
    parse_procedure_completed,
    parse_scan_response,
    peripheral_from_scan_response,
)
from .base import LinkEvent, LinkEventKind, Transport

_LOGGER = logging.getLogger(__name__)

BLED112_VID = 0x2458
BLED112_PID = 0x0001
READ_TIMEOUT = 0.1  # seconds, bounds how long close() waits for the reader


def find_bled112_port() -> str | None:
    """Return the device path of the first attached BLED112 dongle, if any."""
    for port in list_ports.comports():
        if port.vid == BLED112_VID and port.pid == BLED112_PID:
            return port.device
    return None


class Bled112Transport(Transport):
    """Drives a Ganglion through a Bluegiga BLED112 USB dongle.

    The serial port is read on a daemon thread; every chunk is handed to
    the event loop with call_soon_threadsafe so frames are parsed and
    dispatched in arrival order on the loop thread. Commands are sent one
    at a time and each waits for its matching response.

    Connecting walks the GATT database the way the dongle requires:
    connect_direct, wait for connection_status, read_by_group_type to find
    the Simblee service, find_information to locate the characteristics,
    then write the CCC descriptor to enable notifications.
    """

    def __init__(
            self,
            port: str | None = None,
            baudrate: int = BLED112_BAUDRATE,
            timeout: float = 10.0,
            serial_factory: Callable[..., serial.Serial] = serial.Serial,
            debug: bool = False,
    ):
        """Initialize BLED112 transport.

        Args:
            port: Serial device path; auto-detected by USB VID/PID when None
            baudrate: Serial speed (default: 256000)
            timeout: Seconds to wait for each dongle response (default: 10)
            serial_factory: Callable opening the port, serial.Serial by default
            debug: Log a hex trace of every frame sent and received
        """
        super().__init__()
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self._serial_factory = serial_factory
        self.debug = debug

        self._serial: serial.Serial | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reader_thread: threading.Thread | None = None
        self._stop_reading = threading.Event()
        self._frames = Bled112FrameReader()

        self._command_lock = asyncio.Lock()
        self._pending: tuple[tuple[int, int], asyncio.Future] | None = None
        self._procedure_events: asyncio.Queue[Bled112Frame] | None = None

        self._scanning = False
        self._connection: int | None = None
        self._receive_handle: int | None = None
        self._send_handle: int | None = None
        self._ccc_handle: int | None = None

    async def open(self) -> None:
        """Open the serial port and start the reader thread.

        Raises:
            SerialPortError: If no dongle is found or the port cannot be opened
        """
        if self._serial is not None:
            return

        port = self.port or find_bled112_port()
        if port is None:
            raise SerialPortError("No BLED112 dongle found")

        try:
            self._serial = self._serial_factory(
                port=port,
                baudrate=self.baudrate,
                timeout=READ_TIMEOUT,
            )
        except (serial.SerialException, OSError) as e:
            raise SerialPortError(f"Failed to open {port}: {e}") from e

        self.port = port
        self._loop = asyncio.get_running_loop()
        self._frames.reset()
        self._stop_reading.clear()
        self._reader_thread = threading.Thread(
            target=self._read_loop,
            name="bled112-reader",
            daemon=True,
        )
        self._reader_thread.start()
        _LOGGER.debug("Opened BLED112 on %s at %d baud", port, self.baudrate)

    async def close(self) -> None:
        """Stop the reader thread and close the serial port."""
        self._stop_reading.set()
        port, self._serial = self._serial, None
        thread, self._reader_thread = self._reader_thread, None
        if thread is not None:
            await asyncio.to_thread(thread.join, READ_TIMEOUT * 10)
        if port is not None:
            try:
                port.close()
            except (serial.SerialException, OSError) as e:
                _LOGGER.warning("Error closing serial port: %s", e)
        self._scanning = False
        self._reset_handles()

    def _read_loop(self) -> None:
        port = self._serial
        loop = self._loop
        while port is not None and loop is not None and not self._stop_reading.is_set():
            try:
                data = port.read(port.in_waiting or 1)
            except (serial.SerialException, OSError) as e:
                if not self._stop_reading.is_set():
                    loop.call_soon_threadsafe(self._on_serial_error, e)
                return
            if data:
                loop.call_soon_threadsafe(self.feed, bytes(data))

    def _on_serial_error(self, error: Exception) -> None:
        _LOGGER.error("BLED112 serial failure: %s", error)
        self._reset_handles()
        self._scanning = False
        wrapped = SerialPortError(f"Serial port failure: {error}")
        self._fail_pending(wrapped)
        self._notify_link(LinkEvent(LinkEventKind.ERROR, reason=str(error), error=wrapped))

    def feed(self, data: bytes) -> None:
        """Process bytes received from the dongle (event loop thread only)."""
        if self.debug:
            _LOGGER.debug("<< %s", data.hex())
        for frame in self._frames.feed(data):
            try:
                self._handle_frame(frame)
            except ProtocolError as e:
                _LOGGER.warning("Dropping BLED112 frame: %s", e)

    def _handle_frame(self, frame: Bled112Frame) -> None:
        if not frame.is_event:
            pending = self._pending
            if pending is not None and pending[0] == frame.key and not pending[1].done():
                pending[1].set_result(frame)
            else:
                _LOGGER.debug("Unsolicited BLED112 response %s", frame.key)
            return

        key = frame.key
        if key == EVT_GAP_SCAN_RESPONSE:
            self._notify_discovery(peripheral_from_scan_response(parse_scan_response(frame)))
        elif key == EVT_ATTCLIENT_ATTRIBUTE_VALUE:
            value = parse_attribute_value(frame)
            if value.handle == self._receive_handle:
                self._notify_data(value.value)
        elif self._procedure_events is not None:
            self._procedure_events.put_nowait(frame)
        elif key == EVT_CONNECTION_DISCONNECTED:
            self._on_disconnected(frame)

    def _on_disconnected(self, frame: Bled112Frame) -> None:
        event = parse_connection_disconnected(frame)
        if self._connection is None or event.connection != self._connection:
            _LOGGER.debug("Ignoring disconnect of connection %d", event.connection)
            return
        _LOGGER.debug("Link lost: %s", event.reason_text)
        self._reset_handles()
        self._notify_link(LinkEvent(LinkEventKind.DOWN, reason=event.reason_text))

    def _fail_pending(self, error: Exception) -> None:
        if self._pending is not None and not self._pending[1].done():
            self._pending[1].set_exception(error)

    def _reset_handles(self) -> None:
        self._connection = None
        self._receive_handle = None
        self._send_handle = None
        self._ccc_handle = None

    def _write_raw(self, data: bytes) -> None:
        if self._serial is None:
            raise SerialPortError("Serial port not open")
        if self.debug:
            _LOGGER.debug(">> %s", data.hex())
        try:
            self._serial.write(data)
        except (serial.SerialException, OSError) as e:
            raise SerialPortError(f"Serial write failed: {e}") from e

    async def _command(self, data: bytes, key: tuple[int, int], action: str) -> CommandResponse:
        """Send one command and wait for its response.

        Raises:
            BLETimeoutError: If the dongle does not answer in time
            BLEConnectionError: If the dongle reports a failure result
            SerialPortError: If the port fails
        """
        async with self._command_lock:
            future = asyncio.get_running_loop().create_future()
            self._pending = (tuple(key), future)
            try:
                self._write_raw(data)
                frame = await asyncio.wait_for(future, self.timeout)
            except asyncio.TimeoutError as e:
                raise BLETimeoutError(f"{action}: no response within {self.timeout}s") from e
            finally:
                self._pending = None

        response = parse_command_response(frame)
        try:
            check_result(response, action)
        except InvalidResponseError as e:
            raise BLEConnectionError(str(e)) from e
        return response

    async def _next_event(self, *keys: tuple[int, int]) -> Bled112Frame:
        """Wait for the next procedure event with one of the given keys."""
        if self._procedure_events is None:
            raise BLEConnectionError("No procedure in progress")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        wanted = {tuple(key) for key in keys}
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise BLETimeoutError(f"No BLED112 event within {self.timeout}s")
            try:
                frame = await asyncio.wait_for(self._procedure_events.get(), remaining)
            except asyncio.TimeoutError as e:
                raise BLETimeoutError(f"No BLED112 event within {self.timeout}s") from e
            if frame.key == EVT_CONNECTION_DISCONNECTED:
                event = parse_connection_disconnected(frame)
                raise BLEConnectionError(f"Disconnected during setup: {event.reason_text}")
            if frame.key in wanted:
                return frame

    async def start_scan(self) -> None:
        await self.open()
        if self._scanning:
            return
        await self._command(build_gap_discover(), RSP_GAP_DISCOVER, "Scan start")
        self._scanning = True
        _LOGGER.debug("Scan started")

    async def stop_scan(self) -> None:
        if not self._scanning:
            return
        self._scanning = False
        await self._command(build_gap_end_procedure(), RSP_GAP_END_PROCEDURE, "Scan stop")
        _LOGGER.debug("Scan stopped")

    async def connect(self, peripheral: PeripheralRecord) -> None:
        """Connect through the dongle and enable notifications.

        Raises:
            BLEConnectionError: If any setup step fails
            BLETimeoutError: If the dongle stops answering
            SerialPortError: If the port fails
        """
        await self.open()
        if self._connection is not None:
            return
        if self._scanning:
            await self.stop_scan()

        self._procedure_events = asyncio.Queue()
        connection: int | None = None
        try:
            response = await self._command(
                build_connect_direct(peripheral.address_bytes, peripheral.address_type),
                RSP_GAP_CONNECT_DIRECT,
                "Connect direct",
            )
            connection = response.connection
            await self._wait_for_link(connection)
            service = await self._discover_service(connection)
            await self._discover_characteristics(connection, service)
            await self._enable_notifications(connection)
            self._connection = connection
        except TransportError:
            self._reset_handles()
            if connection is not None:
                await self._abandon(connection)
            raise
        finally:
            self._procedure_events = None
        _LOGGER.debug("Connected to %s as connection %d", peripheral.address, connection)

    async def _abandon(self, connection: int) -> None:
        try:
            await self._command(build_disconnect(connection), RSP_CONNECTION_DISCONNECT, "Disconnect")
        except TransportError as e:
            _LOGGER.debug("Ignoring disconnect error after failed connect: %s", e)

    async def _wait_for_link(self, connection: int) -> None:
        while True:
            status = parse_connection_status(await self._next_event(EVT_CONNECTION_STATUS))
            if status.connection == connection and status.is_connected:
                return

    async def _discover_service(self, connection: int) -> GroupFound:
        await self._command(
            build_read_by_group_type(connection),
            RSP_ATTCLIENT_READ_BY_GROUP_TYPE,
            "Read by group type",
        )
        service = None
        while True:
            frame = await self._next_event(EVT_ATTCLIENT_GROUP_FOUND, EVT_ATTCLIENT_PROCEDURE_COMPLETED)
            if frame.key == EVT_ATTCLIENT_PROCEDURE_COMPLETED:
                break
            group = parse_group_found(frame)
            if group.uuid == UUID_SIMBLEE_SERVICE:
                service = group
        if service is None:
            raise BLEConnectionError("Ganglion service not found")
        return service

    async def _discover_characteristics(self, connection: int, service: GroupFound) -> None:
        await self._command(
            build_find_information(connection, service.start, service.end),
            RSP_ATTCLIENT_FIND_INFORMATION,
            "Find information",
        )
        descriptors: list[int] = []
        while True:
            frame = await self._next_event(
                EVT_ATTCLIENT_FIND_INFORMATION_FOUND, EVT_ATTCLIENT_PROCEDURE_COMPLETED
            )
            if frame.key == EVT_ATTCLIENT_PROCEDURE_COMPLETED:
                break
            info = parse_find_information_found(frame)
            if info.uuid == UUID_RECEIVE_CHARACTERISTIC:
                self._receive_handle = info.handle
            elif info.uuid == UUID_SEND_CHARACTERISTIC:
                self._send_handle = info.handle
            elif info.uuid == UUID_CLIENT_CHARACTERISTIC_CONFIG:
                descriptors.append(info.handle)

        if self._receive_handle is None or self._send_handle is None:
            raise BLEConnectionError("Ganglion characteristics not found")

        # The receive characteristic's CCC is the first descriptor after it
        following = [h for h in descriptors if h > self._receive_handle]
        if following:
            self._ccc_handle = min(following)
        elif descriptors:
            self._ccc_handle = descriptors[-1]
        else:
            raise BLEConnectionError("Notification descriptor not found")

    async def _enable_notifications(self, connection: int) -> None:
        await self._command(
            build_attribute_write(connection, self._ccc_handle, CCC_ENABLE_NOTIFICATIONS),
            RSP_ATTCLIENT_ATTRIBUTE_WRITE,
            "Enable notifications",
        )
        completed = parse_procedure_completed(
            await self._next_event(EVT_ATTCLIENT_PROCEDURE_COMPLETED)
        )
        try:
            check_result(completed, "Enable notifications")
        except InvalidResponseError as e:
            raise BLEConnectionError(str(e)) from e

    async def disconnect(self) -> None:
        connection = self._connection
        if connection is None:
            return
        self._reset_handles()
        try:
            await self._command(build_disconnect(connection), RSP_CONNECTION_DISCONNECT, "Disconnect")
        except TransportError as e:
            _LOGGER.warning("Error during disconnect: %s", e)

    async def write(self, data: bytes) -> None:
        """Write command bytes to the Ganglion's send characteristic.

        Raises:
            BLEConnectionError: If not connected or the dongle rejects the write
        """
        if self._connection is None or self._send_handle is None:
            raise BLEConnectionError("Not connected")
        await self._command(
            build_attribute_write(self._connection, self._send_handle, data),
            RSP_ATTCLIENT_ATTRIBUTE_WRITE,
            "Attribute write",
        )

    @property
    def is_connected(self) -> bool:
        return self._connection is not None
