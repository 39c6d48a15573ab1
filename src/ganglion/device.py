"""Main Ganglion session class."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable

from .exceptions import (
    AlreadyConnectedError,
    AlreadyScanningError,
    GanglionError,
    InvalidStateError,
    NotConnectedError,
    PeripheralNotFoundError,
    SearchTimeoutError,
    TransportError,
)
from .models.enums import ConnectionState
from .models.events import (
    Closed,
    ErrorOccurred,
    GanglionFound,
    Ready,
    SessionEvent,
)
from .models.options import GanglionOptions
from .models.peripheral import PeripheralRecord
from .protocol import (
    AccelerometerExtractor,
    BoardCommand,
    MultiPacketAssembler,
    PacketRouter,
    SampleDecompressor,
    build_channel_command,
)
from .protocol.commands import NUMBER_OF_CHANNELS, SAMPLE_RATE
from .transport import (
    DiscoveryEvent,
    LinkEvent,
    LinkEventKind,
    Transport,
    TransportListener,
    create_transport,
)

_LOGGER = logging.getLogger(__name__)

EventListener = Callable[[SessionEvent], None]

_LINK_ACTIVE = (
    ConnectionState.CONNECTING,
    ConnectionState.CONNECTED,
    ConnectionState.STREAMING,
    ConnectionState.DISCONNECTING,
)


class GanglionDevice:
    """OpenBCI Ganglion session.

    Main API for discovering a Ganglion, connecting to it and turning its
    notification stream into SessionEvents. The same state machine drives
    native BLE and the BLED112 serial bridge.

    Usage:
        async with GanglionDevice() as device:
            device.add_listener(print)
            await device.search_start()
            await device.connect("Ganglion-54ca")
            await device.stream_start()

        # Consume events as an async iterator
        async for event in device.events():
            if isinstance(event, SampleReceived):
                ...
    """

    def __init__(
            self,
            options: GanglionOptions | None = None,
            transport: Transport | None = None,
    ):
        """Initialize a session.

        Args:
            options: Session configuration (default: native BLE, volts)
            transport: Explicit transport; built from options when None
        """
        self.options = options or GanglionOptions()
        self._transport = transport or create_transport(self.options)
        self._transport.set_listener(
            TransportListener(
                on_discovery=self._on_discovery,
                on_link=self._on_link,
                on_data=self._on_data,
            )
        )

        self._decompressor = SampleDecompressor(send_counts=self.options.send_counts)
        self._assembler = MultiPacketAssembler()
        self._accelerometer = AccelerometerExtractor(
            send_counts=self.options.send_counts,
            policy=self.options.accel_emit_policy,
            interval=self.options.accel_emit_interval,
        )
        self._router = PacketRouter(self._decompressor, self._assembler, self._accelerometer)

        self._state = ConnectionState.IDLE
        self._listeners: list[EventListener] = []
        self._discovered: dict[str, PeripheralRecord] = {}
        self._found_future: asyncio.Future[PeripheralRecord] | None = None
        self._peripheral: PeripheralRecord | None = None
        self._manual_disconnect = False
        self._close_emitted = True
        self._write_in_flight = False
        self._reconnect_task: asyncio.Task | None = None

    async def __aenter__(self) -> GanglionDevice:
        """Open the transport (context manager entry)."""
        await self._transport.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Disconnect and release the transport (context manager exit)."""
        await self.close()

    async def close(self) -> None:
        """Disconnect if needed and release transport resources."""
        await self._cancel_reconnect()
        if self._state in (ConnectionState.CONNECTED, ConnectionState.STREAMING):
            await self.disconnect()
        elif self._state is ConnectionState.SCANNING:
            await self.search_stop()
        await self._transport.close()

    # Events

    def add_listener(self, listener: EventListener) -> Callable[[], None]:
        """Register a callback for every SessionEvent.

        Returns:
            Function removing the listener again
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def events(self) -> AsyncIterator[SessionEvent]:
        """Iterate over events emitted from now on."""
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        remove = self.add_listener(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            remove()

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _LOGGER.exception("Event listener failed for %s", event.type.value)

    def _transition(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        level = logging.INFO if self.options.verbose else logging.DEBUG
        _LOGGER.log(level, "State %s -> %s", self._state.value, state.value)
        self._state = state

    # Search

    async def search_start(self, timeout: float | None = None) -> PeripheralRecord:
        """Scan until a Ganglion is found.

        Every Ganglion seen is published as a GanglionFound event; the
        first one ends the search.

        Args:
            timeout: Search timeout in seconds (default: options.search_timeout)

        Returns:
            The first Ganglion discovered

        Raises:
            AlreadyScanningError: If a search is already running
            InvalidStateError: If a link is active
            SearchTimeoutError: If nothing was found in time; scanning is stopped
            TransportError: If the transport cannot scan
        """
        if self._state is ConnectionState.SCANNING:
            raise AlreadyScanningError("Search already in progress")
        if self._state in _LINK_ACTIVE:
            raise InvalidStateError(f"Cannot search while {self._state.value}")

        timeout = self.options.search_timeout if timeout is None else timeout
        previous = self._state
        self._found_future = asyncio.get_running_loop().create_future()
        self._transition(ConnectionState.SCANNING)
        try:
            await self._transport.start_scan()
        except TransportError:
            self._found_future = None
            self._transition(previous)
            raise

        try:
            peripheral = await asyncio.wait_for(self._found_future, timeout)
        except asyncio.TimeoutError as e:
            await self._stop_scan_quietly()
            self._transition(ConnectionState.IDLE)
            raise SearchTimeoutError(f"No Ganglion found within {timeout}s") from e
        except asyncio.CancelledError:
            if self._state is ConnectionState.SCANNING:
                await self._stop_scan_quietly()
                self._transition(ConnectionState.IDLE)
            raise
        finally:
            self._found_future = None

        await self._stop_scan_quietly()
        self._transition(ConnectionState.FOUND)
        return peripheral

    async def search_stop(self) -> None:
        """Stop an active search; a pending search_start fails.

        Raises:
            InvalidStateError: If no search is running
        """
        if self._state is not ConnectionState.SCANNING:
            raise InvalidStateError("No search in progress")

        future = self._found_future
        if future is not None and not future.done():
            future.set_exception(InvalidStateError("Search stopped"))
        await self._stop_scan_quietly()
        self._transition(ConnectionState.FOUND if self._discovered else ConnectionState.IDLE)

    async def _stop_scan_quietly(self) -> None:
        try:
            await self._transport.stop_scan()
        except TransportError as e:
            _LOGGER.warning("Failed to stop scan: %s", e)

    def _on_discovery(self, event: DiscoveryEvent) -> None:
        peripheral = event.peripheral
        if not peripheral.is_ganglion:
            return

        self._discovered[peripheral.address] = peripheral
        _LOGGER.debug("Found %s (%s) rssi=%s", peripheral.name, peripheral.address, peripheral.rssi)
        self._emit(GanglionFound(peripheral))
        if self._found_future is not None and not self._found_future.done():
            self._found_future.set_result(peripheral)

    @property
    def discovered_peripherals(self) -> list[PeripheralRecord]:
        """Ganglions seen by searches on this session."""
        return list(self._discovered.values())

    # Connection

    async def connect(self, identifier: str | PeripheralRecord) -> None:
        """Connect to a Ganglion and enable notifications.

        Args:
            identifier: Name or address of a discovered Ganglion, or a record

        Raises:
            AlreadyConnectedError: If a link is already active
            PeripheralNotFoundError: If the name or address was never discovered
            TransportError: If the link cannot be established
        """
        if self._state in _LINK_ACTIVE:
            raise AlreadyConnectedError(f"Already {self._state.value}")

        peripheral = self._resolve(identifier)
        if self._state is ConnectionState.SCANNING:
            await self.search_stop()

        self._reset_session()
        self._manual_disconnect = False
        self._close_emitted = False
        self._peripheral = peripheral
        self._transition(ConnectionState.CONNECTING)
        try:
            await self._transport.connect(peripheral)
        except TransportError as e:
            self._close_emitted = True
            self._transition(ConnectionState.CLOSED)
            self._emit(ErrorOccurred(e))
            raise
        except asyncio.CancelledError:
            await self._abort_connect()
            raise

        _LOGGER.info("Connected to %s", peripheral.name or peripheral.address)
        self._transition(ConnectionState.CONNECTED)
        self._emit(Ready(peripheral))

    def _resolve(self, identifier: str | PeripheralRecord) -> PeripheralRecord:
        if isinstance(identifier, PeripheralRecord):
            return identifier
        for peripheral in self._discovered.values():
            if peripheral.matches(identifier):
                return peripheral
        raise PeripheralNotFoundError(f"No discovered peripheral named {identifier!r}")

    async def _abort_connect(self) -> None:
        _LOGGER.debug("Connect cancelled, tearing down partial link")
        try:
            await self._transport.disconnect()
        except TransportError as e:
            _LOGGER.debug("Ignoring disconnect error after cancelled connect: %s", e)
        self._close_emitted = True
        self._reset_session()
        self._transition(ConnectionState.CLOSED)

    async def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            _LOGGER.debug("Pending reconnect cancelled")

    async def disconnect(self, stop_streaming: bool = True) -> None:
        """Tear down the link; always ends Closed with one Closed event.

        Args:
            stop_streaming: Send the stop-stream command first if streaming

        Raises:
            NotConnectedError: If no link is active
        """
        if self._state not in (ConnectionState.CONNECTED, ConnectionState.STREAMING):
            raise NotConnectedError(f"Cannot disconnect while {self._state.value}")

        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

        self._manual_disconnect = True
        if stop_streaming and self._state is ConnectionState.STREAMING:
            try:
                await self.stream_stop()
            except GanglionError as e:
                _LOGGER.warning("Failed to stop stream before disconnect: %s", e)

        self._transition(ConnectionState.DISCONNECTING)
        try:
            await self._transport.stop_scan()
        except TransportError as e:
            _LOGGER.debug("Ignoring scan stop failure during disconnect: %s", e)
        try:
            await self._transport.disconnect()
        except TransportError as e:
            _LOGGER.warning("Error during disconnect: %s", e)
        self._handle_closed(manual=True, reason="Disconnected by request")

    def _on_link(self, event: LinkEvent) -> None:
        if event.kind is LinkEventKind.UP:
            return
        if event.kind is LinkEventKind.ERROR and event.error is not None:
            self._emit(ErrorOccurred(event.error))
        if self._state is ConnectionState.SCANNING:
            self._fail_search(event)
        elif self._state in (ConnectionState.CONNECTED, ConnectionState.STREAMING):
            self._handle_closed(manual=self._manual_disconnect, reason=event.reason)
        elif event.kind is LinkEventKind.ERROR and self._state in (
                ConnectionState.IDLE,
                ConnectionState.FOUND,
        ):
            self._transition(ConnectionState.CLOSED)

    def _fail_search(self, event: LinkEvent) -> None:
        error = event.error
        if not isinstance(error, TransportError):
            error = TransportError(event.reason or "Transport failed while scanning")
        future = self._found_future
        if future is not None and not future.done():
            future.set_exception(error)
        self._transition(ConnectionState.CLOSED)
        _LOGGER.info("Search aborted (%s)", error)
        self._emit(Closed(manual=False, reason=event.reason))

    def _handle_closed(self, manual: bool, reason: str | None) -> None:
        if self._close_emitted:
            return
        self._close_emitted = True
        self._reset_session()
        self._transition(ConnectionState.CLOSED)
        _LOGGER.info("Connection closed (%s)", reason or ("manual" if manual else "unexpected"))
        self._emit(Closed(manual=manual, reason=reason))

        if not manual and self.options.auto_reconnect and self._peripheral is not None:
            self._reconnect_task = asyncio.get_running_loop().create_task(
                self._reconnect(self._peripheral)
            )

    async def _reconnect(self, peripheral: PeripheralRecord) -> None:
        _LOGGER.info("Reconnecting to %s", peripheral.name or peripheral.address)
        try:
            await self.connect(peripheral)
        except GanglionError as e:
            _LOGGER.warning("Reconnect failed: %s", e)
        finally:
            self._reconnect_task = None

    def _reset_session(self) -> None:
        self._decompressor.reset()
        self._assembler.reset()
        self._accelerometer.reset()
        self._write_in_flight = False

    # Streaming

    async def stream_start(self) -> None:
        """Start sample streaming.

        Raises:
            NotConnectedError: If not connected
            InvalidStateError: If already streaming; nothing is sent
            TransportError: If the write fails
        """
        if self._state is ConnectionState.STREAMING:
            raise InvalidStateError("Already streaming")
        self._require_connection()
        if self._write_in_flight:
            raise InvalidStateError("Another write is in flight")

        self._decompressor.reset()
        await self.write(BoardCommand.STREAM_START.value)
        self._transition(ConnectionState.STREAMING)

    async def stream_stop(self) -> None:
        """Stop sample streaming.

        Raises:
            NotConnectedError: If not connected
            InvalidStateError: If not streaming; nothing is sent
            TransportError: If the write fails
        """
        self._require_connection()
        if self._state is not ConnectionState.STREAMING:
            raise InvalidStateError("Not streaming")

        await self.write(BoardCommand.STREAM_STOP.value)
        self._transition(ConnectionState.CONNECTED)

    def _on_data(self, data: bytes) -> None:
        if self.options.debug:
            _LOGGER.debug("<< %s", data.hex())
        for event in self._router.route(data):
            self._emit(event)

    # Commands

    async def write(self, data: bytes) -> None:
        """Write raw bytes to the board.

        Raises:
            NotConnectedError: If not connected
            InvalidStateError: If another write is still in flight
            TransportError: If the write fails
        """
        self._require_connection()
        if self._write_in_flight:
            raise InvalidStateError("Another write is in flight")

        if self.options.debug:
            _LOGGER.debug(">> %s", data.hex())
        self._write_in_flight = True
        try:
            await self._transport.write(data)
        except TransportError as e:
            self._emit(ErrorOccurred(e))
            raise
        finally:
            self._write_in_flight = False

    def _require_connection(self) -> None:
        if self._state not in (ConnectionState.CONNECTED, ConnectionState.STREAMING):
            raise NotConnectedError("Ganglion not connected")

    async def channel_on(self, channel_number: int) -> None:
        """Turn on channel 1-4.

        Raises:
            ValueError: If channel_number is not 1-4
        """
        command = build_channel_command(channel_number, enable=True)
        await self.write(command)

    async def channel_off(self, channel_number: int) -> None:
        """Turn off channel 1-4.

        Raises:
            ValueError: If channel_number is not 1-4
        """
        command = build_channel_command(channel_number, enable=False)
        await self.write(command)

    async def accelerometer_start(self) -> None:
        await self.write(BoardCommand.ACCEL_START.value)

    async def accelerometer_stop(self) -> None:
        await self.write(BoardCommand.ACCEL_STOP.value)

    async def impedance_start(self) -> None:
        await self.write(BoardCommand.IMPEDANCE_START.value)

    async def impedance_stop(self) -> None:
        await self.write(BoardCommand.IMPEDANCE_STOP.value)

    async def soft_reset(self) -> None:
        await self.write(BoardCommand.SOFT_RESET.value)

    async def synthetic_data_enable(self) -> None:
        await self.write(BoardCommand.SYNTHETIC_DATA_ENABLE.value)

    async def synthetic_data_disable(self) -> None:
        await self.write(BoardCommand.SYNTHETIC_DATA_DISABLE.value)

    async def print_register_settings(self) -> None:
        """Ask the board to dump its registers as a multi-packet message."""
        await self.write(BoardCommand.REGISTER_QUERY.value)

    # Introspection

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state in (ConnectionState.CONNECTED, ConnectionState.STREAMING)

    @property
    def is_streaming(self) -> bool:
        return self._state is ConnectionState.STREAMING

    @property
    def is_searching(self) -> bool:
        return self._state is ConnectionState.SCANNING

    @property
    def peripheral(self) -> PeripheralRecord | None:
        """Peripheral of the current or most recent connection."""
        return self._peripheral

    @property
    def number_of_channels(self) -> int:
        return NUMBER_OF_CHANNELS

    @property
    def sample_rate(self) -> int:
        return SAMPLE_RATE

    @property
    def dropped_packet_count(self) -> int:
        """Packets lost since streaming last started."""
        return self._decompressor.state.dropped_packet_counter

    def get_multi_packet_buffer(self) -> bytes | None:
        return self._assembler.buffer

    def destroy_multi_packet_buffer(self) -> None:
        self._assembler.reset()
