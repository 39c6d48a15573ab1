"""Native BLE transport."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError
from bleak_retry_connector import BleakClientWithServiceCache, establish_connection

from ..exceptions import BLEConnectionError, BLETimeoutError
from ..models.peripheral import PeripheralRecord
from ..protocol.commands import (
    RECEIVE_CHARACTERISTIC_UUID,
    SEND_CHARACTERISTIC_UUID,
    SIMBLEE_SERVICE_UUID,
)
from .base import LinkEvent, LinkEventKind, Transport

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice
    from bleak.backends.scanner import AdvertisementData

_LOGGER = logging.getLogger(__name__)


class BLEConnection(Transport):
    """Talks to the Ganglion's Simblee radio through the OS BLE stack.

    Features:
    - Discovery with a BleakScanner detection callback
    - Automatic retry logic with bleak-retry-connector
    - Service caching for faster reconnections
    - Notifications on the receive characteristic forwarded as raw frames
    """

    def __init__(
            self,
            timeout: float = 10.0,
            max_attempts: int = 4,
            use_services_cache: bool = True,
    ):
        """Initialize native BLE transport.

        Args:
            timeout: Connection timeout in seconds (default: 10)
            max_attempts: Maximum connection attempts for bleak-retry-connector (default: 4)
            use_services_cache: Enable GATT service caching for faster reconnections (default: True)
        """
        super().__init__()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.use_services_cache = use_services_cache

        self._scanner: BleakScanner | None = None
        self._client: BleakClient | None = None
        self._send_characteristic = None
        self._receive_characteristic = None
        self._disconnect_requested = False

    async def start_scan(self) -> None:
        """Start scanning for advertising peripherals.

        Raises:
            BLEConnectionError: If the adapter refuses to scan
        """
        if self._scanner is not None:
            return

        scanner = BleakScanner(detection_callback=self._detection_callback)
        try:
            await scanner.start()
        except (BleakError, OSError) as e:
            raise BLEConnectionError(f"Failed to start scan: {e}") from e
        self._scanner = scanner
        _LOGGER.debug("Scan started")

    async def stop_scan(self) -> None:
        """Stop scanning."""
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except (BleakError, OSError) as e:
            raise BLEConnectionError(f"Failed to stop scan: {e}") from e
        _LOGGER.debug("Scan stopped")

    def _detection_callback(self, device: BLEDevice, advertisement: AdvertisementData) -> None:
        self._notify_discovery(
            PeripheralRecord(
                name=advertisement.local_name or device.name or "",
                address=device.address,
                rssi=advertisement.rssi,
                handle=device,
            )
        )

    async def connect(self, peripheral: PeripheralRecord) -> None:
        """Establish BLE connection and subscribe to the receive characteristic.

        Raises:
            BLEConnectionError: If connection fails
            BLETimeoutError: If connection times out
        """
        if self._client and self._client.is_connected:
            return

        self._disconnect_requested = False
        try:
            _LOGGER.debug(
                "Connecting to %s with bleak-retry-connector (max_attempts=%d)",
                peripheral.address,
                self.max_attempts
            )

            if peripheral.handle is not None:
                device = peripheral.handle
            else:
                device = await BleakScanner.find_device_by_address(
                    peripheral.address,
                    timeout=self.timeout
                )
                if device is None:
                    raise BLEConnectionError(
                        f"Device {peripheral.address} not found during scan"
                    )

            self._client = await establish_connection(
                client_class=BleakClientWithServiceCache,
                device=device,
                name=peripheral.name or device.name or peripheral.address,
                disconnected_callback=self._disconnected_callback,
                max_attempts=self.max_attempts,
                use_services_cache=self.use_services_cache,
                timeout=self.timeout,
            )

            _LOGGER.debug("Connected to %s", peripheral.address)

            await self._setup_notifications()

        except asyncio.TimeoutError as e:
            await self._discard_client()
            raise BLETimeoutError(
                f"Connection timeout after {self.timeout}s"
            ) from e
        except BLEConnectionError:
            await self._discard_client()
            raise
        except Exception as e:
            await self._discard_client()
            raise BLEConnectionError(
                f"Failed to connect: {e}"
            ) from e

    async def disconnect(self) -> None:
        """Disconnect from device."""
        self._disconnect_requested = True
        if self._client and self._client.is_connected:
            try:
                _LOGGER.debug("Disconnecting")
                await self._client.disconnect()
            except Exception as e:
                _LOGGER.warning("Error during disconnect: %s", e)
        self._reset_handles()

    async def _discard_client(self) -> None:
        self._disconnect_requested = True
        if self._client is not None and self._client.is_connected:
            try:
                await self._client.disconnect()
            except Exception as e:
                _LOGGER.debug("Ignoring disconnect error after failed connect: %s", e)
        self._reset_handles()

    def _reset_handles(self) -> None:
        self._client = None
        self._send_characteristic = None
        self._receive_characteristic = None

    async def _setup_notifications(self) -> None:
        """Resolve the Simblee characteristics and start notifications.

        Raises:
            BLEConnectionError: If service/characteristic not found
        """
        if not self._client or not self._client.is_connected:
            raise BLEConnectionError("Not connected")

        service = self._client.services.get_service(SIMBLEE_SERVICE_UUID)
        if not service:
            raise BLEConnectionError(
                f"Service {SIMBLEE_SERVICE_UUID} not found"
            )

        self._receive_characteristic = service.get_characteristic(RECEIVE_CHARACTERISTIC_UUID)
        self._send_characteristic = service.get_characteristic(SEND_CHARACTERISTIC_UUID)
        if self._receive_characteristic is None or self._send_characteristic is None:
            raise BLEConnectionError("Ganglion characteristics not found")

        await self._client.start_notify(
            self._receive_characteristic,
            self._notification_callback,
        )

        _LOGGER.debug("Notifications started")

    def _notification_callback(self, sender, data: bytearray) -> None:
        """Handle incoming BLE notifications.

        Args:
            sender: Characteristic that sent notification
            data: Notification data
        """
        self._notify_data(bytes(data))

    def _disconnected_callback(self, client: BleakClient) -> None:
        if self._disconnect_requested:
            return
        _LOGGER.debug("Link lost")
        self._reset_handles()
        self._notify_link(LinkEvent(LinkEventKind.DOWN, reason="Peripheral disconnected"))

    async def write(self, data: bytes) -> None:
        """Write command bytes to the send characteristic.

        Raises:
            BLEConnectionError: If not connected or write fails
        """
        if not self._client or not self._client.is_connected:
            raise BLEConnectionError("Not connected")

        if not self._send_characteristic:
            raise BLEConnectionError("Send characteristic not resolved")

        try:
            await self._client.write_gatt_char(
                self._send_characteristic,
                data,
                response=True,
            )
        except Exception as e:
            raise BLEConnectionError(f"Write failed: {e}") from e

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to device."""
        return self._client is not None and self._client.is_connected
