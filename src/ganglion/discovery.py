"""One-shot discovery of nearby Ganglion boards over native BLE."""

from __future__ import annotations

import logging

from bleak import BleakScanner

from .models.peripheral import PeripheralRecord

_LOGGER = logging.getLogger(__name__)


async def discover_devices(timeout: float = 10.0) -> list[PeripheralRecord]:
    """Scan for Ganglion boards.

    Args:
        timeout: Scan duration in seconds (default: 10)

    Returns:
        Ganglions seen during the scan, strongest signal first
    """
    _LOGGER.debug("Scanning for Ganglion devices (timeout=%ss)", timeout)
    found = await BleakScanner.discover(timeout=timeout, return_adv=True)

    peripherals = []
    for device, advertisement in found.values():
        record = PeripheralRecord(
            name=advertisement.local_name or device.name or "",
            address=device.address,
            rssi=advertisement.rssi,
            handle=device,
        )
        if record.is_ganglion:
            peripherals.append(record)

    peripherals.sort(key=lambda p: p.rssi if p.rssi is not None else -999, reverse=True)
    _LOGGER.debug("Found %d Ganglion device(s)", len(peripherals))
    return peripherals
