"""Discovered peripheral identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Final

GANGLION_NAME_PREFIX: Final[str] = "Ganglion"


def format_address(address: bytes) -> str:
    """Format a 6-byte identifier as AA:BB:CC:DD:EE:FF."""
    if len(address) != 6:
        raise ValueError(f"Address must be 6 bytes, got {len(address)}")
    return ":".join(f"{b:02X}" for b in address)


def parse_address(address: str) -> bytes:
    """Parse AA:BB:CC:DD:EE:FF (or dash separated) into 6 bytes."""
    parts = address.replace("-", ":").split(":")
    if len(parts) != 6:
        raise ValueError(f"Invalid address: {address!r}")
    try:
        return bytes(int(part, 16) for part in parts)
    except ValueError as e:
        raise ValueError(f"Invalid address: {address!r}") from e


@dataclass(frozen=True, slots=True)
class PeripheralRecord:
    """A BLE peripheral seen during discovery.

    Attributes:
        name: Advertised local name (empty when the advertisement had none)
        address: Link address, most significant byte first
        rssi: Signal strength in dBm
        address_type: BLE address type (0 public, 1 random), used by BLED112
        handle: Platform object for native BLE (bleak BLEDevice), if any
    """

    name: str
    address: str
    rssi: int | None = None
    address_type: int = 1
    handle: Any = field(default=None, compare=False, repr=False)

    @property
    def is_ganglion(self) -> bool:
        return GANGLION_NAME_PREFIX in self.name

    @property
    def address_bytes(self) -> bytes:
        return parse_address(self.address)

    def matches(self, identifier: str) -> bool:
        """True if identifier is this peripheral's name or address."""
        return identifier == self.name or identifier.upper() == self.address.upper()
