"""Transports carrying Ganglion frames."""

from __future__ import annotations

from ..models.enums import TransportKind
from ..models.options import GanglionOptions
from .base import DiscoveryEvent, LinkEvent, LinkEventKind, Transport, TransportListener
from .bled112 import Bled112Transport, find_bled112_port
from .connection import BLEConnection


def create_transport(options: GanglionOptions) -> Transport:
    """Build the transport selected by the options."""
    if options.transport is TransportKind.BLED112:
        return Bled112Transport(
            port=options.serial_port,
            baudrate=options.baudrate,
            timeout=options.connect_timeout,
            debug=options.debug,
        )
    return BLEConnection(
        timeout=options.connect_timeout,
        max_attempts=options.max_attempts,
    )


__all__ = [
    "BLEConnection",
    "Bled112Transport",
    "DiscoveryEvent",
    "LinkEvent",
    "LinkEventKind",
    "Transport",
    "TransportListener",
    "create_transport",
    "find_bled112_port",
]
