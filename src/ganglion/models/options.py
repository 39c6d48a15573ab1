"""Session configuration."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping

from .enums import AccelEmitPolicy, TransportKind

BLED112_BAUDRATE = 256000


@dataclass(frozen=True, slots=True)
class GanglionOptions:
    """Options recognized by GanglionDevice.

    Attributes:
        transport: Native BLE or BLED112 serial bridge
        serial_port: BLED112 port; auto-detected when None
        baudrate: BLED112 serial speed
        send_counts: Emit raw ADC/accelerometer counts instead of volts/g
        verbose: Log state transitions at INFO instead of DEBUG
        debug: Log a hex trace of every inbound and outbound frame
        auto_reconnect: Reconnect after an unexpected (not manual) disconnect
        search_timeout: Default search timeout in seconds
        connect_timeout: Connection timeout in seconds
        max_attempts: Native BLE connection attempts
        accel_emit_policy: When accelerometer vectors are published
        accel_emit_interval: Publish every Nth axis update (EVERY_UPDATE policy)
    """

    transport: TransportKind = TransportKind.BLE
    serial_port: str | None = None
    baudrate: int = BLED112_BAUDRATE
    send_counts: bool = False
    verbose: bool = False
    debug: bool = False
    auto_reconnect: bool = False
    search_timeout: float = 20.0
    connect_timeout: float = 10.0
    max_attempts: int = 4
    accel_emit_policy: AccelEmitPolicy = AccelEmitPolicy.EVERY_UPDATE
    accel_emit_interval: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.transport, TransportKind):
            raise ValueError(f"Invalid transport: {self.transport!r}")
        if not isinstance(self.accel_emit_policy, AccelEmitPolicy):
            raise ValueError(f"Invalid accel_emit_policy: {self.accel_emit_policy!r}")
        if self.search_timeout <= 0:
            raise ValueError(
                f"search_timeout must be positive, got {self.search_timeout}"
            )
        if self.connect_timeout <= 0:
            raise ValueError(
                f"connect_timeout must be positive, got {self.connect_timeout}"
            )
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.accel_emit_interval < 1:
            raise ValueError(
                f"accel_emit_interval must be >= 1, got {self.accel_emit_interval}"
            )
        if self.baudrate <= 0:
            raise ValueError(f"baudrate must be positive, got {self.baudrate}")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> GanglionOptions:
        """Build options from a plain mapping (e.g. parsed JSON or CLI args).

        Enum options accept either the enum member, its value or its name.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(values) - set(known))
        if unknown:
            raise ValueError(f"{', '.join(unknown)} is not a valid option")

        kwargs: dict[str, Any] = {}
        for key, value in values.items():
            if key == "transport":
                value = _coerce_enum(TransportKind, value, key)
            elif key == "accel_emit_policy":
                value = _coerce_enum(AccelEmitPolicy, value, key)
            kwargs[key] = value
        return cls(**kwargs)


def _coerce_enum(enum_cls: type[Enum], value: Any, name: str) -> Enum:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.lower())
        except ValueError:
            pass
        try:
            return enum_cls[value.upper()]
        except KeyError:
            pass
    raise ValueError(f"Invalid {name}: {value!r}")
