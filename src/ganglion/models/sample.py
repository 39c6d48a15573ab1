"""Decoded measurement types."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Sample:
    """One EEG/EMG sample across all 4 channels.

    Attributes:
        sample_number: 0 for uncompressed packets, 1-200 for compressed ones
        channel_data: Channel values, in volts or raw counts
        valid: False while the delta baseline is not anchored by an uncompressed packet
        timestamp: Host receive time (seconds since epoch)
    """

    sample_number: int
    channel_data: tuple[float, ...]
    valid: bool = True
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class AccelVector:
    """Accelerometer reading in g, or raw counts when counts are requested."""

    x: float = 0
    y: float = 0
    z: float = 0

    def as_tuple(self) -> tuple[float, float, float]:
        return self.x, self.y, self.z
