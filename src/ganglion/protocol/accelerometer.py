"""Accelerometer axis extraction from 18-bit packets."""

from __future__ import annotations

from ..models.enums import AccelAxis, AccelEmitPolicy
from ..models.events import AccelerometerReading
from ..models.sample import AccelVector
from .commands import ACCEL_SCALE_FACTOR, BYTE_ID_18BIT_MAX, BYTE_ID_18BIT_MIN

AUX_BYTE_INDEX = 19


def accel_axis_for(byte_id: int) -> AccelAxis | None:
    """Axis whose sample rides in the auxiliary byte of this packet, if any."""
    if not BYTE_ID_18BIT_MIN <= byte_id <= BYTE_ID_18BIT_MAX:
        return None
    try:
        return AccelAxis(byte_id % 10)
    except ValueError:
        return None


class AccelerometerExtractor:
    """Builds 3-axis readings from one-axis-per-packet auxiliary data.

    While the accelerometer is enabled, 18-bit packets whose byteId ends in
    1, 2 or 3 carry a signed X, Y or Z count in byte 19. Each update is
    written into a persistent vector; axes not refreshed keep their last
    value.
    """

    def __init__(
            self,
            send_counts: bool = False,
            policy: AccelEmitPolicy = AccelEmitPolicy.EVERY_UPDATE,
            interval: int = 1,
    ):
        self.send_counts = send_counts
        self.policy = policy
        self.interval = interval
        self._values: list[float] = [0, 0, 0]
        self._updates = 0
        self._pending_axes: set[AccelAxis] = set()

    def reset(self) -> None:
        self._values = [0, 0, 0]
        self._updates = 0
        self._pending_axes.clear()

    @property
    def vector(self) -> AccelVector:
        return AccelVector(*self._values)

    def process(self, frame: bytes) -> AccelerometerReading | None:
        """Record the axis sample of an 18-bit frame.

        Returns:
            A reading when the emit policy says the vector is due, else None
        """
        if not frame or len(frame) <= AUX_BYTE_INDEX:
            return None
        axis = accel_axis_for(frame[0])
        if axis is None:
            return None

        raw = int.from_bytes(frame[AUX_BYTE_INDEX:AUX_BYTE_INDEX + 1], "big", signed=True)
        self._values[axis - 1] = raw if self.send_counts else raw * ACCEL_SCALE_FACTOR
        self._updates += 1
        self._pending_axes.add(axis)

        if self.policy is AccelEmitPolicy.FULL_ROTATION:
            if len(self._pending_axes) < len(AccelAxis):
                return None
        elif self._updates % self.interval != 0:
            return None

        self._pending_axes.clear()
        return AccelerometerReading(self.vector)
