"""Raw sensor sample packets consumed by the calibration and fusion engines.

The sensor platform delivers accelerometer, gyroscope and magnetometer
readings; by the time they reach this package they have been combined
into one coherent triple (see motocal.sensors.latch).

Units:
    accel: m/s² (specific force, ≈ +9.81 along the upward axis at rest)
    gyro:  rad/s
    mag:   μT
    timestamp_ms: integer milliseconds from the platform clock

All vectors are finite float64 arrays of shape (3,). NaN/Inf is a
contract violation and is rejected at ingestion.
"""

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

Vec3Like = Union[Sequence[float], np.ndarray]


def as_vec3(value: Vec3Like, name: str = "vector") -> np.ndarray:
    """
    Copy value into a finite float64 array of shape (3,).

    Args:
        value: Any 3-element sequence or array.
        name: Field name used in error messages.

    Returns:
        A new array; the caller's buffer is never aliased.

    Raises:
        ValueError: If value does not have exactly three elements or
                    contains NaN/Inf.

    Example:
        >>> as_vec3([0, 0, 9.81], "accel")
        array([0.  , 0.  , 9.81])
    """
    arr = np.array(value, dtype=np.float64, copy=True).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {arr}")
    return arr


@dataclass(frozen=True)
class RawSample:
    """
    One combined accelerometer/gyroscope/magnetometer reading.

    Immutable: the vectors are private read-only copies, so mutating the
    array a sample was built from never changes a buffered sample.

    Attributes:
        accel: Specific force in device frame. Shape (3,). Units: m/s².
        gyro: Angular rate in device frame. Shape (3,). Units: rad/s.
        mag: Magnetic field in device frame. Shape (3,). Units: μT.
        timestamp_ms: Platform timestamp in milliseconds.

    Example:
        >>> buf = np.array([0.0, 0.0, 9.81])
        >>> s = RawSample(accel=buf, gyro=[0, 0, 0], mag=[30, 0, -20], timestamp_ms=0)
        >>> buf[2] = 0.0
        >>> float(s.accel[2])
        9.81
    """

    accel: np.ndarray
    gyro: np.ndarray
    mag: np.ndarray
    timestamp_ms: int = 0

    def __post_init__(self) -> None:
        """Copy, validate and freeze the three vectors."""
        for name in ("accel", "gyro", "mag"):
            arr = as_vec3(getattr(self, name), name)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)
        object.__setattr__(self, "timestamp_ms", int(self.timestamp_ms))
