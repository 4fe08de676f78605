"""Per-axis mean and population standard deviation of raw sample sets.

The statistics are always recomputed from a complete, finite sample set:
the full collection buffer at the end of a session, or the trailing
window used for live stability feedback. Nothing is accumulated
incrementally, so the result never depends on how the buffer grew.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from motocal.sensors.types import RawSample


@dataclass(frozen=True)
class SampleStatistics:
    """
    Per-axis statistics for accelerometer, gyroscope and magnetometer.

    Attributes:
        accel_mean, accel_std: Shape (3,). Units: m/s².
        gyro_mean, gyro_std: Shape (3,). Units: rad/s.
        mag_mean, mag_std: Shape (3,). Units: μT.
        sample_count: Number of samples the statistics were computed from.

    Notes:
        - std is the population standard deviation (divide by N).
        - With a single sample every std is exactly zero.
    """

    accel_mean: np.ndarray
    accel_std: np.ndarray
    gyro_mean: np.ndarray
    gyro_std: np.ndarray
    mag_mean: np.ndarray
    mag_std: np.ndarray
    sample_count: int

    @property
    def accel_std_max(self) -> float:
        return float(np.max(self.accel_std))

    @property
    def gyro_std_max(self) -> float:
        return float(np.max(self.gyro_std))


def _mean_std(values: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    # Two-pass: mean first, then the mean of squared deviations
    mean = values.mean(axis=0)
    variance = np.mean((values - mean) ** 2, axis=0)
    return mean, np.sqrt(variance)


def compute_statistics(samples: Sequence[RawSample]) -> SampleStatistics:
    """
    Compute per-axis mean and population std over a sample set.

    Args:
        samples: Ordered, non-empty sequence of RawSample. Any slice of a
                 session buffer (e.g. the last K samples) is valid input.

    Returns:
        SampleStatistics for the given samples.

    Raises:
        ValueError: If samples is empty. Callers guard sample_count >= 1.

    Example:
        >>> s = RawSample(accel=[0, 0, 9.81], gyro=[0, 0, 0], mag=[30, 0, -20])
        >>> stats = compute_statistics([s, s])
        >>> stats.sample_count, float(stats.accel_std_max)
        (2, 0.0)
    """
    n = len(samples)
    if n == 0:
        raise ValueError("compute_statistics requires at least one sample")

    accel = np.stack([s.accel for s in samples])
    gyro = np.stack([s.gyro for s in samples])
    mag = np.stack([s.mag for s in samples])

    accel_mean, accel_std = _mean_std(accel)
    gyro_mean, gyro_std = _mean_std(gyro)
    mag_mean, mag_std = _mean_std(mag)

    return SampleStatistics(
        accel_mean=accel_mean,
        accel_std=accel_std,
        gyro_mean=gyro_mean,
        gyro_std=gyro_std,
        mag_mean=mag_mean,
        mag_std=mag_std,
        sample_count=n,
    )
