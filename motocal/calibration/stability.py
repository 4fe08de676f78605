"""Stability classification of raw sensor statistics.

Two judgements are made from the same statistics:

    - Live classification of the trailing window while collecting, used
      for rider feedback and to decide whether to extend collection.
    - A final pass/fail over the whole buffer. Its gyro bound is looser
      than the live thresholds because a phone on a handlebar mount (or
      held in the hand) is never bench-still.
"""

from enum import IntEnum
from typing import Sequence

from motocal.calibration.statistics import compute_statistics, SampleStatistics
from motocal.sensors.types import RawSample

MIN_CLASSIFY_SAMPLES = 10

# (accel std max [m/s²], gyro std max [rad/s]) upper bounds per level
EXCELLENT_LIMITS = (0.2, 0.05)
GOOD_LIMITS = (0.5, 0.1)
POOR_LIMITS = (1.0, 0.3)

DEFAULT_ACCEL_THRESHOLD = 2.0
FINAL_GYRO_THRESHOLD = 0.5


class StabilityLevel(IntEnum):
    """Ordered stability grade; UNKNOWN while too few samples exist."""

    UNKNOWN = 0
    EXCELLENT = 1
    GOOD = 2
    POOR = 3
    BAD = 4


def classify(recent_stats: SampleStatistics) -> StabilityLevel:
    """
    Grade the recent window from its worst-axis accel and gyro std.

    Args:
        recent_stats: Statistics of the trailing window (typically the
                      last 10 samples).

    Returns:
        StabilityLevel. UNKNOWN if recent_stats covers fewer than
        MIN_CLASSIFY_SAMPLES samples.
    """
    if recent_stats.sample_count < MIN_CLASSIFY_SAMPLES:
        return StabilityLevel.UNKNOWN

    accel = recent_stats.accel_std_max
    gyro = recent_stats.gyro_std_max

    if accel < EXCELLENT_LIMITS[0] and gyro < EXCELLENT_LIMITS[1]:
        return StabilityLevel.EXCELLENT
    if accel < GOOD_LIMITS[0] and gyro < GOOD_LIMITS[1]:
        return StabilityLevel.GOOD
    if accel < POOR_LIMITS[0] and gyro < POOR_LIMITS[1]:
        return StabilityLevel.POOR
    return StabilityLevel.BAD


def is_stable(
    full_stats: SampleStatistics,
    accel_threshold: float = DEFAULT_ACCEL_THRESHOLD,
) -> bool:
    """
    Final stability verdict over the complete collection.

    Every accel axis std must be below accel_threshold and every gyro
    axis std below FINAL_GYRO_THRESHOLD.
    """
    return bool(
        (full_stats.accel_std < accel_threshold).all()
        and (full_stats.gyro_std < FINAL_GYRO_THRESHOLD).all()
    )


class StabilityClassifier:
    """
    Live and final stability checks bound to a window size and threshold.

    Example:
        >>> clf = StabilityClassifier(window=10, accel_threshold=2.0)
        >>> clf.classify_window([])
        <StabilityLevel.UNKNOWN: 0>
    """

    def __init__(
        self,
        window: int = MIN_CLASSIFY_SAMPLES,
        accel_threshold: float = DEFAULT_ACCEL_THRESHOLD,
    ):
        if window < MIN_CLASSIFY_SAMPLES:
            raise ValueError(
                f"window must be at least {MIN_CLASSIFY_SAMPLES}, got {window}"
            )
        self.window = window
        self.accel_threshold = accel_threshold

    def classify_window(self, samples: Sequence[RawSample]) -> StabilityLevel:
        """Classify the trailing `window` samples of a buffer."""
        if len(samples) < MIN_CLASSIFY_SAMPLES:
            return StabilityLevel.UNKNOWN
        return classify(compute_statistics(samples[-self.window:]))

    def classify(self, recent_stats: SampleStatistics) -> StabilityLevel:
        return classify(recent_stats)

    def is_stable(self, full_stats: SampleStatistics) -> bool:
        return is_stable(full_stats, self.accel_threshold)
