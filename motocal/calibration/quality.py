"""Quality scoring of a finished calibration collection.

Three equally weighted 0-100 scores are combined:

    gravity:   100 · (1 - min(|‖g‖ - 9.81| / 2.0, 1))
    stability: 100 · (1 - min(mean(accel_std) / stability_threshold, 1))
    magnetic:  100 if ‖m‖ in [25, 65] μT, 75 if in [20, 70], else 50

A calibration is acceptable only if the final stability check passed,
the overall score reaches ACCEPTANCE_SCORE and the gravity score reaches
the stricter GRAVITY_ACCEPTANCE_SCORE.
"""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from motocal.calibration.statistics import SampleStatistics
from motocal.sensors.types import Vec3Like, as_vec3

STANDARD_GRAVITY = 9.81
GRAVITY_TOLERANCE = 2.0

# Typical Earth field magnitude in μT
MAG_TYPICAL_RANGE = (25.0, 65.0)
MAG_PLAUSIBLE_RANGE = (20.0, 70.0)

ACCEPTANCE_SCORE = 70.0
GRAVITY_ACCEPTANCE_SCORE = 80.0


class QualityLevel(Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    ACCEPTABLE = "Acceptable"
    POOR = "Poor"


@dataclass(frozen=True)
class CalibrationQuality:
    """
    Quality metrics of one calibration.

    Attributes:
        overall_score: Mean of the three component scores (0-100).
        stability_score: Accelerometer steadiness score (0-100).
        magnetic_field_quality: Field magnitude plausibility (50, 75 or 100).
        gravity_consistency: Closeness of ‖g‖ to Earth gravity (0-100).
        stable: Whether the final stability check passed.
        is_acceptable: Derived from stable and the scores; see module
            docstring. Not a constructor argument.
    """

    overall_score: float
    stability_score: float
    magnetic_field_quality: float
    gravity_consistency: float
    stable: bool = True
    is_acceptable: bool = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "is_acceptable", bool(
            self.stable
            and self.overall_score >= ACCEPTANCE_SCORE
            and self.gravity_consistency >= GRAVITY_ACCEPTANCE_SCORE
        ))

    def quality_level(self) -> QualityLevel:
        if self.overall_score >= 90:
            return QualityLevel.EXCELLENT
        if self.overall_score >= 75:
            return QualityLevel.GOOD
        if self.overall_score >= 60:
            return QualityLevel.ACCEPTABLE
        return QualityLevel.POOR


def gravity_score(gravity: Vec3Like) -> float:
    deviation = abs(np.linalg.norm(as_vec3(gravity, "gravity")) - STANDARD_GRAVITY)
    return 100.0 * (1.0 - min(deviation / GRAVITY_TOLERANCE, 1.0))


def stability_score(stats: SampleStatistics, stability_threshold: float) -> float:
    if stability_threshold <= 0:
        raise ValueError(f"stability_threshold must be positive, got {stability_threshold}")
    ratio = float(np.mean(stats.accel_std)) / stability_threshold
    return 100.0 * (1.0 - min(ratio, 1.0))


def magnetic_score(magnetic: Vec3Like) -> float:
    magnitude = np.linalg.norm(as_vec3(magnetic, "magnetic"))
    if MAG_TYPICAL_RANGE[0] <= magnitude <= MAG_TYPICAL_RANGE[1]:
        return 100.0
    if MAG_PLAUSIBLE_RANGE[0] <= magnitude <= MAG_PLAUSIBLE_RANGE[1]:
        return 75.0
    return 50.0


def score_quality(
    stats: SampleStatistics,
    gravity: Vec3Like,
    magnetic: Vec3Like,
    stability_threshold: float,
    stable: bool,
) -> CalibrationQuality:
    """
    Score a calibration collection.

    Args:
        stats: Statistics over the full collection buffer.
        gravity: Solved reference gravity vector (accel mean). Units: m/s².
        magnetic: Solved reference magnetic vector (mag mean). Units: μT.
        stability_threshold: Configured accel std threshold (m/s²).
        stable: Result of the final stability check.

    Returns:
        CalibrationQuality with is_acceptable derived from the scores.

    Example:
        >>> # For a perfectly still, level device:
        >>> # quality.overall_score == 100.0 and quality.is_acceptable
    """
    g_score = gravity_score(gravity)
    s_score = stability_score(stats, stability_threshold)
    m_score = magnetic_score(magnetic)
    overall = (g_score + s_score + m_score) / 3.0

    return CalibrationQuality(
        overall_score=overall,
        stability_score=s_score,
        magnetic_field_quality=m_score,
        gravity_consistency=g_score,
        stable=bool(stable),
    )
