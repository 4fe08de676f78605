"""One-shot mounting-orientation calibration.

This package turns a short burst of still-device sensor samples into a
CalibrationResult:
- Per-axis statistics and stability grading of the samples
- Closed-form orientation from mean gravity and magnetic vectors
- Quality scoring and acceptance
- A timed, adaptively extending CalibrationSession with progress updates
"""

from motocal.calibration.config import SETTINGS_KEYS, SessionConfig
from motocal.calibration.errors import (
    CalibrationError,
    CalibrationFailure,
    DeviceUnstableError,
    FailureKind,
    InsufficientSamplesError,
    InvalidConfigurationError,
    OrientationUndeterminedError,
)
from motocal.calibration.orientation import (
    OrientationSolution,
    reference_basis,
    solve_orientation,
)
from motocal.calibration.quality import (
    CalibrationQuality,
    QualityLevel,
    score_quality,
)
from motocal.calibration.result import (
    CalibrationResult,
    failure_header,
    no_calibration_header,
)
from motocal.calibration.session import (
    CalibrationSession,
    CalibrationState,
    Progress,
    ProgressChannel,
)
from motocal.calibration.stability import (
    StabilityClassifier,
    StabilityLevel,
    classify,
    is_stable,
)
from motocal.calibration.statistics import SampleStatistics, compute_statistics

__all__ = [
    # Configuration
    "SessionConfig",
    "SETTINGS_KEYS",
    # Errors
    "CalibrationError",
    "CalibrationFailure",
    "DeviceUnstableError",
    "FailureKind",
    "InsufficientSamplesError",
    "InvalidConfigurationError",
    "OrientationUndeterminedError",
    # Statistics and stability
    "SampleStatistics",
    "compute_statistics",
    "StabilityClassifier",
    "StabilityLevel",
    "classify",
    "is_stable",
    # Orientation and quality
    "OrientationSolution",
    "reference_basis",
    "solve_orientation",
    "CalibrationQuality",
    "QualityLevel",
    "score_quality",
    # Result and headers
    "CalibrationResult",
    "failure_header",
    "no_calibration_header",
    # Session
    "CalibrationSession",
    "CalibrationState",
    "Progress",
    "ProgressChannel",
]
