"""Failure kinds and exceptions raised by the calibration pipeline.

All calibration failures are local and recoverable. Inside a
CalibrationSession they are caught and turned into a FAILED state that
carries a CalibrationFailure; the exceptions only escape from the pure
building blocks (solver, config) when those are used directly.
"""

from dataclasses import dataclass
from enum import Enum


class FailureKind(Enum):
    """Why a calibration did not produce a result."""

    INVALID_CONFIGURATION = "invalid_configuration"
    INSUFFICIENT_SAMPLES = "insufficient_samples"
    DEVICE_UNSTABLE = "device_unstable"
    ORIENTATION_UNDETERMINED = "orientation_undetermined"
    # start() while a session is running; reported, never raised
    ALREADY_RUNNING = "already_running"


class CalibrationError(Exception):
    """Base class for calibration failures."""

    kind: FailureKind

    @property
    def reason(self) -> str:
        return str(self)


class InvalidConfigurationError(CalibrationError, ValueError):
    kind = FailureKind.INVALID_CONFIGURATION


class InsufficientSamplesError(CalibrationError):
    kind = FailureKind.INSUFFICIENT_SAMPLES


class DeviceUnstableError(CalibrationError):
    kind = FailureKind.DEVICE_UNSTABLE


class OrientationUndeterminedError(CalibrationError):
    kind = FailureKind.ORIENTATION_UNDETERMINED


@dataclass(frozen=True)
class CalibrationFailure:
    """Terminal failure report held by a FAILED session.

    Attributes:
        kind: Failure category.
        reason: Human-readable explanation shown to the rider.
    """

    kind: FailureKind
    reason: str

    @classmethod
    def from_error(cls, error: CalibrationError) -> "CalibrationFailure":
        return cls(kind=error.kind, reason=error.reason)

    def to_header(self) -> str:
        """Log-header block recording this failure."""
        from motocal.calibration.result import failure_header

        return failure_header(self)
