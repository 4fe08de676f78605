"""Immutable calibration result and its log-header representation.

A CalibrationResult is only ever built from a passing calibration, so
every instance is complete and has an acceptable quality. It can be
rendered as a "# "-prefixed key/value block for the top of a sensor log
and parsed back from one:

    # Calibration: {
    #   "format_version": "2.0",
    #   "timestamp": 1700000000000,
    #   "reference": { "gravity": [...], "quaternion": [...], ... },
    #   "quality": { "score": 97.1, ... },
    #   ...
    # }

Floats are written with full precision so parsing reproduces the
result exactly. How the block is placed in the log file is the log
writer's business.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np

from motocal.calibration.errors import CalibrationFailure
from motocal.calibration.quality import CalibrationQuality
from motocal.coords.quaternion import Quaternion
from motocal.sensors.types import Vec3Like, as_vec3

HEADER_FORMAT_VERSION = "2.0"
HEADER_KEY = "Calibration:"
HEADER_PREFIX = "# "
HEADER_NOTE = "Raw sensor data follows. Apply calibration during post-processing."


def _render_header(payload: Dict[str, Any]) -> str:
    body = json.dumps(payload, indent=2)
    lines = f"{HEADER_KEY} {body}".splitlines()
    return "\n".join(HEADER_PREFIX + line for line in lines)


def _parse_header(header: str) -> Dict[str, Any]:
    lines = []
    for line in header.splitlines():
        stripped = line.strip()
        if not stripped.startswith("#"):
            continue
        lines.append(stripped[1:].strip())
    text = "\n".join(lines)

    start = text.find(HEADER_KEY)
    if start < 0:
        raise ValueError(f"No '{HEADER_KEY}' block found in header")
    try:
        payload, _ = json.JSONDecoder().raw_decode(text[start + len(HEADER_KEY):].lstrip())
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed calibration header: {e}") from e
    return payload


def no_calibration_header() -> str:
    """Header block for a log recorded without a calibration."""
    return _render_header({
        "format_version": HEADER_FORMAT_VERSION,
        "status": "none",
        "warning": "No calibration performed. Sensor data is in device coordinates.",
    })


def failure_header(failure: CalibrationFailure) -> str:
    """Header block recording why calibration failed."""
    return _render_header({
        "format_version": HEADER_FORMAT_VERSION,
        "status": "failed",
        "kind": failure.kind.value,
        "reason": failure.reason,
    })


@dataclass(frozen=True)
class CalibrationResult:
    """
    Mounting-orientation reference captured by a successful calibration.

    Attributes:
        reference_gravity: Mean accelerometer vector. Shape (3,). m/s².
        reference_magnetic: Mean magnetometer vector. Shape (3,). μT.
        rotation_matrix: 3x3 device-to-reference rotation.
        quaternion: Same rotation as rotation_matrix.
        pitch, roll, azimuth: Euler angles in degrees.
        gyro_bias: Mean gyroscope reading while still. Shape (3,). rad/s.
        quality: Quality metrics; always acceptable.
        timestamp_ms: Collection start time.
        duration_ms: Collection duration including extensions.
        sample_count: Samples used.

    Raises:
        ValueError: If quality is not acceptable or a vector is malformed.
    """

    reference_gravity: np.ndarray
    reference_magnetic: np.ndarray
    rotation_matrix: np.ndarray
    quaternion: Quaternion
    pitch: float
    roll: float
    azimuth: float
    gyro_bias: np.ndarray
    quality: CalibrationQuality
    timestamp_ms: int
    duration_ms: int
    sample_count: int

    def __post_init__(self) -> None:
        """Copy and freeze arrays; refuse unacceptable quality."""
        if not self.quality.is_acceptable:
            raise ValueError("CalibrationResult requires an acceptable quality")

        for name in ("reference_gravity", "reference_magnetic", "gyro_bias"):
            arr = as_vec3(getattr(self, name), name)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

        R = np.array(self.rotation_matrix, dtype=np.float64).reshape(3, 3)
        R.setflags(write=False)
        object.__setattr__(self, "rotation_matrix", R)

    # ------------------------------------------------------------------
    # Applying the calibration
    # ------------------------------------------------------------------

    def transform_vector(self, v: Vec3Like) -> np.ndarray:
        """Rotate a device-frame vector into the reference frame (R @ v)."""
        return self.rotation_matrix @ as_vec3(v)

    def inverse_transform_vector(self, v: Vec3Like) -> np.ndarray:
        """Rotate a reference-frame vector back into the device frame (Rᵀ @ v)."""
        return self.rotation_matrix.T @ as_vec3(v)

    def correct_gyro(self, gyro: Vec3Like) -> np.ndarray:
        """Subtract the captured gyroscope bias."""
        return as_vec3(gyro, "gyro") - self.gyro_bias

    # ------------------------------------------------------------------
    # Header representation
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": HEADER_FORMAT_VERSION,
            "status": "completed",
            "timestamp": self.timestamp_ms,
            "reference": {
                "gravity": self.reference_gravity.tolist(),
                "magnetic": self.reference_magnetic.tolist(),
                "rotation_matrix": self.rotation_matrix.reshape(-1).tolist(),
                "quaternion": self.quaternion.as_array().tolist(),
                "euler_angles": {
                    "pitch": self.pitch,
                    "roll": self.roll,
                    "azimuth": self.azimuth,
                },
                "gyro_bias": self.gyro_bias.tolist(),
            },
            "quality": {
                "score": self.quality.overall_score,
                "stability": self.quality.stability_score,
                "magnetic": self.quality.magnetic_field_quality,
                "gravity": self.quality.gravity_consistency,
                "acceptable": self.quality.is_acceptable,
                "stable": self.quality.stable,
                "samples": self.sample_count,
                "duration_ms": self.duration_ms,
            },
            "note": HEADER_NOTE,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationResult":
        try:
            ref = data["reference"]
            angles = ref["euler_angles"]
            quality = data["quality"]
            return cls(
                reference_gravity=np.array(ref["gravity"]),
                reference_magnetic=np.array(ref["magnetic"]),
                rotation_matrix=np.array(ref["rotation_matrix"]).reshape(3, 3),
                quaternion=Quaternion.from_array(np.array(ref["quaternion"])),
                pitch=float(angles["pitch"]),
                roll=float(angles["roll"]),
                azimuth=float(angles["azimuth"]),
                gyro_bias=np.array(ref["gyro_bias"]),
                quality=CalibrationQuality(
                    overall_score=float(quality["score"]),
                    stability_score=float(quality["stability"]),
                    magnetic_field_quality=float(quality["magnetic"]),
                    gravity_consistency=float(quality["gravity"]),
                    stable=bool(quality.get("stable", True)),
                ),
                timestamp_ms=int(data["timestamp"]),
                duration_ms=int(quality["duration_ms"]),
                sample_count=int(quality["samples"]),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Incomplete calibration record: {e}") from e

    def to_header(self) -> str:
        return _render_header(self.to_dict())

    @classmethod
    def from_header(cls, header: str) -> "CalibrationResult":
        """
        Parse a result back from a log header.

        Lines not starting with '#' (e.g. the CSV column row) are ignored.

        Raises:
            ValueError: If the header has no completed calibration block.
        """
        payload = _parse_header(header)
        if payload.get("status") != "completed":
            raise ValueError(
                f"Header does not hold a completed calibration "
                f"(status={payload.get('status')!r})"
            )
        return cls.from_dict(payload)
