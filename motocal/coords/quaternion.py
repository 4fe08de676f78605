"""Unit quaternion value type shared by calibration and attitude fusion.

Every public construction path normalizes, so a Quaternion observed from
outside always satisfies w² + x² + y² + z² = 1 within floating-point
tolerance. Degenerate input (zero norm) becomes the identity rotation.
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from motocal.coords.rotations import (
    quat_multiply,
    quat_normalize,
    quat_to_euler,
    quat_to_rotation_matrix,
    rotation_matrix_to_quat,
)


@dataclass(frozen=True)
class Quaternion:
    """
    Scalar-first unit quaternion describing a device-to-world rotation.

    Attributes:
        w: Scalar part.
        x, y, z: Vector part.

    Example:
        >>> q = Quaternion(2.0, 0.0, 0.0, 0.0)
        >>> q.w
        1.0
        >>> Quaternion(0.0, 0.0, 0.0, 0.0) == Quaternion.identity()
        True
    """

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __post_init__(self) -> None:
        """Normalize the components in place."""
        q = quat_normalize(np.array([self.w, self.x, self.y, self.z], dtype=np.float64))
        object.__setattr__(self, "w", float(q[0]))
        object.__setattr__(self, "x", float(q[1]))
        object.__setattr__(self, "y", float(q[2]))
        object.__setattr__(self, "z", float(q[3]))

    @classmethod
    def identity(cls) -> "Quaternion":
        return cls(1.0, 0.0, 0.0, 0.0)

    @classmethod
    def from_array(cls, q: NDArray[np.float64]) -> "Quaternion":
        """Build from a 4-element [w, x, y, z] array (normalized on the way in)."""
        q = np.asarray(q, dtype=np.float64)
        if q.shape != (4,):
            raise ValueError(f"Expected 4-element quaternion, got shape {q.shape}")
        return cls(float(q[0]), float(q[1]), float(q[2]), float(q[3]))

    @classmethod
    def from_rotation_matrix(cls, R: NDArray[np.float64]) -> "Quaternion":
        return cls.from_array(rotation_matrix_to_quat(R))

    def as_array(self) -> NDArray[np.float64]:
        return np.array([self.w, self.x, self.y, self.z], dtype=np.float64)

    def norm(self) -> float:
        return float(np.linalg.norm(self.as_array()))

    def conjugate(self) -> "Quaternion":
        return Quaternion(self.w, -self.x, -self.y, -self.z)

    def to_rotation_matrix(self) -> NDArray[np.float64]:
        """Return the 3x3 matrix R with v_world = R @ v_device."""
        return quat_to_rotation_matrix(self.as_array())

    def to_euler(self) -> NDArray[np.float64]:
        """Return [roll, pitch, yaw] in radians (ZYX)."""
        return quat_to_euler(self.as_array())

    def rotate(self, v: NDArray[np.float64]) -> NDArray[np.float64]:
        """Rotate a device-frame vector into the world frame."""
        return self.to_rotation_matrix() @ np.asarray(v, dtype=np.float64)

    def __mul__(self, other: "Quaternion") -> "Quaternion":
        if not isinstance(other, Quaternion):
            return NotImplemented
        return Quaternion.from_array(quat_multiply(self.as_array(), other.as_array()))
