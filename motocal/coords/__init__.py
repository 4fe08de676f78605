"""Rotation representations for the calibration and fusion engines.

Provides conversions between rotation matrices, quaternions and Euler
angles, the quaternion algebra used by the fusion filter, and the
Quaternion value type shared by both engines.
"""

from motocal.coords.quaternion import Quaternion
from motocal.coords.rotations import (
    euler_to_quat,
    euler_to_rotation_matrix,
    quat_multiply,
    quat_normalize,
    quat_to_euler,
    quat_to_rotation_matrix,
    rotation_matrix_to_euler,
    rotation_matrix_to_quat,
)

__all__ = [
    "Quaternion",
    "euler_to_quat",
    "euler_to_rotation_matrix",
    "quat_multiply",
    "quat_normalize",
    "quat_to_euler",
    "quat_to_rotation_matrix",
    "rotation_matrix_to_euler",
    "rotation_matrix_to_quat",
]
