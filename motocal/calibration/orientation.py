"""Closed-form mounting orientation from mean gravity and magnetic vectors.

The device frame is related to a reference frame built from two
directions measured while the device sits still on its mount:

    down  = g / ‖g‖                       (accelerometer mean)
    east  = (down × m) / ‖down × m‖       (m: magnetometer mean)
    north = east × down

The rotation matrix has rows (north, east, down), so for a device-frame
vector v the reference-frame coordinates are R @ v. With det(R) = +1 it
is a proper rotation, and it is orthonormal by construction because
down and east are unit vectors and orthogonal.

Sign convention (fixed by test fixtures):
    - Euler angles follow the ZYX decomposition of R
      (pitch = asin(-R[2,0]), roll = atan2(R[2,1], R[2,2]),
       azimuth = atan2(R[1,0], R[0,0])).
    - A flat device with accel (0, 0, +g) and the horizontal field along
      +x yields R = I and all angles zero.
    - Roll is the lean about the longitudinal (x) axis, pitch the rotation
      about the lateral (y) axis.
"""

from dataclasses import dataclass

import numpy as np

from motocal.calibration.errors import OrientationUndeterminedError
from motocal.coords.quaternion import Quaternion
from motocal.coords.rotations import rotation_matrix_to_euler
from motocal.sensors.types import Vec3Like, as_vec3

# Minimum |sin| of the angle between gravity and the magnetic field
MIN_FIELD_SEPARATION = 1e-3
_MIN_VECTOR_NORM = 1e-9


@dataclass(frozen=True)
class OrientationSolution:
    """
    Orientation solved from one gravity/magnetic vector pair.

    Attributes:
        rotation_matrix: 3x3, rows (north, east, down).
        quaternion: Same rotation as rotation_matrix.
        pitch, roll, azimuth: Euler angles in degrees.
    """

    rotation_matrix: np.ndarray
    quaternion: Quaternion
    pitch: float
    roll: float
    azimuth: float


def reference_basis(gravity: Vec3Like, magnetic: Vec3Like) -> np.ndarray:
    """
    Build the orthonormal (north, east, down) basis as matrix rows.

    Raises:
        OrientationUndeterminedError: If either vector is zero or the two
            are (anti-)parallel, e.g. a broken magnetometer or a field
            reading dominated by the bike's own iron.
    """
    g = as_vec3(gravity, "gravity")
    m = as_vec3(magnetic, "magnetic")

    g_norm = np.linalg.norm(g)
    m_norm = np.linalg.norm(m)
    if g_norm < _MIN_VECTOR_NORM or m_norm < _MIN_VECTOR_NORM:
        raise OrientationUndeterminedError(
            "Could not determine device orientation: gravity or magnetic field is zero"
        )

    down = g / g_norm
    east = np.cross(down, m / m_norm)
    separation = np.linalg.norm(east)
    if separation < MIN_FIELD_SEPARATION:
        raise OrientationUndeterminedError(
            "Could not determine device orientation: gravity and magnetic "
            "field are collinear"
        )
    east = east / separation
    north = np.cross(east, down)

    return np.vstack([north, east, down])


def solve_orientation(gravity: Vec3Like, magnetic: Vec3Like) -> OrientationSolution:
    """
    Solve rotation matrix, quaternion and Euler angles from two vectors.

    Args:
        gravity: Mean accelerometer vector. Shape (3,). Units: m/s².
        magnetic: Mean magnetometer vector. Shape (3,). Units: μT.

    Returns:
        OrientationSolution whose quaternion and matrix describe the same
        rotation.

    Raises:
        OrientationUndeterminedError: See reference_basis.

    Example:
        >>> sol = solve_orientation([0, 0, 9.81], [30, 0, -20])
        >>> np.allclose(sol.rotation_matrix, np.eye(3))
        True
    """
    R = reference_basis(gravity, magnetic)
    roll, pitch, yaw = np.degrees(rotation_matrix_to_euler(R))

    return OrientationSolution(
        rotation_matrix=R,
        quaternion=Quaternion.from_rotation_matrix(R),
        pitch=float(pitch),
        roll=float(roll),
        azimuth=float(yaw),
    )
