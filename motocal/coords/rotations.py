"""Conversions between the attitude representations used by motocal.

Three representations are in play:

    matrix      3x3 orthonormal array R, v_ref = R @ v_dev
    quaternion  array [w, x, y, z], scalar first, unit norm
    euler       array [roll, pitch, yaw] in radians, ZYX order
                (yaw about z, then pitch about y, then roll about x)

For a phone on a handlebar mount roll is the lean about the device x
axis, pitch the nose-up/down angle about y, and yaw the heading about
the reference down axis (reported as azimuth by the calibration).
"""

import numpy as np
from numpy.typing import NDArray

# Below this scalar magnitude the asymmetric differences no longer carry
# a usable sign and the half-turn branch is used instead.
_HALF_TURN_EPS = 1e-6

_IDENTITY_QUAT = (1.0, 0.0, 0.0, 0.0)


def _as_matrix(R) -> NDArray[np.float64]:
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"rotation matrix must have shape (3, 3), got {R.shape}")
    return R


def _as_quat(q) -> NDArray[np.float64]:
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"quaternion must have shape (4,), got {q.shape}")
    return q


def _axis_quat(axis: int, angle: float) -> NDArray[np.float64]:
    q = np.zeros(4)
    q[0] = np.cos(angle / 2.0)
    q[axis + 1] = np.sin(angle / 2.0)
    return q


def euler_to_rotation_matrix(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """
    Rotation matrix for ZYX Euler angles.

    R = Rz(yaw) @ Ry(pitch) @ Rx(roll), so R[2, :] is the reference down
    axis expressed in device coordinates.

    Args:
        roll, pitch, yaw: Angles in radians.

    Returns:
        Array of shape (3, 3) mapping device vectors into the reference frame.

    Example:
        >>> R = euler_to_rotation_matrix(0.0, 0.0, np.pi / 2)
        >>> np.allclose(R @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
        True
    """
    c_r, s_r = np.cos(roll), np.sin(roll)
    c_p, s_p = np.cos(pitch), np.sin(pitch)
    c_y, s_y = np.cos(yaw), np.sin(yaw)

    Rx = np.array([[1.0, 0.0, 0.0], [0.0, c_r, -s_r], [0.0, s_r, c_r]])
    Ry = np.array([[c_p, 0.0, s_p], [0.0, 1.0, 0.0], [-s_p, 0.0, c_p]])
    Rz = np.array([[c_y, -s_y, 0.0], [s_y, c_y, 0.0], [0.0, 0.0, 1.0]])
    return Rz @ Ry @ Rx


def rotation_matrix_to_euler(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    ZYX Euler angles of a rotation matrix.

        pitch = asin(-R[2, 0])
        roll  = atan2(R[2, 1], R[2, 2])
        yaw   = atan2(R[1, 0], R[0, 0])

    At gimbal lock (|R[2, 0]| = 1) roll and yaw are not separable; roll is
    reported as 0 and the whole in-plane rotation goes into yaw.

    Args:
        R: Rotation matrix, shape (3, 3).

    Returns:
        Array [roll, pitch, yaw] in radians.

    Raises:
        ValueError: If R is not 3x3.
    """
    R = _as_matrix(R)
    s = -R[2, 0]

    if abs(s) < 1.0:
        return np.array([
            np.arctan2(R[2, 1], R[2, 2]),
            np.arcsin(s),
            np.arctan2(R[1, 0], R[0, 0]),
        ])

    return np.array([0.0, np.copysign(np.pi / 2.0, s), np.arctan2(-R[0, 1], R[1, 1])])


def euler_to_quat(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Unit quaternion for ZYX Euler angles: q = q_z(yaw) ⊗ q_y(pitch) ⊗ q_x(roll)."""
    q = quat_multiply(_axis_quat(2, yaw), _axis_quat(1, pitch))
    return quat_multiply(q, _axis_quat(0, roll))


def quat_to_euler(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    ZYX Euler angles of a unit quaternion.

    Args:
        q: Quaternion [w, x, y, z].

    Returns:
        Array [roll, pitch, yaw] in radians.

    Raises:
        ValueError: If q does not have 4 elements.
    """
    w, x, y, z = _as_quat(q)

    # Rounding can push the sine slightly outside [-1, 1]
    s = np.clip(2.0 * (w * y - x * z), -1.0, 1.0)

    return np.array([
        np.arctan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y)),
        np.arcsin(s),
        np.arctan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z)),
    ])


def quat_to_rotation_matrix(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Rotation matrix of a unit quaternion.

    Uses R = (w² - vᵀv) I + 2 v vᵀ + 2 w [v]×, with v = (x, y, z).

    Args:
        q: Quaternion [w, x, y, z].

    Returns:
        Array of shape (3, 3) with v_ref = R @ v_dev.

    Raises:
        ValueError: If q does not have 4 elements.

    Example:
        >>> quat_to_rotation_matrix([1.0, 0.0, 0.0, 0.0])
        array([[1., 0., 0.],
               [0., 1., 0.],
               [0., 0., 1.]])
    """
    q = _as_quat(q)
    w, v = q[0], q[1:]
    skew = np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ])
    return (w * w - v @ v) * np.eye(3) + 2.0 * np.outer(v, v) + 2.0 * w * skew


def rotation_matrix_to_quat(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Unit quaternion of a rotation matrix, scalar part non-negative.

    Component magnitudes come from the diagonal,

        |w| = ½ sqrt(max(0, 1 + R00 + R11 + R22))
        |x| = ½ sqrt(max(0, 1 + R00 - R11 - R22))
        |y| = ½ sqrt(max(0, 1 - R00 + R11 - R22))
        |z| = ½ sqrt(max(0, 1 - R00 - R11 + R22))

    and the vector signs from the antisymmetric part
    (R21 - R12 = 4wx, R02 - R20 = 4wy, R10 - R01 = 4wz). For half turns
    w vanishes, so the largest vector component is taken positive and
    the others are signed from the symmetric sums (R01 + R10 = 4xy, ...).

    Args:
        R: Rotation matrix, shape (3, 3), det = +1.

    Returns:
        Quaternion [w, x, y, z].

    Raises:
        ValueError: If R is not 3x3.
    """
    R = _as_matrix(R)
    d = np.diag(R)
    signs = np.array([
        [1.0, 1.0, 1.0],
        [1.0, -1.0, -1.0],
        [-1.0, 1.0, -1.0],
        [-1.0, -1.0, 1.0],
    ])
    mag = 0.5 * np.sqrt(np.maximum(0.0, 1.0 + signs @ d))

    if mag[0] > _HALF_TURN_EPS:
        antisym = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])
        vec = np.copysign(mag[1:], antisym)
    else:
        # Symmetric sums for the (x, y), (x, z) and (y, z) pairs
        pair_sum = {
            (0, 1): R[0, 1] + R[1, 0],
            (0, 2): R[0, 2] + R[2, 0],
            (1, 2): R[1, 2] + R[2, 1],
        }
        vec = mag[1:].copy()
        k = int(np.argmax(vec))
        for j in range(3):
            if j != k:
                vec[j] = np.copysign(vec[j], pair_sum[tuple(sorted((j, k)))])

    return quat_normalize(np.concatenate([[mag[0]], vec]))


def quat_normalize(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Scale q to unit norm. Zero or non-finite input gives the identity."""
    q = _as_quat(q)
    n = np.linalg.norm(q)
    if n == 0.0 or not np.isfinite(n):
        return np.array(_IDENTITY_QUAT)
    return q / n


def quat_multiply(
    p: NDArray[np.float64],
    q: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Hamilton product p ⊗ q, not normalized.

    Pure quaternions such as (0, ω) are valid operands.
    """
    p, q = _as_quat(p), _as_quat(q)
    pw, pv = p[0], p[1:]
    qw, qv = q[0], q[1:]
    return np.concatenate([
        [pw * qw - pv @ qv],
        pw * qv + qw * pv + np.cross(pv, qv),
    ])
