"""Continuous attitude estimation with the Madgwick gradient-descent filter.

The filter keeps one unit quaternion q describing the device-to-reference
rotation, in the same convention as the calibration engine: R(q) @ v
maps a device-frame vector into the reference frame whose third axis is
the direction measured by the accelerometer at rest. A calibration
result's quaternion is therefore a valid initial state.

Each update integrates the gyroscope rate and corrects the drift with
one normalized gradient-descent step on the measurement mismatch:

    q̇ = ½ q ⊗ (0, ω) - β ∇f / ‖∇f‖
    q ← normalize(q + q̇ Δt)

Objective rows:
    gravity   f_g = R(q)ᵀ e_z - â                      (3 rows)
    magnetic  f_b = R(q)ᵀ b - m̂,  b = (‖h_xy‖, 0, h_z),  h = R(q) m̂

Reference:
    Madgwick, S. O. H. (2010). An efficient orientation filter for
    inertial and inertial/magnetic sensor arrays.
"""

import warnings
from typing import Optional

import numpy as np

from motocal.coords.quaternion import Quaternion
from motocal.coords.rotations import (
    quat_multiply,
    quat_normalize,
    quat_to_euler,
    quat_to_rotation_matrix,
)
from motocal.sensors.types import Vec3Like, as_vec3

DEFAULT_BETA = 0.1


def _unit_or_none(v: np.ndarray) -> Optional[np.ndarray]:
    norm = np.linalg.norm(v)
    if norm == 0.0:
        return None
    return v / norm


def _gravity_objective(q: np.ndarray, a: np.ndarray):
    """Gravity rows of the objective and their Jacobian."""
    w, x, y, z = q
    f = np.array([
        2.0 * (x * z - w * y) - a[0],
        2.0 * (w * x + y * z) - a[1],
        2.0 * (0.5 - x * x - y * y) - a[2],
    ])
    J = np.array([
        [-2.0 * y, 2.0 * z, -2.0 * w, 2.0 * x],
        [2.0 * x, 2.0 * w, 2.0 * z, 2.0 * y],
        [0.0, -4.0 * x, -4.0 * y, 0.0],
    ])
    return f, J


def _magnetic_objective(q: np.ndarray, m: np.ndarray):
    """Magnetic rows of the objective and their Jacobian."""
    w, x, y, z = q

    # Field direction in the reference frame, rotated onto the x-z plane
    h = quat_to_rotation_matrix(q) @ m
    bx = np.hypot(h[0], h[1])
    bz = h[2]

    f = np.array([
        bx * (1.0 - 2.0 * (y * y + z * z)) + 2.0 * bz * (x * z - w * y) - m[0],
        2.0 * bx * (x * y - w * z) + 2.0 * bz * (w * x + y * z) - m[1],
        2.0 * bx * (x * z + w * y) + bz * (1.0 - 2.0 * (x * x + y * y)) - m[2],
    ])
    J = np.array([
        [-2.0 * bz * y,
         2.0 * bz * z,
         -4.0 * bx * y - 2.0 * bz * w,
         -4.0 * bx * z + 2.0 * bz * x],
        [-2.0 * bx * z + 2.0 * bz * x,
         2.0 * bx * y + 2.0 * bz * w,
         2.0 * bx * x + 2.0 * bz * z,
         -2.0 * bx * w + 2.0 * bz * y],
        [2.0 * bx * y,
         2.0 * bx * z - 4.0 * bz * x,
         2.0 * bx * w - 4.0 * bz * y,
         2.0 * bx * x],
    ])
    return f, J


class AttitudeFusionFilter:
    """
    Madgwick AHRS filter for accelerometer, gyroscope and magnetometer.

    Args:
        beta: Gradient-descent gain (rad/s). Larger values trust the
              accelerometer/magnetometer more and converge faster at the
              cost of more noise. Default: 0.1.
        initial: Initial orientation. Default: identity.

    Raises:
        ValueError: If beta is negative.

    Example:
        >>> f = AttitudeFusionFilter(beta=0.1)
        >>> q = f.update([0, 0, 9.81], [0, 0, 0], [30, 0, -20], dt=0.01)
        >>> round(q.norm(), 6)
        1.0
    """

    def __init__(self, beta: float = DEFAULT_BETA, initial: Optional[Quaternion] = None):
        if beta < 0:
            raise ValueError(f"beta must be non-negative, got {beta}")
        if beta > 1.0:
            warnings.warn(
                f"beta={beta} is very large; the estimate will follow "
                f"accelerometer noise. Typical values are 0.01-0.3.",
                UserWarning,
            )
        self.beta = float(beta)
        self._initial = initial if initial is not None else Quaternion.identity()
        self._q = self._initial.as_array()

    @property
    def quaternion(self) -> Quaternion:
        return Quaternion.from_array(self._q)

    def reset(self, initial: Optional[Quaternion] = None) -> None:
        """Return to identity, or to the given orientation."""
        if initial is not None:
            self._initial = initial
        else:
            self._initial = Quaternion.identity()
        self._q = self._initial.as_array()

    def update(
        self,
        accel: Vec3Like,
        gyro: Vec3Like,
        mag: Vec3Like,
        dt: float,
    ) -> Quaternion:
        """
        Fuse one accelerometer/gyroscope/magnetometer triple.

        Args:
            accel: Specific force. Shape (3,). Units: m/s².
            gyro: Angular rate. Shape (3,). Units: rad/s.
            mag: Magnetic field. Shape (3,). Units: μT.
            dt: Time since the previous update in seconds. Must be > 0.

        Returns:
            The updated orientation. If accel or mag is all zeros the
            sample is skipped and the current orientation returned.

        Raises:
            ValueError: If dt <= 0 or a vector is malformed.
        """
        dt = self._check_dt(dt)
        a = _unit_or_none(as_vec3(accel, "accel"))
        m = _unit_or_none(as_vec3(mag, "mag"))
        omega = as_vec3(gyro, "gyro")
        if a is None or m is None:
            return self.quaternion

        f_g, J_g = _gravity_objective(self._q, a)
        f_b, J_b = _magnetic_objective(self._q, m)
        gradient = np.vstack([J_g, J_b]).T @ np.concatenate([f_g, f_b])
        return self._step(omega, gradient, dt)

    def update_imu(self, accel: Vec3Like, gyro: Vec3Like, dt: float) -> Quaternion:
        """
        Fuse accelerometer and gyroscope only.

        Heading is then driven by the gyroscope alone and drifts; tilt is
        still corrected. Use when the magnetometer is disturbed, e.g. by
        the motorcycle's own iron or a charging cable.
        """
        dt = self._check_dt(dt)
        a = _unit_or_none(as_vec3(accel, "accel"))
        omega = as_vec3(gyro, "gyro")
        if a is None:
            return self.quaternion

        f_g, J_g = _gravity_objective(self._q, a)
        return self._step(omega, J_g.T @ f_g, dt)

    def euler_degrees(self) -> np.ndarray:
        """Current [roll, pitch, yaw] in degrees."""
        return np.degrees(quat_to_euler(self._q))

    def _step(self, omega: np.ndarray, gradient: np.ndarray, dt: float) -> Quaternion:
        norm = np.linalg.norm(gradient)
        if norm > 0.0:
            gradient = gradient / norm

        q_dot = 0.5 * quat_multiply(self._q, np.array([0.0, omega[0], omega[1], omega[2]]))
        q_dot = q_dot - self.beta * gradient
        self._q = quat_normalize(self._q + q_dot * dt)
        return self.quaternion

    @staticmethod
    def _check_dt(dt: float) -> float:
        dt = float(dt)
        if not dt > 0:
            raise ValueError(f"dt must be positive, got {dt}")
        return dt
