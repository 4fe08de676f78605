"""Generate synthetic sensor streams for a phone on a handlebar mount.

The forward model matches the calibration engine's convention: R maps
device-frame vectors into the reference frame, so a reference-frame
vector v is read by the device as Rᵀ @ v. At rest:

    accel = Rᵀ @ [0, 0, g]     (specific force, upward reaction)
    gyro  = gyro_bias
    mag   = Rᵀ @ mag_reference

with optional white Gaussian noise on each sensor.

Typical usage:
    - Calibration tests and demos: generate_mounted_samples
    - Attitude-fusion demos: generate_rotating_stream
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from motocal.coords.rotations import (
    euler_to_quat,
    euler_to_rotation_matrix,
    quat_multiply,
    quat_normalize,
    quat_to_rotation_matrix,
)
from motocal.sensors.types import RawSample

STANDARD_GRAVITY = 9.81

# Horizontal ~30 μT, vertical ~20 μT; a mid-latitude Earth field
DEFAULT_MAG_REFERENCE = (30.0, 0.0, -20.0)


def mounted_readings(
    roll: float,
    pitch: float,
    yaw: float,
    mag_reference: Sequence[float] = DEFAULT_MAG_REFERENCE,
    g: float = STANDARD_GRAVITY,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Ideal accelerometer and magnetometer readings of a still device.

    Args:
        roll, pitch, yaw: Mounting orientation in radians (ZYX).
        mag_reference: Magnetic field in the reference frame. Units: μT.
        g: Gravity magnitude. Units: m/s².

    Returns:
        Tuple (accel, mag), each shape (3,).

    Example:
        >>> accel, mag = mounted_readings(0.0, 0.0, 0.0)
        >>> accel
        array([0.  , 0.  , 9.81])
    """
    R = euler_to_rotation_matrix(roll, pitch, yaw)
    accel = R.T @ np.array([0.0, 0.0, g])
    mag = R.T @ np.asarray(mag_reference, dtype=np.float64)
    return accel, mag


def generate_mounted_samples(
    roll: float,
    pitch: float,
    yaw: float,
    n: int = 100,
    rate_hz: float = 50.0,
    accel_noise: float = 0.0,
    gyro_noise: float = 0.0,
    mag_noise: float = 0.0,
    gyro_bias: Sequence[float] = (0.0, 0.0, 0.0),
    mag_reference: Sequence[float] = DEFAULT_MAG_REFERENCE,
    start_ms: int = 0,
    rng: Optional[np.random.Generator] = None,
) -> List[RawSample]:
    """
    Samples of a device resting on its mount at a fixed orientation.

    Args:
        roll, pitch, yaw: Mounting orientation in radians (ZYX).
        n: Number of samples.
        rate_hz: Sample rate. Sets the timestamps only.
        accel_noise: White noise std on each accel axis. Units: m/s².
        gyro_noise: White noise std on each gyro axis. Units: rad/s.
        mag_noise: White noise std on each mag axis. Units: μT.
        gyro_bias: Constant gyroscope offset. Units: rad/s.
        mag_reference: Magnetic field in the reference frame. Units: μT.
        start_ms: Timestamp of the first sample.
        rng: Random generator. Default: np.random.default_rng().

    Returns:
        List of n RawSample.

    Raises:
        ValueError: If n or rate_hz is not positive.
    """
    if n <= 0:
        raise ValueError(f"n must be positive, got {n}")
    if rate_hz <= 0:
        raise ValueError(f"rate_hz must be positive, got {rate_hz}")
    if rng is None:
        rng = np.random.default_rng()

    accel, mag = mounted_readings(roll, pitch, yaw, mag_reference)
    bias = np.asarray(gyro_bias, dtype=np.float64)
    period_ms = 1000.0 / rate_hz

    samples = []
    for k in range(n):
        samples.append(RawSample(
            accel=accel + accel_noise * rng.standard_normal(3),
            gyro=bias + gyro_noise * rng.standard_normal(3),
            mag=mag + mag_noise * rng.standard_normal(3),
            timestamp_ms=start_ms + int(round(k * period_ms)),
        ))
    return samples


def generate_rotating_stream(
    rate: Sequence[float],
    duration_s: float,
    dt: float,
    initial_euler: Sequence[float] = (0.0, 0.0, 0.0),
    accel_noise: float = 0.0,
    gyro_noise: float = 0.0,
    mag_noise: float = 0.0,
    mag_reference: Sequence[float] = DEFAULT_MAG_REFERENCE,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Sensor stream of a device turning at a constant body rate.

    The true attitude is propagated with the exact rotation of each step,
    q_{k+1} = q_k ⊗ [cos(|ω|Δt/2), sin(|ω|Δt/2) ω/|ω|], and the accel/mag
    readings are the ideal ones for that attitude (no linear acceleration).

    Args:
        rate: Body angular rate. Shape (3,). Units: rad/s.
        duration_s: Stream length in seconds.
        dt: Sample period in seconds.
        initial_euler: Initial [roll, pitch, yaw] in radians.
        accel_noise, gyro_noise, mag_noise: White noise stds.
        mag_reference: Magnetic field in the reference frame. Units: μT.
        rng: Random generator. Default: np.random.default_rng().

    Returns:
        Tuple (t, accel, gyro, mag, quat_true):
            t: Shape (N,). Units: s.
            accel, gyro, mag: Shape (N, 3).
            quat_true: Shape (N, 4). Scalar-first.
    """
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if duration_s <= 0:
        raise ValueError(f"duration_s must be positive, got {duration_s}")
    if rng is None:
        rng = np.random.default_rng()

    omega = np.asarray(rate, dtype=np.float64)
    N = int(round(duration_s / dt))
    t = np.arange(N) * dt

    # Per-step rotation increment
    angle = np.linalg.norm(omega) * dt
    if angle > 0:
        axis = omega / np.linalg.norm(omega)
        dq = np.concatenate([[np.cos(angle / 2.0)], np.sin(angle / 2.0) * axis])
    else:
        dq = np.array([1.0, 0.0, 0.0, 0.0])

    gravity_ref = np.array([0.0, 0.0, STANDARD_GRAVITY])
    mag_ref = np.asarray(mag_reference, dtype=np.float64)

    quat_true = np.zeros((N, 4))
    accel = np.zeros((N, 3))
    gyro = np.zeros((N, 3))
    mag = np.zeros((N, 3))

    q = euler_to_quat(*initial_euler)
    for k in range(N):
        R = quat_to_rotation_matrix(q)
        quat_true[k] = q
        accel[k] = R.T @ gravity_ref + accel_noise * rng.standard_normal(3)
        gyro[k] = omega + gyro_noise * rng.standard_normal(3)
        mag[k] = R.T @ mag_ref + mag_noise * rng.standard_normal(3)
        q = quat_normalize(quat_multiply(q, dq))

    return t, accel, gyro, mag, quat_true
