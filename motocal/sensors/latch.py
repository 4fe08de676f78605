"""Combine independently arriving sensor readings into coherent triples.

The platform reports accelerometer, gyroscope and magnetometer events
separately and at different rates. The calibration session wants one
(accel, gyro, mag) triple per sample, so the latest accelerometer and
gyroscope readings are latched and a RawSample is emitted each time a
magnetometer reading arrives.
"""

import threading
from typing import Optional

import numpy as np

from motocal.sensors.types import RawSample, Vec3Like, as_vec3


class SampleLatch:
    """
    Latch-and-fire combiner for per-sensor readings.

    No sample is emitted until an accelerometer reading with a non-zero
    value has been seen; the gyroscope defaults to zero until its first
    reading arrives. Safe to feed from several sensor callback threads.

    Example:
        >>> latch = SampleLatch()
        >>> latch.on_accel([0.0, 0.0, 9.81])
        >>> latch.on_gyro([0.0, 0.0, 0.0])
        >>> sample = latch.on_mag([30.0, 0.0, -20.0], timestamp_ms=20)
        >>> sample.timestamp_ms
        20
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._accel: Optional[np.ndarray] = None
        self._gyro = np.zeros(3)

    def on_accel(self, values: Vec3Like) -> None:
        accel = as_vec3(values, "accel")
        with self._lock:
            self._accel = accel

    def on_gyro(self, values: Vec3Like) -> None:
        gyro = as_vec3(values, "gyro")
        with self._lock:
            self._gyro = gyro

    def on_mag(self, values: Vec3Like, timestamp_ms: int = 0) -> Optional[RawSample]:
        """
        Record a magnetometer reading and emit the combined sample.

        Returns:
            The combined RawSample, or None while no usable accelerometer
            reading has been latched yet.
        """
        mag = as_vec3(values, "mag")
        with self._lock:
            if self._accel is None or not np.any(self._accel):
                return None
            accel = self._accel
            gyro = self._gyro
        return RawSample(accel=accel, gyro=gyro, mag=mag, timestamp_ms=timestamp_ms)

    def reset(self) -> None:
        with self._lock:
            self._accel = None
            self._gyro = np.zeros(3)
