"""
Unit tests for motocal/sim/mount_samples.py.

Tests cover:
    - Ideal readings of a still, mounted device
    - Sample batches (noise, bias, timestamps, seeding)
    - Constant-rate attitude streams
    - Argument validation

Run with: pytest tests/motocal/sim/test_mount_samples.py -v
"""

import unittest
import numpy as np
import pytest

from motocal.calibration.statistics import compute_statistics
from motocal.coords.rotations import quat_to_euler
from motocal.sim import (
    generate_mounted_samples,
    generate_rotating_stream,
    mounted_readings,
)


class TestMountedReadings(unittest.TestCase):
    """Test suite for mounted_readings."""

    def test_level_device(self) -> None:
        accel, mag = mounted_readings(0.0, 0.0, 0.0)
        np.testing.assert_allclose(accel, [0.0, 0.0, 9.81])
        np.testing.assert_allclose(mag, [30.0, 0.0, -20.0])

    def test_magnitudes_preserved(self) -> None:
        accel, mag = mounted_readings(0.4, -0.7, 2.0)
        assert np.linalg.norm(accel) == pytest.approx(9.81, abs=1e-12)
        assert np.linalg.norm(mag) == pytest.approx(np.hypot(30.0, 20.0), abs=1e-12)


class TestGenerateMountedSamples(unittest.TestCase):
    """Test suite for generate_mounted_samples."""

    def test_noise_free_samples_identical(self) -> None:
        samples = generate_mounted_samples(
            0.1, 0.2, 0.3, n=20, gyro_bias=(0.01, 0.0, 0.0)
        )
        stats = compute_statistics(samples)

        assert len(samples) == 20
        np.testing.assert_allclose(stats.accel_std, np.zeros(3), atol=1e-12)
        np.testing.assert_allclose(stats.gyro_mean, [0.01, 0.0, 0.0])

    def test_timestamps(self) -> None:
        samples = generate_mounted_samples(
            0.0, 0.0, 0.0, n=4, rate_hz=50.0, start_ms=100
        )
        assert [s.timestamp_ms for s in samples] == [100, 120, 140, 160]

    def test_seeded_noise_reproducible(self) -> None:
        a = generate_mounted_samples(0.0, 0.0, 0.0, n=5, accel_noise=0.1,
                                     rng=np.random.default_rng(5))
        b = generate_mounted_samples(0.0, 0.0, 0.0, n=5, accel_noise=0.1,
                                     rng=np.random.default_rng(5))
        for sa, sb in zip(a, b):
            np.testing.assert_array_equal(sa.accel, sb.accel)

    def test_invalid_arguments(self) -> None:
        with pytest.raises(ValueError, match="n must be positive"):
            generate_mounted_samples(0.0, 0.0, 0.0, n=0)
        with pytest.raises(ValueError, match="rate_hz"):
            generate_mounted_samples(0.0, 0.0, 0.0, rate_hz=0.0)


class TestGenerateRotatingStream(unittest.TestCase):
    """Test suite for generate_rotating_stream."""

    def test_shapes_and_constant_rate(self) -> None:
        t, accel, gyro, mag, quat = generate_rotating_stream(
            rate=[0.0, 0.0, 0.5], duration_s=1.0, dt=0.01
        )

        assert t.shape == (100,)
        assert accel.shape == (100, 3)
        assert mag.shape == (100, 3)
        assert quat.shape == (100, 4)
        np.testing.assert_allclose(gyro, np.tile([0.0, 0.0, 0.5], (100, 1)))
        np.testing.assert_allclose(np.linalg.norm(quat, axis=1), 1.0, atol=1e-12)
        np.testing.assert_allclose(np.linalg.norm(accel, axis=1), 9.81, atol=1e-9)

    def test_true_attitude_follows_rate(self) -> None:
        t, _, _, _, quat = generate_rotating_stream(
            rate=[0.0, 0.0, 0.5], duration_s=1.0, dt=0.01
        )
        assert quat_to_euler(quat[-1])[2] == pytest.approx(0.5 * t[-1], abs=1e-9)

    def test_invalid_arguments(self) -> None:
        with pytest.raises(ValueError, match="dt"):
            generate_rotating_stream([0.0, 0.0, 0.1], duration_s=1.0, dt=0.0)
        with pytest.raises(ValueError, match="duration_s"):
            generate_rotating_stream([0.0, 0.0, 0.1], duration_s=0.0, dt=0.01)


if __name__ == "__main__":
    unittest.main()
