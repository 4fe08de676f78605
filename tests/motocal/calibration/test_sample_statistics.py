"""Unit tests for per-axis sample statistics."""

import unittest

import numpy as np

from motocal.calibration.statistics import compute_statistics
from motocal.sensors.types import RawSample


def _sample(accel, gyro=(0.0, 0.0, 0.0), mag=(30.0, 0.0, -20.0)):
    return RawSample(accel=accel, gyro=gyro, mag=mag)


class TestComputeStatistics(unittest.TestCase):
    """Mean and population standard deviation per axis."""

    def test_single_sample_has_zero_std(self) -> None:
        stats = compute_statistics([_sample([1.0, 2.0, 3.0])])

        self.assertEqual(stats.sample_count, 1)
        np.testing.assert_allclose(stats.accel_mean, [1.0, 2.0, 3.0])
        np.testing.assert_array_equal(stats.accel_std, np.zeros(3))
        np.testing.assert_array_equal(stats.gyro_std, np.zeros(3))
        np.testing.assert_array_equal(stats.mag_std, np.zeros(3))

    def test_population_std(self) -> None:
        """Alternating ±0.6 on z gives std exactly 0.6 (divide by N)."""
        samples = [
            _sample([0.0, 0.0, 9.81 + (0.6 if k % 2 == 0 else -0.6)])
            for k in range(10)
        ]
        stats = compute_statistics(samples)

        np.testing.assert_allclose(stats.accel_mean, [0.0, 0.0, 9.81], atol=1e-12)
        np.testing.assert_allclose(stats.accel_std, [0.0, 0.0, 0.6], atol=1e-12)
        self.assertAlmostEqual(stats.accel_std_max, 0.6, places=12)

    def test_matches_numpy(self) -> None:
        rng = np.random.default_rng(3)
        accel = rng.normal([0.0, 0.0, 9.81], 0.1, size=(50, 3))
        gyro = rng.normal(0.0, 0.01, size=(50, 3))
        mag = rng.normal([30.0, 0.0, -20.0], 0.5, size=(50, 3))
        samples = [RawSample(accel=a, gyro=g, mag=m) for a, g, m in zip(accel, gyro, mag)]

        stats = compute_statistics(samples)

        np.testing.assert_allclose(stats.accel_mean, accel.mean(axis=0), atol=1e-12)
        np.testing.assert_allclose(stats.accel_std, accel.std(axis=0), atol=1e-12)
        np.testing.assert_allclose(stats.gyro_mean, gyro.mean(axis=0), atol=1e-12)
        np.testing.assert_allclose(stats.gyro_std, gyro.std(axis=0), atol=1e-12)
        np.testing.assert_allclose(stats.mag_mean, mag.mean(axis=0), atol=1e-12)
        np.testing.assert_allclose(stats.mag_std, mag.std(axis=0), atol=1e-12)
        self.assertAlmostEqual(stats.gyro_std_max, float(gyro.std(axis=0).max()), places=12)

    def test_window_slice(self) -> None:
        """A trailing slice of a buffer is valid input."""
        samples = [_sample([0.0, 0.0, 5.0])] * 10 + [_sample([0.0, 0.0, 9.81])] * 10
        stats = compute_statistics(samples[-10:])

        np.testing.assert_allclose(stats.accel_mean, [0.0, 0.0, 9.81])
        self.assertEqual(stats.sample_count, 10)

    def test_empty_raises(self) -> None:
        with self.assertRaises(ValueError):
            compute_statistics([])


if __name__ == "__main__":
    unittest.main()
