"""Unit tests for live and final stability classification."""

import unittest

import numpy as np

from motocal.calibration.stability import (
    StabilityClassifier,
    StabilityLevel,
    classify,
    is_stable,
)
from motocal.calibration.statistics import SampleStatistics
from motocal.sensors.types import RawSample


def _stats(accel_std, gyro_std, n=10):
    return SampleStatistics(
        accel_mean=np.array([0.0, 0.0, 9.81]),
        accel_std=np.asarray(accel_std, dtype=float),
        gyro_mean=np.zeros(3),
        gyro_std=np.asarray(gyro_std, dtype=float),
        mag_mean=np.array([30.0, 0.0, -20.0]),
        mag_std=np.zeros(3),
        sample_count=n,
    )


class TestClassify(unittest.TestCase):
    """Threshold grid on worst-axis accel and gyro std."""

    def test_too_few_samples(self) -> None:
        self.assertIs(classify(_stats([0, 0, 0], [0, 0, 0], n=9)), StabilityLevel.UNKNOWN)

    def test_levels(self) -> None:
        cases = [
            ([0.1, 0.0, 0.0], [0.01, 0.0, 0.0], StabilityLevel.EXCELLENT),
            ([0.3, 0.0, 0.0], [0.01, 0.0, 0.0], StabilityLevel.GOOD),
            ([0.1, 0.0, 0.0], [0.07, 0.0, 0.0], StabilityLevel.GOOD),
            ([0.0, 0.0, 0.6], [0.0, 0.0, 0.0], StabilityLevel.POOR),
            ([0.1, 0.0, 0.0], [0.0, 0.2, 0.0], StabilityLevel.POOR),
            ([1.5, 0.0, 0.0], [0.0, 0.0, 0.0], StabilityLevel.BAD),
            ([0.1, 0.0, 0.0], [0.0, 0.0, 0.4], StabilityLevel.BAD),
        ]
        for accel_std, gyro_std, expected in cases:
            with self.subTest(accel_std=accel_std, gyro_std=gyro_std):
                self.assertIs(classify(_stats(accel_std, gyro_std)), expected)

    def test_bounds_are_strict(self) -> None:
        """A std equal to a limit falls into the next level."""
        self.assertIs(classify(_stats([0.2, 0, 0], [0, 0, 0])), StabilityLevel.GOOD)
        self.assertIs(classify(_stats([0.5, 0, 0], [0, 0, 0])), StabilityLevel.POOR)
        self.assertIs(classify(_stats([1.0, 0, 0], [0, 0, 0])), StabilityLevel.BAD)

    def test_levels_are_ordered(self) -> None:
        self.assertLess(StabilityLevel.EXCELLENT, StabilityLevel.GOOD)
        self.assertLess(StabilityLevel.GOOD, StabilityLevel.POOR)
        self.assertLess(StabilityLevel.POOR, StabilityLevel.BAD)


class TestIsStable(unittest.TestCase):
    """Final pass/fail over the whole collection."""

    def test_still_device(self) -> None:
        self.assertTrue(is_stable(_stats([0.1, 0.1, 0.1], [0.01, 0.01, 0.01])))

    def test_accel_threshold(self) -> None:
        self.assertFalse(is_stable(_stats([0.0, 2.0, 0.0], [0, 0, 0])))
        self.assertTrue(is_stable(_stats([0.0, 1.9, 0.0], [0, 0, 0])))
        self.assertFalse(is_stable(_stats([0.0, 1.0, 0.0], [0, 0, 0]), accel_threshold=0.5))

    def test_gyro_threshold(self) -> None:
        self.assertFalse(is_stable(_stats([0, 0, 0], [0.0, 0.0, 0.5])))
        self.assertTrue(is_stable(_stats([0, 0, 0], [0.0, 0.0, 0.45])))


class TestStabilityClassifier(unittest.TestCase):
    """Window-bound classifier."""

    def _samples(self, z_values):
        return [
            RawSample(accel=[0.0, 0.0, z], gyro=[0.0, 0.0, 0.0], mag=[30.0, 0.0, -20.0])
            for z in z_values
        ]

    def test_unknown_below_window(self) -> None:
        clf = StabilityClassifier()
        self.assertIs(clf.classify_window(self._samples([9.81] * 9)), StabilityLevel.UNKNOWN)

    def test_uses_trailing_window(self) -> None:
        clf = StabilityClassifier(window=10)
        shaky = [9.81 + (0.6 if k % 2 else -0.6) for k in range(20)]
        samples = self._samples(shaky + [9.81] * 10)

        self.assertIs(clf.classify_window(samples), StabilityLevel.EXCELLENT)
        self.assertIs(clf.classify_window(samples[:20]), StabilityLevel.POOR)

    def test_rejects_small_window(self) -> None:
        with self.assertRaises(ValueError):
            StabilityClassifier(window=5)

    def test_is_stable_uses_threshold(self) -> None:
        clf = StabilityClassifier(accel_threshold=0.5)
        self.assertFalse(clf.is_stable(_stats([0.6, 0, 0], [0, 0, 0])))


if __name__ == "__main__":
    unittest.main()
