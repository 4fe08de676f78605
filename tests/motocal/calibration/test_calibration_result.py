"""Unit tests for CalibrationResult and the log-header representation."""

import json
import unittest

import numpy as np

from motocal.calibration.errors import CalibrationFailure, FailureKind
from motocal.calibration.orientation import solve_orientation
from motocal.calibration.quality import CalibrationQuality, score_quality
from motocal.calibration.result import (
    HEADER_FORMAT_VERSION,
    CalibrationResult,
    failure_header,
    no_calibration_header,
)
from motocal.calibration.statistics import compute_statistics
from motocal.coords.rotations import euler_to_rotation_matrix
from motocal.sim import generate_mounted_samples


def _make_result(roll=0.1, pitch=-0.3, yaw=0.7, gyro_bias=(0.01, -0.02, 0.005)):
    samples = generate_mounted_samples(
        roll, pitch, yaw, n=100, gyro_bias=gyro_bias,
        accel_noise=0.01, mag_noise=0.1, rng=np.random.default_rng(0),
    )
    stats = compute_statistics(samples)
    sol = solve_orientation(stats.accel_mean, stats.mag_mean)
    quality = score_quality(stats, stats.accel_mean, stats.mag_mean, 2.0, True)
    return CalibrationResult(
        reference_gravity=stats.accel_mean,
        reference_magnetic=stats.mag_mean,
        rotation_matrix=sol.rotation_matrix,
        quaternion=sol.quaternion,
        pitch=sol.pitch,
        roll=sol.roll,
        azimuth=sol.azimuth,
        gyro_bias=stats.gyro_mean,
        quality=quality,
        timestamp_ms=1700000000000,
        duration_ms=3000,
        sample_count=len(samples),
    )


class TestCalibrationResult(unittest.TestCase):
    """Construction rules and vector transforms."""

    def test_rejects_unacceptable_quality(self) -> None:
        result = _make_result()
        bad = CalibrationQuality(50.0, 50.0, 50.0, 50.0, False)
        with self.assertRaises(ValueError):
            CalibrationResult(
                reference_gravity=result.reference_gravity,
                reference_magnetic=result.reference_magnetic,
                rotation_matrix=result.rotation_matrix,
                quaternion=result.quaternion,
                pitch=0.0,
                roll=0.0,
                azimuth=0.0,
                gyro_bias=result.gyro_bias,
                quality=bad,
                timestamp_ms=0,
                duration_ms=0,
                sample_count=0,
            )

    def test_arrays_are_read_only(self) -> None:
        result = _make_result()
        with self.assertRaises(ValueError):
            result.rotation_matrix[0, 0] = 2.0
        with self.assertRaises(ValueError):
            result.gyro_bias[0] = 2.0

    def test_transform_vector(self) -> None:
        """Reference gravity maps onto the reference down axis."""
        result = _make_result()
        g = result.transform_vector(result.reference_gravity)
        np.testing.assert_allclose(
            g, [0.0, 0.0, np.linalg.norm(result.reference_gravity)], atol=1e-9
        )

    def test_inverse_transform_vector(self) -> None:
        result = _make_result()
        v = np.array([1.0, -2.0, 3.0])
        np.testing.assert_allclose(
            result.inverse_transform_vector(result.transform_vector(v)), v, atol=1e-12
        )

    def test_matches_true_mounting(self) -> None:
        result = _make_result(roll=0.1, pitch=-0.3, yaw=0.7)
        R_true = euler_to_rotation_matrix(0.1, -0.3, 0.7)
        np.testing.assert_allclose(result.rotation_matrix, R_true, atol=5e-3)

    def test_correct_gyro(self) -> None:
        result = _make_result(gyro_bias=(0.01, -0.02, 0.005))
        np.testing.assert_allclose(
            result.correct_gyro([0.01, -0.02, 0.005]), np.zeros(3), atol=1e-12
        )


class TestHeader(unittest.TestCase):
    """'# '-prefixed JSON block at the top of a sensor log."""

    def test_header_lines_are_prefixed(self) -> None:
        header = _make_result().to_header()
        lines = header.splitlines()

        self.assertTrue(lines[0].startswith("# Calibration: {"))
        for line in lines:
            self.assertTrue(line.startswith("# "))
        self.assertIn(f'"format_version": "{HEADER_FORMAT_VERSION}"', header)

    def test_round_trip(self) -> None:
        result = _make_result()
        parsed = CalibrationResult.from_header(result.to_header())

        np.testing.assert_array_equal(parsed.reference_gravity, result.reference_gravity)
        np.testing.assert_array_equal(parsed.reference_magnetic, result.reference_magnetic)
        np.testing.assert_array_equal(parsed.rotation_matrix, result.rotation_matrix)
        np.testing.assert_array_equal(parsed.gyro_bias, result.gyro_bias)
        np.testing.assert_allclose(
            parsed.quaternion.as_array(), result.quaternion.as_array(), atol=1e-15
        )
        self.assertEqual(parsed.pitch, result.pitch)
        self.assertEqual(parsed.roll, result.roll)
        self.assertEqual(parsed.azimuth, result.azimuth)
        self.assertEqual(parsed.quality, result.quality)
        self.assertEqual(parsed.timestamp_ms, result.timestamp_ms)
        self.assertEqual(parsed.duration_ms, result.duration_ms)
        self.assertEqual(parsed.sample_count, result.sample_count)

    def test_parse_ignores_column_row(self) -> None:
        result = _make_result()
        log_head = result.to_header() + "\ntimestamp,ax,ay,az,gx,gy,gz,mx,my,mz\n1,2,3"

        parsed = CalibrationResult.from_header(log_head)
        self.assertEqual(parsed.sample_count, result.sample_count)

    def test_no_calibration_header(self) -> None:
        header = no_calibration_header()

        self.assertTrue(header.startswith("# Calibration: {"))
        self.assertIn('"status": "none"', header)
        with self.assertRaises(ValueError):
            CalibrationResult.from_header(header)

    def test_failure_header(self) -> None:
        failure = CalibrationFailure(FailureKind.DEVICE_UNSTABLE, "Device was moving")

        header = failure.to_header()
        self.assertEqual(header, failure_header(failure))
        self.assertIn('"kind": "device_unstable"', header)
        self.assertIn('"reason": "Device was moving"', header)
        with self.assertRaises(ValueError):
            CalibrationResult.from_header(header)

    def test_edited_scores_are_rejected(self) -> None:
        """Acceptance is re-derived from the scores, not read from the block."""
        data = _make_result().to_dict()
        data["quality"]["score"] = 5.0
        data["quality"]["gravity"] = 0.0
        self.assertTrue(data["quality"]["acceptable"])

        body = "Calibration: " + json.dumps(data, indent=2)
        header = "\n".join("# " + line for line in body.splitlines())
        with self.assertRaises(ValueError):
            CalibrationResult.from_header(header)
        with self.assertRaises(ValueError):
            CalibrationResult.from_dict(data)

    def test_unstable_flag_is_rejected(self) -> None:
        data = _make_result().to_dict()
        data["quality"]["stable"] = False
        with self.assertRaises(ValueError):
            CalibrationResult.from_dict(data)

    def test_malformed_header(self) -> None:
        with self.assertRaises(ValueError):
            CalibrationResult.from_header("# nothing here")
        with self.assertRaises(ValueError):
            CalibrationResult.from_header("# Calibration: {\n# \"status\": ")
        with self.assertRaises(ValueError):
            CalibrationResult.from_header('# Calibration: {"status": "completed"}')


if __name__ == "__main__":
    unittest.main()
