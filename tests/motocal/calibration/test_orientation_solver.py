"""Unit tests for the closed-form mounting orientation solver.

The fixtures build readings for a known mounting rotation R:
    gravity  = 9.81 * R[2, :]          (reference z seen in the device frame)
    magnetic = R.T @ [30, 0, -20]
and check that the solver recovers R and its ZYX Euler angles.
"""

import unittest

import numpy as np

from motocal.calibration.errors import OrientationUndeterminedError
from motocal.calibration.orientation import reference_basis, solve_orientation
from motocal.coords.rotations import euler_to_rotation_matrix

MAG_REFERENCE = np.array([30.0, 0.0, -20.0])


def _readings(roll, pitch, yaw):
    R = euler_to_rotation_matrix(roll, pitch, yaw)
    return R, 9.81 * R[2, :], R.T @ MAG_REFERENCE


class TestSolveOrientation(unittest.TestCase):
    """Known mounting orientations are recovered."""

    def test_level_device(self) -> None:
        sol = solve_orientation([0.0, 0.0, 9.81], [30.0, 0.0, -20.0])

        np.testing.assert_allclose(sol.rotation_matrix, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(sol.pitch, 0.0, places=9)
        self.assertAlmostEqual(sol.roll, 0.0, places=9)
        self.assertAlmostEqual(sol.azimuth, 0.0, places=9)
        np.testing.assert_allclose(sol.quaternion.as_array(), [1.0, 0.0, 0.0, 0.0], atol=1e-7)

    def test_known_mountings(self) -> None:
        cases = [
            (10.0, 0.0, 0.0),
            (0.0, -20.0, 0.0),
            (0.0, 0.0, 90.0),
            (8.0, -25.0, 40.0),
            (-35.0, 15.0, -120.0),
            (5.0, 60.0, 170.0),
        ]
        for roll_deg, pitch_deg, yaw_deg in cases:
            with self.subTest(roll=roll_deg, pitch=pitch_deg, yaw=yaw_deg):
                R, g, m = _readings(*np.radians([roll_deg, pitch_deg, yaw_deg]))
                sol = solve_orientation(g, m)

                np.testing.assert_allclose(sol.rotation_matrix, R, atol=1e-9)
                self.assertAlmostEqual(sol.roll, roll_deg, places=6)
                self.assertAlmostEqual(sol.pitch, pitch_deg, places=6)
                self.assertAlmostEqual(sol.azimuth, yaw_deg, places=6)
                np.testing.assert_allclose(
                    sol.quaternion.to_rotation_matrix(), R, atol=1e-6
                )

    def test_magnitudes_do_not_matter(self) -> None:
        R, g, m = _readings(0.2, -0.1, 0.5)
        sol = solve_orientation(g * 0.5, m * 3.0)
        np.testing.assert_allclose(sol.rotation_matrix, R, atol=1e-9)

    def test_result_is_proper_rotation(self) -> None:
        sol = solve_orientation([0.3, -1.2, 9.7], [22.0, 5.0, -31.0])
        R = sol.rotation_matrix

        np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(np.linalg.det(R), 1.0, places=12)
        self.assertAlmostEqual(sol.quaternion.norm(), 1.0, places=12)

    def test_gravity_maps_to_reference_down_axis(self) -> None:
        g = np.array([0.3, -1.2, 9.7])
        sol = solve_orientation(g, [22.0, 5.0, -31.0])
        np.testing.assert_allclose(
            sol.rotation_matrix @ g, [0.0, 0.0, np.linalg.norm(g)], atol=1e-9
        )


class TestDegenerateGeometry(unittest.TestCase):
    """Inputs that leave the heading undetermined."""

    def test_collinear_vectors(self) -> None:
        with self.assertRaises(OrientationUndeterminedError):
            solve_orientation([0.0, 0.0, 9.81], [0.0, 0.0, 40.0])

    def test_anti_parallel_vectors(self) -> None:
        with self.assertRaises(OrientationUndeterminedError):
            solve_orientation([0.0, 0.0, 9.81], [0.0, 0.0, -40.0])

    def test_nearly_collinear_vectors(self) -> None:
        with self.assertRaises(OrientationUndeterminedError):
            reference_basis([0.0, 0.0, 9.81], [1e-4, 0.0, 40.0])

    def test_zero_vectors(self) -> None:
        with self.assertRaises(OrientationUndeterminedError):
            solve_orientation([0.0, 0.0, 0.0], [30.0, 0.0, -20.0])
        with self.assertRaises(OrientationUndeterminedError):
            solve_orientation([0.0, 0.0, 9.81], [0.0, 0.0, 0.0])

    def test_error_carries_failure_kind(self) -> None:
        with self.assertRaises(OrientationUndeterminedError) as ctx:
            solve_orientation([0.0, 0.0, 9.81], [0.0, 0.0, 40.0])

        self.assertEqual(ctx.exception.kind.value, "orientation_undetermined")
        self.assertIn("collinear", ctx.exception.reason)


if __name__ == "__main__":
    unittest.main()
