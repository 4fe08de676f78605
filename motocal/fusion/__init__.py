"""Continuous attitude fusion.

Provides the Madgwick gradient-descent AHRS filter, which can be seeded
with the quaternion of a completed calibration.
"""

from motocal.fusion.madgwick import DEFAULT_BETA, AttitudeFusionFilter

__all__ = [
    "AttitudeFusionFilter",
    "DEFAULT_BETA",
]
