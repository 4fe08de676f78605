"""Mounting-orientation calibration and attitude fusion for motorcycle telemetry.

This package contains the reusable engine behind the telemetry logger:
- coords: Rotation representations and the Quaternion value type
- sensors: Raw sample packets and per-sensor reading latching
- calibration: One-shot, quality-scored mounting calibration session
- fusion: Continuous Madgwick-style attitude estimation (AHRS)
- sim: Synthetic sample streams for demos and tests
"""

__version__ = "0.1.0"
