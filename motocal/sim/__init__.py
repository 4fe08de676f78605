"""Synthetic sensor data for a device on a handlebar mount.

Modules:
    mount_samples: Still-device sample sets for calibration and constant-rate
                   rotating streams for attitude fusion
"""

from motocal.sim.mount_samples import (
    DEFAULT_MAG_REFERENCE,
    generate_mounted_samples,
    generate_rotating_stream,
    mounted_readings,
)

__all__ = [
    "DEFAULT_MAG_REFERENCE",
    "generate_mounted_samples",
    "generate_rotating_stream",
    "mounted_readings",
]
