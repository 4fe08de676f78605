"""Sensor sample packets and reading combination.

Modules:
    types: RawSample packet and Vec3 validation (as_vec3)
    latch: SampleLatch, combining per-sensor events into RawSample triples
"""

from motocal.sensors.latch import SampleLatch
from motocal.sensors.types import RawSample, Vec3Like, as_vec3

__all__ = [
    "RawSample",
    "SampleLatch",
    "Vec3Like",
    "as_vec3",
]
