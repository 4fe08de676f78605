"""Tunable settings for a calibration session.

Values normally come from the app's settings store; SessionConfig.from_settings
reads the store's calibration keys and falls back to the defaults below for
anything missing.
"""

import warnings
from dataclasses import dataclass, fields
from typing import Any, Mapping

from motocal.calibration.errors import InvalidConfigurationError
from motocal.calibration.stability import MIN_CLASSIFY_SAMPLES

DEFAULT_DURATION_MS = 3000
DEFAULT_MIN_SAMPLES = 50
DEFAULT_STABILITY_THRESHOLD = 2.0
DEFAULT_MAX_EXTENSIONS = 3
DEFAULT_EXTENSION_MS = 1000
DEFAULT_TICK_INTERVAL_MS = 100
DEFAULT_LIVE_WINDOW = 10

# Settings-store key -> SessionConfig field
SETTINGS_KEYS = {
    "calibration_duration_ms": "duration_ms",
    "calibration_min_samples": "min_samples",
    "calibration_stability_threshold": "stability_threshold",
    "calibration_max_extensions": "max_extensions",
}


@dataclass(frozen=True)
class SessionConfig:
    """
    Configuration for one calibration run.

    Attributes:
        duration_ms: Base collection time before processing. Must be > 0.
        min_samples: Samples required at the end of collection. Must be > 0.
        stability_threshold: Per-axis accelerometer std bound (m/s²) for
                             the final stability check; also normalizes the
                             stability score. Must be > 0.
        max_extensions: How many times collection may be extended while
                        live stability is POOR. Zero disables extension.
        extension_ms: Time added per extension.
        tick_interval_ms: Period of the progress/timing loop.
        live_window: Number of trailing samples used for live stability.

    Raises:
        InvalidConfigurationError: On any out-of-range value.

    Example:
        >>> SessionConfig(duration_ms=2000, min_samples=50).max_extensions
        3
    """

    duration_ms: int = DEFAULT_DURATION_MS
    min_samples: int = DEFAULT_MIN_SAMPLES
    stability_threshold: float = DEFAULT_STABILITY_THRESHOLD
    max_extensions: int = DEFAULT_MAX_EXTENSIONS
    extension_ms: int = DEFAULT_EXTENSION_MS
    tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS
    live_window: int = DEFAULT_LIVE_WINDOW

    def __post_init__(self) -> None:
        """Validate ranges."""
        if self.duration_ms <= 0:
            raise InvalidConfigurationError(
                f"duration_ms must be positive, got {self.duration_ms}"
            )
        if self.min_samples <= 0:
            raise InvalidConfigurationError(
                f"min_samples must be positive, got {self.min_samples}"
            )
        if not self.stability_threshold > 0:
            raise InvalidConfigurationError(
                f"stability_threshold must be positive, got {self.stability_threshold}"
            )
        if self.max_extensions < 0:
            raise InvalidConfigurationError(
                f"max_extensions must be non-negative, got {self.max_extensions}"
            )
        if self.extension_ms <= 0:
            raise InvalidConfigurationError(
                f"extension_ms must be positive, got {self.extension_ms}"
            )
        if self.tick_interval_ms <= 0:
            raise InvalidConfigurationError(
                f"tick_interval_ms must be positive, got {self.tick_interval_ms}"
            )
        if self.live_window < MIN_CLASSIFY_SAMPLES:
            raise InvalidConfigurationError(
                f"live_window must be at least {MIN_CLASSIFY_SAMPLES}, got {self.live_window}"
            )

        # Earth gravity is 9.81 m/s²; a larger per-axis std means the check
        # accepts a device that is being shaken.
        if self.stability_threshold > 5.0:
            warnings.warn(
                f"stability_threshold of {self.stability_threshold} m/s² is "
                f"unusually loose. Typical values are 0.5-2.0 m/s².",
                UserWarning,
            )

    @property
    def max_duration_ms(self) -> int:
        """Upper bound on collection time including every extension."""
        return self.duration_ms + self.max_extensions * self.extension_ms

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "SessionConfig":
        """
        Build a config from settings-store key/value pairs.

        Unknown keys are ignored; missing keys keep their defaults. Keys may
        be either the store names (e.g. "calibration_duration_ms") or the
        field names themselves.

        Example:
            >>> cfg = SessionConfig.from_settings({"calibration_duration_ms": 2000})
            >>> cfg.duration_ms
            2000
        """
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in settings.items():
            name = SETTINGS_KEYS.get(key, key)
            if name not in names:
                continue
            try:
                kwargs[name] = float(value) if name == "stability_threshold" else int(value)
            except (TypeError, ValueError) as e:
                raise InvalidConfigurationError(
                    f"Setting {key!r} has invalid value {value!r}"
                ) from e
        return cls(**kwargs)
