"""
Configuration Module - Runtime Settings
=======================================
Runtime-tunable values for the particle display, read from the environment
(a `.env` file is loaded by the entry points via python-dotenv).

Group ratios and gesture calibration constants are fixed in their modules
and are not configurable here.
"""

import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


# Defaults
DEFAULT_PARTICLE_COUNT = 80000
DEFAULT_SMOOTHING = 0.05
DEFAULT_FLOW_SPEED = 0.5
DEFAULT_CAMERA_ID = 0
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CAPTION = "Merry Christmas"

# Preview control ranges
PARTICLE_COUNT_PRESETS = (20000, 40000, 80000, 120000)
FLOW_SPEED_RANGE = (0.0, 2.0)
SMOOTHING_RANGE = (0.01, 0.2)

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigurationError(ValueError):
    """Raised when a runtime setting is outside its allowed range."""


@dataclass
class Settings:
    """
    Runtime settings for the display.

    Attributes:
        particle_count: Number of particles (<= 0 renders nothing)
        smoothing: Dispersion smoothing factor in (0, 1]
        flow_speed: Galaxy flow speed (>= 0)
        time_normalized: Normalize smoothing by frame time
        seed: Optional seed for geometry generation
        camera_id: Camera device index
        log_level: Logging level name
        caption: Caption text ('' disables the caption)
    """
    particle_count: int = DEFAULT_PARTICLE_COUNT
    smoothing: float = DEFAULT_SMOOTHING
    flow_speed: float = DEFAULT_FLOW_SPEED
    time_normalized: bool = False
    seed: Optional[int] = None
    camera_id: int = DEFAULT_CAMERA_ID
    log_level: str = DEFAULT_LOG_LEVEL
    caption: str = DEFAULT_CAPTION

    def validate(self) -> "Settings":
        """Check value ranges, raising ConfigurationError on the first bad one."""
        if not 0.0 < self.smoothing <= 1.0:
            raise ConfigurationError(
                f"smoothing must be in (0, 1], got {self.smoothing}"
            )
        if self.flow_speed < 0.0:
            raise ConfigurationError(
                f"flow_speed must be >= 0, got {self.flow_speed}"
            )
        if self.camera_id < 0:
            raise ConfigurationError(
                f"camera_id must be >= 0, got {self.camera_id}"
            )
        if self.particle_count <= 0:
            logger.warning(
                "particle_count=%d, nothing will be rendered", self.particle_count
            )
        return self


def _read(environ: Mapping[str, str], name: str, cast, default):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name}={raw!r} is not a valid value") from exc


def _parse_bool(value: str) -> bool:
    return value.lower() in _TRUE_VALUES


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated Settings

    Environment Variables:
        GALAXY_PARTICLE_COUNT, GALAXY_SMOOTHING, GALAXY_FLOW_SPEED,
        GALAXY_TIME_NORMALIZED, GALAXY_SEED, GALAXY_CAMERA_ID,
        GALAXY_LOG_LEVEL, GALAXY_CAPTION
    """
    env = os.environ if environ is None else environ

    settings = Settings(
        particle_count=_read(env, "GALAXY_PARTICLE_COUNT", int, DEFAULT_PARTICLE_COUNT),
        smoothing=_read(env, "GALAXY_SMOOTHING", float, DEFAULT_SMOOTHING),
        flow_speed=_read(env, "GALAXY_FLOW_SPEED", float, DEFAULT_FLOW_SPEED),
        time_normalized=_read(env, "GALAXY_TIME_NORMALIZED", _parse_bool, False),
        seed=_read(env, "GALAXY_SEED", int, None),
        camera_id=_read(env, "GALAXY_CAMERA_ID", int, DEFAULT_CAMERA_ID),
        log_level=_read(env, "GALAXY_LOG_LEVEL", str, DEFAULT_LOG_LEVEL),
        caption=env.get("GALAXY_CAPTION", DEFAULT_CAPTION),
    )
    return settings.validate()
