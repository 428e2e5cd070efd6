"""Configuration loader for Glyph Recorder.

Loads configuration from YAML files and environment variables.
Environment variables override YAML values using the GLYPHREC_ prefix.
Nested keys use double underscores: GLYPHREC_CAPTURE__IDLE_LIMIT=80
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from glyph_recorder.core.loop import CaptureLoopConfig
from glyph_recorder.core.session import SessionLimits
from glyph_recorder.interfaces.errors import ConfigurationError
from glyph_recorder.vision.detection import CircleParams, DetectionConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "GLYPHREC_"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "configs" / "default.yaml"


class CaptureConfig(BaseModel):
    """Polling and session limits."""

    auto_interval_ms: int = Field(default=200, ge=10, le=10000, description="Auto-capture tick")
    manual_interval_ms: int = Field(default=1000, ge=10, le=60000)
    idle_limit: int = Field(default=50, ge=1, description="Empty ticks before giving up")
    busy_limit: int = Field(default=65, ge=1, description="Glyph-less ticks while capturing")
    max_workers: int = Field(default=4, ge=1, le=32)
    classify_timeout: float = Field(default=5.0, gt=0.0, le=60.0)
    buffer_size: int = Field(default=5, ge=1, le=100)

    def to_loop_config(self) -> CaptureLoopConfig:
        return CaptureLoopConfig(
            auto_interval_ms=float(self.auto_interval_ms),
            manual_interval_ms=float(self.manual_interval_ms),
            max_workers=self.max_workers,
            limits=SessionLimits(idle_limit=self.idle_limit, busy_limit=self.busy_limit),
        )


class CircleConfig(BaseModel):
    """Hough circle parameters for anchor calibration."""

    dp: float = Field(default=1.2, gt=0.0)
    min_dist: float = Field(default=30.0, gt=0.0)
    param1: float = Field(default=50.0, gt=0.0)
    param2: float = Field(default=30.0, gt=0.0)
    min_radius: int = Field(default=25, ge=0)
    max_radius: int = Field(default=30, ge=0)


class DetectionSettings(BaseModel):
    """Detector thresholds."""

    circles: CircleConfig = Field(default_factory=CircleConfig)
    blur_kernel: int = Field(default=9, ge=1)
    blur_sigma: float = Field(default=2.0, ge=0.0)
    hexagon_threshold: int = Field(default=128, ge=0, le=255)
    approx_epsilon: float = Field(default=0.02, gt=0.0, lt=1.0)
    edge_tolerance: float = Field(default=0.15, ge=0.0, le=1.0)
    angle_tolerance: float = Field(default=15.0, ge=0.0, le=60.0)
    dedupe_distance: float = Field(default=20.0, ge=0.0)
    top_band_fraction: float = Field(default=0.2, gt=0.0, le=1.0)
    line_samples: int = Field(default=100, ge=2)
    lit_threshold: int = Field(default=200, ge=0, le=255)
    activation_ratio: float = Field(default=0.7, ge=0.0, le=1.0)

    @field_validator("blur_kernel")
    @classmethod
    def _odd_kernel(cls, value: int) -> int:
        if value % 2 == 0:
            raise ValueError("blur_kernel must be odd")
        return value

    def to_detection_config(self) -> DetectionConfig:
        data = self.model_dump()
        circles = CircleParams(**data.pop("circles"))
        return DetectionConfig(circles=circles, **data)


class MatchingConfig(BaseModel):
    """Glyph matching settings."""

    glyph_threshold: float = Field(default=0.95, gt=0.0, le=1.0)


class CatalogConfig(BaseModel):
    """Catalog files. The bundled catalog is used for any file left unset."""

    glyph_file: str | None = Field(default=None)
    sequence_file: str | None = Field(default=None)


class CalibrationConfig(BaseModel):
    """Calibrated anchor coordinates, in reading order."""

    points: list[tuple[int, int]] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return len(self.points) == 11


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    format: str = Field(default="text", pattern="^(text|json)$")


class Config(BaseModel):
    """Root configuration model."""

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    calibration: CalibrationConfig = Field(default_factory=CalibrationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _get_env_value(key: str) -> str | None:
    """Get environment variable with GLYPHREC_ prefix."""
    return os.environ.get(f"{ENV_PREFIX}{key.upper()}")


def _apply_env_overrides(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Apply environment variable overrides to config data.

    Only keys present in the data are overridden, and lists are left as
    they are. Example: GLYPHREC_CAPTURE__IDLE_LIMIT=80 sets
    capture.idle_limit to 80.
    """
    result = data.copy()

    for key, value in result.items():
        env_key = f"{prefix}__{key}" if prefix else key

        if isinstance(value, dict):
            result[key] = _apply_env_overrides(value, env_key)
        elif not isinstance(value, list):
            env_value = _get_env_value(env_key)
            if env_value is not None:
                if isinstance(value, bool):
                    result[key] = env_value.lower() in ("true", "1", "yes")
                elif isinstance(value, int):
                    result[key] = int(env_value)
                elif isinstance(value, float):
                    result[key] = float(env_value)
                else:
                    result[key] = env_value

    return result


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses
            configs/default.yaml when present and built-in defaults
            otherwise.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist.
        ValidationError: If config values are invalid.
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.debug("No default config file, using built-in defaults")
            data = Config().model_dump()
            return Config.model_validate(_apply_env_overrides(data))
        config_path = DEFAULT_CONFIG_PATH
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    data = _apply_env_overrides(data)
    logger.debug(f"Loaded config from {config_path}")
    return Config.model_validate(data)


def get_default_config() -> Config:
    """Get default configuration without loading from file."""
    return Config()


def save_calibration(config_path: str | Path, points: list[tuple[int, int]]) -> None:
    """Store calibrated anchor points in a YAML config file.

    Other settings in the file are preserved; the file is created if
    missing.

    Raises:
        ConfigurationError: If the existing file is not a YAML mapping.
    """
    config_path = Path(config_path)
    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file is not a mapping: {config_path}")
        data = loaded or {}

    calibration = data.get("calibration") or {}
    calibration["points"] = [[int(x), int(y)] for x, y in points]
    data["calibration"] = calibration

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
    logger.info(f"Saved {len(points)} calibration points to {config_path}")
