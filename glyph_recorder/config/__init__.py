"""Configuration management for Glyph Recorder."""

from glyph_recorder.config.loader import (
    Config,
    get_default_config,
    load_config,
    save_calibration,
)

__all__ = ["Config", "get_default_config", "load_config", "save_calibration"]
