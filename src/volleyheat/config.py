"""
Configuration & Path Management
===============================
This module serves as the central registry for file paths and the frozen
application configuration.

Why is this file needed?
------------------------
1. Single source of truth: court dimensions, drawing constants and validation
   limits live here, built once at startup and passed into every component.
2. Immutability: all sections are frozen dataclasses. Changing a value means
   building a new config (see `load_config`), never mutating the live one.
3. Deployment: It handles the logic required by PyInstaller (sys._MEIPASS) to
   find assets when the app is frozen into an .exe.

Exports:
    ASSETS_PATH (str): Absolute path to the assets directory.
    DEFAULT_CONFIG_PATH (str): Absolute path to the shipped default config.
    DEFAULT_CONFIG (AppConfig): Built-in configuration.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field, fields, replace, is_dataclass
from importlib.metadata import version, PackageNotFoundError
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Session document format version written into every saved file.
FORMAT_VERSION = "1.1"

try:
    APP_VERSION = version("volleyheat")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to resource, works for dev and for PyInstaller.
    """
    if hasattr(sys, '_MEIPASS'):
        # PyInstaller temp folder
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # Development mode: resolve relative to this file
    # config.py is in src/volleyheat/
    current_file_path: Path = Path(__file__)
    project_root: Path = current_file_path.parent.parent.parent
    return os.path.join(str(project_root), relative_path)


@dataclass(frozen=True)
class GridConfig:
    size: float = 15.0  # Court width in meters (constant for both modes)
    canvas_size: float = 600.0  # Canvas width in pixels (constant for both modes)
    inner_square_size: float = 9.0  # meters
    line_color: str = "#e0e0e0"
    line_width: float = 1.0


@dataclass(frozen=True)
class DrawingConfig:
    cloud_radius: float = 45.0  # pixels
    dot_radius: float = 1.0
    dot_color: str = "#000000"
    dashed_line_width_meters: float = 11.0
    dashed_line_stroke: float = 4.0
    dash_length: float = 10.0
    charting_line_width: float = 1.0
    number_font_size: float = 14.0
    number_offset_x: float = 7.0
    number_offset_y: float = -7.0
    circle_diameter: float = 6.0  # center line end markers, pixels
    circle_scale: float = 3.0

    @property
    def circle_radius(self) -> float:
        return (self.circle_diameter / 2) * self.circle_scale


@dataclass(frozen=True)
class GradientStop:
    offset: float
    color: Tuple[float, float, float, float]  # RGBA, channels in 0..1


def _default_gradient() -> Tuple[GradientStop, ...]:
    return (
        GradientStop(0.0, (1.0, 0.0, 0.0, 0.30)),
        GradientStop(0.3, (1.0, 0.0, 0.0, 0.224)),
        GradientStop(0.5, (200 / 255, 0.0, 150 / 255, 0.140)),
        GradientStop(0.7, (128 / 255, 128 / 255, 1.0, 0.084)),
        GradientStop(1.0, (173 / 255, 216 / 255, 230 / 255, 0.0)),
    )


@dataclass(frozen=True)
class ColorConfig:
    outside: str = "#008080d9"  # teal
    inside_above: str = "#ffa500"  # orange
    inside_below: str = "#ffc880"  # light orange
    upper_rect: str = "#c8c8c8"  # light gray
    inner_square_border: str = "#333333"
    dashed_line: str = "#000000"
    team_none: str = "#000000"
    team_us: str = "#00aa00"
    team_opp: str = "#0000ff"
    gradient: Tuple[GradientStop, ...] = field(default_factory=_default_gradient)


@dataclass(frozen=True)
class ZoneConfig:
    horizontal_line_offset: float = 3.0  # meters from top of inner square
    attack_line_extension_multiplier: float = 1.5


@dataclass(frozen=True)
class ValidationConfig:
    min_rotation: int = 1
    max_rotation: int = 6
    min_jersey_filters_for_clear: int = 2
    max_file_size: int = 10 * 1024 * 1024  # bytes
    max_point_count: int = 10000  # performance warning threshold
    max_undo_stack_size: int = 1000  # 0 = unlimited
    auto_trim_undo_stack: bool = True
    max_session_name_length: int = 50
    read_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class DebugConfig:
    enabled: bool = False
    assertions_enabled: bool = True
    log_level: str = "WARNING"

    @property
    def assertions_active(self) -> bool:
        return self.enabled and self.assertions_enabled

    @property
    def logging_level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.WARNING


@dataclass(frozen=True)
class AppConfig:
    """Process-wide configuration. Built once, never mutated."""
    grid: GridConfig = field(default_factory=GridConfig)
    drawing: DrawingConfig = field(default_factory=DrawingConfig)
    colors: ColorConfig = field(default_factory=ColorConfig)
    zones: ZoneConfig = field(default_factory=ZoneConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)
    version: str = FORMAT_VERSION


def _apply_overrides(section: Any, overrides: Dict[str, Any], path: str) -> Any:
    """Return a copy of a frozen section with the given keys replaced."""
    known = {f.name: f for f in fields(section)}
    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key '{path}{key}'")
            continue
        current = getattr(section, key)
        if is_dataclass(current) and isinstance(value, dict):
            changes[key] = _apply_overrides(current, value, f"{path}{key}.")
        elif key == "gradient":
            changes[key] = tuple(
                GradientStop(offset=float(stop["offset"]), color=tuple(stop["color"]))
                for stop in value
            )
        else:
            changes[key] = value
    return replace(section, **changes)


def load_config(path: Optional[str] = None, base: Optional[AppConfig] = None) -> AppConfig:
    """
    Build an AppConfig from a JSON override file.

    Args:
        path: JSON file with nested sections (e.g. {"validation": {...}}).
            Defaults to the shipped assets/config_default.json; a missing
            default file falls back to the built-in values.
        base: Configuration the overrides are applied on top of.

    Returns:
        A new frozen AppConfig.
    """
    base = base or AppConfig()
    target = path or DEFAULT_CONFIG_PATH

    if not os.path.exists(target):
        if path is not None:
            raise FileNotFoundError(f"Config file not found: {path}")
        logger.debug(f"No config file at {target}, using built-in defaults.")
        return base

    with open(target, "r", encoding="utf-8") as f:
        overrides = json.load(f)

    if not isinstance(overrides, dict):
        raise ValueError(f"Config file '{target}' must contain a JSON object.")

    config = _apply_overrides(base, overrides, "")
    logger.info(f"Configuration loaded from: {target}")
    return config


# Global Constants
ASSETS_PATH: str = get_resource_path("assets")
DEFAULT_CONFIG_PATH: str = os.path.join(ASSETS_PATH, "config_default.json")
DEFAULT_CONFIG: AppConfig = AppConfig()
