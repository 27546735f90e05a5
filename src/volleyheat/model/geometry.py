"""
Court Geometry
==============
Derives every layout metric of the court canvas from the grid configuration
and the session mode.

Why is this file needed?
------------------------
1. Single formula set: the renderer, the input handling and the codec all need
   the same pixel <-> meter relation. Everything here is a linear function of
   `scale`, the inner square size and, in charting mode only, a constant
   vertical offset that makes room for the mirrored upper half.
2. Purity: `CourtGeometry` is frozen. A mode switch builds a new instance
   (`for_mode`); an instance built for one mode is never reused for the other.

Layout (simple mode, default config, scale = 40 px/m):
    - 15 x 15 m canvas, 9 x 9 m inner square starting at 120 px.
    - 9 x 3 m rectangle directly above the inner square.
    - Dashed center line (11 m) on the top edge of the inner square.

Charting mode uses a 22 m tall canvas and shifts everything down by 7 m so the
opposite court half is drawn above the center line.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple, TYPE_CHECKING

import numpy as np

from volleyheat.config import AppConfig
from volleyheat.model.state import SessionMode

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# Physical constants of the drawn court (meters).
CHARTING_HEIGHT_METERS = 22.0
CHARTING_VERTICAL_OFFSET_METERS = 7.0
UPPER_RECT_WIDTH_METERS = 9.0
UPPER_RECT_HEIGHT_METERS = 3.0
BACK_COURT_DEPTH_METERS = 6.0
# Pixel origin sits 3 court meters above the reference origin.
METER_ORIGIN_OFFSET = 3.0


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class Segment:
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(frozen=True)
class Zone:
    """Filled background area. `color_key` names a ColorConfig field."""
    name: str
    rect: Rect
    color_key: str


@dataclass(frozen=True)
class CourtGeometry:
    """Pure layout math for one (config, mode) pair."""
    config: AppConfig
    mode: SessionMode = SessionMode.SIMPLE

    def __post_init__(self) -> None:
        # Accept raw strings ("simple"/"charting") as well as enum members.
        object.__setattr__(self, "mode", SessionMode(self.mode))
        logger.debug(f"CourtGeometry initialized with mode: {self.mode}")

    def for_mode(self, mode: SessionMode) -> CourtGeometry:
        """Geometry for another mode. Never reuse an instance across modes."""
        return CourtGeometry(config=self.config, mode=mode)

    @property
    def is_charting(self) -> bool:
        return self.mode == SessionMode.CHARTING

    # ------------------------------------------------------------------
    # Canvas
    # ------------------------------------------------------------------
    @property
    def scale(self) -> float:
        """Pixels per meter, always based on the court width."""
        return self.config.grid.canvas_size / self.config.grid.size

    @property
    def canvas_width(self) -> float:
        return self.config.grid.canvas_size

    @property
    def canvas_height(self) -> float:
        if self.is_charting:
            return CHARTING_HEIGHT_METERS * self.scale
        return self.config.grid.canvas_size

    @property
    def height_meters(self) -> float:
        return CHARTING_HEIGHT_METERS if self.is_charting else self.config.grid.size

    @property
    def vertical_offset(self) -> float:
        return CHARTING_VERTICAL_OFFSET_METERS * self.scale if self.is_charting else 0.0

    # ------------------------------------------------------------------
    # Inner square
    # ------------------------------------------------------------------
    @property
    def inner_offset(self) -> float:
        """Meters between the canvas edge and the inner square."""
        return (self.config.grid.size - self.config.grid.inner_square_size) / 2

    @property
    def inner_start(self) -> float:
        return self.inner_offset * self.scale

    @property
    def inner_start_y(self) -> float:
        return self.inner_start + self.vertical_offset

    @property
    def inner_end(self) -> float:
        return (self.inner_offset + self.config.grid.inner_square_size) * self.scale

    @property
    def inner_end_y(self) -> float:
        return self.inner_end + self.vertical_offset

    @property
    def inner_width(self) -> float:
        return self.inner_end - self.inner_start

    @property
    def horizontal_line_y(self) -> float:
        return (self.inner_offset + self.config.zones.horizontal_line_offset) * self.scale \
            + self.vertical_offset

    # ------------------------------------------------------------------
    # Upper rectangle and center line
    # ------------------------------------------------------------------
    @property
    def upper_rect(self) -> Rect:
        width = UPPER_RECT_WIDTH_METERS * self.scale
        height = UPPER_RECT_HEIGHT_METERS * self.scale
        return Rect(
            x=(self.config.grid.canvas_size - width) / 2,
            y=self.inner_start - height + self.vertical_offset,
            width=width,
            height=height,
        )

    @property
    def dashed_line_width(self) -> float:
        return self.config.drawing.dashed_line_width_meters * self.scale

    @property
    def center_line(self) -> Segment:
        rect = self.upper_rect
        x1 = (self.config.grid.canvas_size - self.dashed_line_width) / 2
        y = rect.y2
        return Segment(x1=x1, y1=y, x2=x1 + self.dashed_line_width, y2=y)

    @property
    def attack_line_extension_length(self) -> float:
        inner_px = self.config.grid.inner_square_size * self.scale
        return ((self.dashed_line_width - inner_px) / 2) \
            * self.config.zones.attack_line_extension_multiplier

    # ------------------------------------------------------------------
    # Derived drawing lists
    # ------------------------------------------------------------------
    def zones(self) -> List[Zone]:
        """Filled background areas, in paint order."""
        outside = Zone("outside", Rect(0.0, 0.0, self.canvas_width, self.canvas_height), "outside")
        if not self.is_charting:
            rect = self.upper_rect
            return [
                outside,
                Zone("inside_above", Rect(self.inner_start, self.inner_start_y, self.inner_width,
                                          self.horizontal_line_y - self.inner_start_y), "inside_above"),
                Zone("inside_below", Rect(self.inner_start, self.horizontal_line_y, self.inner_width,
                                          self.inner_end_y - self.horizontal_line_y), "inside_below"),
                Zone("upper_rect", rect, "upper_rect"),
            ]

        center_y = self.center_line.y1
        front_h = UPPER_RECT_HEIGHT_METERS * self.scale
        back_h = BACK_COURT_DEPTH_METERS * self.scale
        rect_x = self.upper_rect.x
        rect_w = self.upper_rect.width
        return [
            outside,
            Zone("inside_above", Rect(self.inner_start, center_y, self.inner_width,
                                      self.horizontal_line_y - center_y), "inside_above"),
            Zone("inside_below", Rect(self.inner_start, self.horizontal_line_y, self.inner_width,
                                      self.inner_end_y - self.horizontal_line_y), "inside_below"),
            Zone("opponent_front", Rect(rect_x, center_y - front_h, rect_w, front_h), "upper_rect"),
            Zone("opponent_back", Rect(rect_x, center_y - front_h - back_h, rect_w, back_h), "upper_rect"),
        ]

    def outlines(self) -> List[Rect]:
        """Stroked court rectangles."""
        if not self.is_charting:
            return [
                Rect(self.inner_start, self.inner_start_y, self.inner_width, self.inner_width),
                self.upper_rect,
            ]
        center_y = self.center_line.y1
        front_h = UPPER_RECT_HEIGHT_METERS * self.scale
        back_h = BACK_COURT_DEPTH_METERS * self.scale
        x, w = self.upper_rect.x, self.upper_rect.width
        return [
            Rect(x, center_y, w, front_h),
            Rect(x, center_y + front_h, w, back_h),
            Rect(x, center_y - front_h, w, front_h),
            Rect(x, center_y - front_h - back_h, w, back_h),
        ]

    def attack_lines_y(self) -> List[float]:
        """Y positions of the solid attack lines across the inner square."""
        if not self.is_charting:
            return [self.horizontal_line_y]
        center_y = self.center_line.y1
        front_h = UPPER_RECT_HEIGHT_METERS * self.scale
        return [center_y + front_h, center_y - front_h]

    def reference_lines(self) -> List[Segment]:
        """Solid attack lines spanning the inner square."""
        return [Segment(self.inner_start, y, self.inner_end, y) for y in self.attack_lines_y()]

    def dashed_segments(self) -> List[Segment]:
        """Center line followed by the attack line extensions on both sides."""
        ext = self.attack_line_extension_length
        segments = [self.center_line]
        for y in self.attack_lines_y():
            segments.append(Segment(self.inner_start - ext, y, self.inner_start, y))
            segments.append(Segment(self.inner_end + ext, y, self.inner_end, y))
        return segments

    def grid_lines(self) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """
        One-meter grid.

        Returns:
            (xs, ys): pixel positions of the vertical and horizontal grid lines.
        """
        xs = np.arange(0, int(self.config.grid.size) + 1) * self.scale
        ys = np.arange(0, int(self.height_meters) + 1) * self.scale
        return xs, ys

    # ------------------------------------------------------------------
    # Coordinates
    # ------------------------------------------------------------------
    def pixels_to_meters(self, px: float, py: float) -> Tuple[float, float]:
        """Pixel position to court meters (y measured from the reference origin)."""
        return px / self.scale, (py / self.scale) - METER_ORIGIN_OFFSET

    def format_position(self, px: float, py: float) -> str:
        mx, my = self.pixels_to_meters(px, py)
        return f"({mx:.2f}m, {my:.2f}m)"

    def is_within_bounds(self, x: float, y: float) -> bool:
        return 0 <= x <= self.canvas_width and 0 <= y <= self.canvas_height

    def clamp(self, x: float, y: float) -> Tuple[float, float]:
        """Clamp raw input into the canvas. Non-finite values become 0."""
        return _clamp(x, self.canvas_width), _clamp(y, self.canvas_height)


def _clamp(value: float, upper: float) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
        logger.warning(f"Invalid coordinate value: {value!r}")
        return 0.0
    return max(0.0, min(upper, float(value)))
