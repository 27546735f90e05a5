"""
Render Contract
===============
Backend-agnostic drawing of the court and the recorded points.

Any rendering backend implements `RenderTarget`; `draw_court` and
`draw_points` drive it from `CourtGeometry` output and `FilterEngine`
visibility decisions. The module itself never touches pixels.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable, Optional, Protocol, Sequence, Tuple

from volleyheat.config import AppConfig
from volleyheat.model.filters import FilterEngine
from volleyheat.model.geometry import CourtGeometry, Rect, Segment
from volleyheat.model.points import Line, Point, Team

logger = logging.getLogger(__name__)


class RenderTarget(Protocol):
    def clear(self) -> None: ...
    def draw_rect(self, rect: Rect, color: str, fill: bool = True, line_width: float = 1.0) -> None: ...
    def draw_segment(self, segment: Segment, color: str, line_width: float = 1.0,
                     dash: Optional[Tuple[float, float]] = None) -> None: ...
    def draw_cloud(self, x: float, y: float) -> None: ...
    def draw_dot(self, x: float, y: float) -> None: ...
    def draw_disc(self, x: float, y: float, radius: float, color: str) -> None: ...
    def draw_line(self, line: Line, color: str) -> None: ...
    def draw_label(self, text: str, placement: LabelPlacement, color: str) -> None: ...


class HAlign(StrEnum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass(frozen=True)
class LabelPlacement:
    x: float
    y: float
    align: HAlign


def team_color(config: AppConfig, team: Optional[Team]) -> str:
    if team == Team.US:
        return config.colors.team_us
    if team == Team.OPP:
        return config.colors.team_opp
    return config.colors.team_none


def label_text(jersey_number: Optional[str], rotation: Optional[int]) -> str:
    """'12 - R3', '12', 'R3' or '' depending on what is tracked."""
    if jersey_number and rotation:
        return f"{jersey_number} - R{rotation}"
    if jersey_number:
        return jersey_number
    if rotation:
        return f"R{rotation}"
    return ""


def place_label(line: Line, offset_x: float, offset_y: float) -> LabelPlacement:
    """
    Put the label at the line start, pushed away from the drawing direction.

    Lines steeper than 2:1 count as vertical, flatter than 1:2 as horizontal,
    everything else as diagonal. `offset_y` is negative (upwards) by default.
    """
    x, y = line.start_x, line.start_y
    dx, dy = line.dx, line.dy

    if abs(dy) > abs(dx) * 2:
        # Downward lines get the label above the start, upward ones below
        return LabelPlacement(x, y + offset_y if dy > 0 else y - offset_y, HAlign.CENTER)

    if abs(dx) > abs(dy) * 2:
        if dx > 0:
            return LabelPlacement(x - offset_x, y, HAlign.RIGHT)
        return LabelPlacement(x + offset_x, y, HAlign.LEFT)

    # Diagonal: offset opposite to the direction of the line
    text_x = x - offset_x if dx > 0 else x + offset_x
    text_y = y + offset_y if dy > 0 else y - offset_y
    return LabelPlacement(text_x, text_y, HAlign.CENTER)


def draw_court(target: RenderTarget, geometry: CourtGeometry) -> None:
    """Backgrounds, meter grid, court outlines, the dashed reference lines and the center line end markers."""
    config = geometry.config
    colors = config.colors

    for zone in geometry.zones():
        target.draw_rect(zone.rect, getattr(colors, zone.color_key), fill=True)

    xs, ys = geometry.grid_lines()
    for x in xs:
        target.draw_segment(Segment(float(x), 0.0, float(x), geometry.canvas_height),
                            config.grid.line_color, config.grid.line_width)
    for y in ys:
        target.draw_segment(Segment(0.0, float(y), geometry.canvas_width, float(y)),
                            config.grid.line_color, config.grid.line_width)

    for rect in geometry.outlines():
        target.draw_rect(rect, colors.inner_square_border, fill=False, line_width=2.0)
    for segment in geometry.reference_lines():
        target.draw_segment(segment, colors.inner_square_border, 2.0)

    dash = (config.drawing.dash_length, config.drawing.dash_length)
    for segment in geometry.dashed_segments():
        target.draw_segment(segment, colors.dashed_line, config.drawing.dashed_line_stroke, dash=dash)

    center = geometry.center_line
    for x in (center.x1, center.x2):
        target.draw_disc(x, center.y1, config.drawing.circle_radius, colors.dashed_line)


def draw_points(
    target: RenderTarget,
    points: Sequence[Point],
    config: AppConfig,
    filters: Optional[FilterEngine] = None,
    show_lines: bool = True,
    clear: bool = True,
) -> int:
    """
    Redraw every visible point. Returns how many points were drawn.

    Lines (and their labels) go first so the cloud and dot sit on top.
    """
    if clear:
        target.clear()
    drawn = 0
    for point in points:
        if filters is not None and not filters.is_visible(point):
            continue
        if point.line is not None and show_lines:
            color = team_color(config, point.team)
            target.draw_line(point.line, color)
            text = label_text(point.jersey_number, point.rotation)
            if text:
                placement = place_label(point.line, config.drawing.number_offset_x,
                                        config.drawing.number_offset_y)
                target.draw_label(text, placement, color)
        target.draw_cloud(point.x, point.y)
        target.draw_dot(point.x, point.y)
        drawn += 1
    logger.debug(f"Drew {drawn} of {len(points)} point(s)")
    return drawn


def draw_session(
    target: RenderTarget,
    geometry: CourtGeometry,
    points: Iterable[Point],
    filters: Optional[FilterEngine] = None,
    show_lines: bool = True,
) -> int:
    """Full redraw: court first, then the points on top."""
    target.clear()
    draw_court(target, geometry)
    return draw_points(target, list(points), geometry.config, filters, show_lines, clear=False)
