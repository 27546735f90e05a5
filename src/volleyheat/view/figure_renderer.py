"""
Figure Renderer (matplotlib)
============================
`RenderTarget` implementation that paints into an off-screen matplotlib
figure, used to export a session as an image (PNG, SVG, PDF).

Uses the Agg canvas directly so no display or pyplot state is involved.
Y grows downwards like the canvas pixel space.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.patches import Circle, Rectangle, Wedge

from volleyheat.config import AppConfig
from volleyheat.model.filters import FilterEngine
from volleyheat.model.geometry import CourtGeometry, Rect, Segment
from volleyheat.model.points import Line
from volleyheat.model.render import LabelPlacement, draw_session

logger = logging.getLogger(__name__)


class FigureRenderer:
    def __init__(self, geometry: CourtGeometry, dpi: float = 100.0) -> None:
        self.geometry = geometry
        self.config: AppConfig = geometry.config
        self.dpi = dpi

        self.figure = Figure(
            figsize=(geometry.canvas_width / dpi, geometry.canvas_height / dpi),
            dpi=dpi,
        )
        self.canvas = FigureCanvasAgg(self.figure)
        self.ax = self.figure.add_axes((0.0, 0.0, 1.0, 1.0))
        self._z = 0
        self._setup_axes()

    def _setup_axes(self) -> None:
        self.ax.set_xlim(0, self.geometry.canvas_width)
        self.ax.set_ylim(self.geometry.canvas_height, 0)
        self.ax.set_aspect("equal")
        self.ax.set_axis_off()

    def _next_z(self) -> int:
        # Paint order follows call order
        self._z += 1
        return self._z

    # --- RenderTarget ---
    def clear(self) -> None:
        self.ax.cla()
        self._z = 0
        self._setup_axes()

    def draw_rect(self, rect: Rect, color: str, fill: bool = True, line_width: float = 1.0) -> None:
        if fill:
            patch = Rectangle((rect.x, rect.y), rect.width, rect.height,
                              facecolor=color, edgecolor="none", zorder=self._next_z())
        else:
            patch = Rectangle((rect.x, rect.y), rect.width, rect.height, fill=False,
                              edgecolor=color, linewidth=line_width, zorder=self._next_z())
        self.ax.add_patch(patch)

    def draw_segment(self, segment: Segment, color: str, line_width: float = 1.0,
                     dash: Optional[Tuple[float, float]] = None) -> None:
        (artist,) = self.ax.plot([segment.x1, segment.x2], [segment.y1, segment.y2],
                                 color=color, linewidth=line_width, zorder=self._next_z())
        if dash is not None:
            artist.set_dashes(dash)

    def draw_cloud(self, x: float, y: float) -> None:
        """Radial gradient approximated by one annulus per gradient band."""
        radius = self.config.drawing.cloud_radius
        stops = self.config.colors.gradient
        z = self._next_z()
        for inner, outer in zip(stops[:-1], stops[1:]):
            color = tuple((a + b) / 2 for a, b in zip(inner.color, outer.color))
            self.ax.add_patch(Wedge(
                (x, y), outer.offset * radius, 0, 360,
                width=(outer.offset - inner.offset) * radius,
                facecolor=color, edgecolor="none", zorder=z,
            ))

    def draw_dot(self, x: float, y: float) -> None:
        self.ax.add_patch(Circle((x, y), self.config.drawing.dot_radius,
                                 color=self.config.drawing.dot_color, zorder=self._next_z()))

    def draw_disc(self, x: float, y: float, radius: float, color: str) -> None:
        self.ax.add_patch(Circle((x, y), radius, color=color, zorder=self._next_z()))

    def draw_line(self, line: Line, color: str) -> None:
        self.ax.plot([line.start_x, line.end_x], [line.start_y, line.end_y], color=color,
                     linewidth=self.config.drawing.charting_line_width, zorder=self._next_z())

    def draw_label(self, text: str, placement: LabelPlacement, color: str) -> None:
        self.ax.text(placement.x, placement.y, text, color=color, ha=placement.align.value,
                     va="center", fontsize=self.config.drawing.number_font_size * 0.75,
                     zorder=self._next_z())

    # --- export ---
    def save(self, filepath: str) -> None:
        self.figure.savefig(filepath, dpi=self.dpi)
        logger.info(f"Heatmap image saved to: {filepath}")


def export_image(
    geometry: CourtGeometry,
    points,
    filepath: str,
    filters: Optional[FilterEngine] = None,
    show_lines: bool = True,
    dpi: float = 100.0,
) -> int:
    """Render court and points into an image file. Returns the number of points drawn."""
    renderer = FigureRenderer(geometry, dpi=dpi)
    drawn = draw_session(renderer, geometry, points, filters, show_lines)
    renderer.save(filepath)
    return drawn
