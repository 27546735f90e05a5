"""Tests for the drawing contract and the matplotlib export."""

import os

import pytest

from volleyheat.model.filters import FilterEngine
from volleyheat.model.points import Line, Point, Team
from volleyheat.model.render import (
    HAlign,
    draw_court,
    draw_points,
    draw_session,
    label_text,
    place_label,
    team_color,
)
from volleyheat.view.figure_renderer import FigureRenderer, export_image


class TestLabels:

    @pytest.mark.parametrize("jersey, rotation, expected", [
        ("12", 3, "12 - R3"),
        ("12", None, "12"),
        (None, 3, "R3"),
        (None, None, ""),
    ])
    def test_label_text(self, jersey, rotation, expected):
        assert label_text(jersey, rotation) == expected

    def test_vertical_downward_line(self):
        """Label goes above the start of a downward line."""
        placement = place_label(Line(100, 100, 105, 200), 7, -7)
        assert (placement.x, placement.y, placement.align) == (100, 93, HAlign.CENTER)

    def test_vertical_upward_line(self):
        placement = place_label(Line(100, 200, 100, 100), 7, -7)
        assert placement.y == 207

    def test_horizontal_lines(self):
        right = place_label(Line(100, 100, 300, 110), 7, -7)
        assert (right.x, right.align) == (93, HAlign.RIGHT)

        left = place_label(Line(300, 100, 100, 110), 7, -7)
        assert (left.x, left.align) == (307, HAlign.LEFT)

    def test_diagonal_line(self):
        placement = place_label(Line(100, 100, 200, 200), 7, -7)
        assert (placement.x, placement.y, placement.align) == (93, 93, HAlign.CENTER)

    def test_team_colors(self, config):
        assert team_color(config, Team.US) == config.colors.team_us
        assert team_color(config, Team.OPP) == config.colors.team_opp
        assert team_color(config, None) == config.colors.team_none


class TestDrawPoints:

    def test_line_and_label_before_cloud(self, config, recording_target, charted_point):
        draw_points(recording_target, [charted_point(rotation=2, jersey="5")], config)
        assert recording_target.names() == ["clear", "line", "label", "cloud", "dot"]
        assert recording_target.calls[2][1] == "5 - R2"

    def test_hidden_lines(self, config, recording_target, charted_point):
        draw_points(recording_target, [charted_point()], config, show_lines=False)
        assert recording_target.names() == ["clear", "cloud", "dot"]

    def test_no_label_without_values(self, config, recording_target, charted_point):
        draw_points(recording_target, [charted_point(rotation=None, jersey=None)], config)
        assert "label" not in recording_target.names()

    def test_filtered_points_skipped(self, config, recording_target):
        filters = FilterEngine(config)
        filters.toggle_rotation_filter(2)
        points = [Point(x=1.0, y=1.0, rotation=1), Point(x=2.0, y=2.0, rotation=2)]

        drawn = draw_points(recording_target, points, config, filters)

        assert drawn == 1
        assert ("cloud", 2.0, 2.0) in recording_target.calls
        assert ("cloud", 1.0, 1.0) not in recording_target.calls


class TestDrawCourt:

    def test_court_before_points(self, simple_geometry, recording_target):
        draw_session(recording_target, simple_geometry, [Point(x=5.0, y=5.0)])
        names = recording_target.names()
        assert names[0] == "clear"
        assert names.count("clear") == 1
        assert names[-2:] == ["cloud", "dot"]

    def test_dashed_segments_use_dash_pattern(self, simple_geometry, recording_target):
        draw_court(recording_target, simple_geometry)
        dashed = [c for c in recording_target.calls if c[0] == "segment" and c[3] is not None]
        assert len(dashed) == len(simple_geometry.dashed_segments())

    def test_center_line_end_discs(self, simple_geometry, recording_target):
        draw_court(recording_target, simple_geometry)
        center = simple_geometry.center_line
        discs = [c for c in recording_target.calls if c[0] == "disc"]
        assert discs == [("disc", center.x1, center.y1, 9.0), ("disc", center.x2, center.y1, 9.0)]

    def test_zone_fills(self, charting_geometry, recording_target):
        draw_court(recording_target, charting_geometry)
        fills = [c for c in recording_target.calls if c[0] == "rect" and c[3]]
        assert len(fills) == len(charting_geometry.zones())


class TestFigureRenderer:

    def test_figure_matches_canvas(self, charting_geometry):
        renderer = FigureRenderer(charting_geometry, dpi=100)
        width, height = renderer.figure.get_size_inches()
        assert (width, height) == (6.0, 8.8)

    def test_export_png(self, charting_geometry, charted_point, tmp_path):
        path = os.path.join(str(tmp_path), "heatmap.png")
        drawn = export_image(charting_geometry, [charted_point(), charted_point(x=200.0)], path)
        assert drawn == 2
        assert os.path.getsize(path) > 0
