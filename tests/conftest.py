"""Shared pytest fixtures for volleyheat tests."""

import os
from dataclasses import replace
from typing import List, Optional, Tuple

import matplotlib
import pytest
from PySide6.QtCore import QCoreApplication

matplotlib.use("Agg")

from volleyheat.config import AppConfig, DebugConfig, ValidationConfig
from volleyheat.model.geometry import CourtGeometry, Rect, Segment
from volleyheat.model.points import Line, Point, Team
from volleyheat.model.render import LabelPlacement
from volleyheat.model.state import SessionMode


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def config() -> AppConfig:
    """Built-in configuration."""
    return AppConfig()


@pytest.fixture
def small_history_config() -> AppConfig:
    """Configuration with an undo bound of 3."""
    return AppConfig(validation=ValidationConfig(max_undo_stack_size=3))


@pytest.fixture
def strict_config() -> AppConfig:
    """Debug build with assertions enabled."""
    return AppConfig(debug=DebugConfig(enabled=True, assertions_enabled=True, log_level="DEBUG"))


@pytest.fixture
def low_threshold_config() -> AppConfig:
    """Point threshold of 2 so the confirmation gate is easy to trigger."""
    return AppConfig(validation=replace(ValidationConfig(), max_point_count=2))


# =============================================================================
# Qt Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def qt_app():
    """One QCoreApplication for every test that needs queued signals."""
    return QCoreApplication.instance() or QCoreApplication([])


# =============================================================================
# Geometry Fixtures
# =============================================================================


@pytest.fixture
def simple_geometry(config) -> CourtGeometry:
    return CourtGeometry(config, SessionMode.SIMPLE)


@pytest.fixture
def charting_geometry(config) -> CourtGeometry:
    return CourtGeometry(config, SessionMode.CHARTING)


# =============================================================================
# Point Fixtures
# =============================================================================


def make_charted(
    x: float = 300.0,
    y: float = 500.0,
    rotation: Optional[int] = 1,
    jersey: Optional[str] = "7",
    team: Optional[Team] = Team.US,
    start: Tuple[float, float] = (300.0, 300.0),
) -> Point:
    """Charted point whose line ends at (x, y)."""
    return Point(
        x=x,
        y=y,
        rotation=rotation,
        line=Line(start_x=start[0], start_y=start[1], end_x=x, end_y=y),
        jersey_number=jersey,
        team=team,
    )


@pytest.fixture
def charted_point():
    """Factory for charted points."""
    return make_charted


def simple_document(name: str = "Game 1", points: Optional[list] = None) -> dict:
    return {
        "version": "1.1",
        "name": name,
        "mode": "simple",
        "points": points if points is not None else [{"x": 100, "y": 100, "rotation": 1}],
        "undoStack": [],
        "redoStack": [],
    }


def charting_document(name: str = "Match", points: Optional[list] = None) -> dict:
    line = {"startX": 300, "startY": 300, "endX": 310, "endY": 500}
    return {
        "version": "1.1",
        "name": name,
        "mode": "charting",
        "points": points if points is not None else [
            {"x": 310, "y": 500, "rotation": 2, "line": line, "jerseyNumber": "9", "team": "us"},
        ],
        "undoStack": [],
        "redoStack": [],
    }


@pytest.fixture
def write_json(tmp_path):
    """Write raw text into a file under tmp_path and return its path."""
    def _write(filename: str, text: str) -> str:
        path = os.path.join(str(tmp_path), filename)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path
    return _write


# =============================================================================
# Render Fixtures
# =============================================================================


class RecordingTarget:
    """RenderTarget that records every call as (name, args)."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def clear(self) -> None:
        self.calls.append(("clear",))

    def draw_rect(self, rect: Rect, color: str, fill: bool = True, line_width: float = 1.0) -> None:
        self.calls.append(("rect", rect, color, fill))

    def draw_segment(self, segment: Segment, color: str, line_width: float = 1.0, dash=None) -> None:
        self.calls.append(("segment", segment, color, dash))

    def draw_cloud(self, x: float, y: float) -> None:
        self.calls.append(("cloud", x, y))

    def draw_dot(self, x: float, y: float) -> None:
        self.calls.append(("dot", x, y))

    def draw_disc(self, x: float, y: float, radius: float, color: str) -> None:
        self.calls.append(("disc", x, y, radius))

    def draw_line(self, line: Line, color: str) -> None:
        self.calls.append(("line", line, color))

    def draw_label(self, text: str, placement: LabelPlacement, color: str) -> None:
        self.calls.append(("label", text, placement, color))

    def names(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def recording_target() -> RecordingTarget:
    return RecordingTarget()


# =============================================================================
# Stalled File Fixtures
# =============================================================================


class StalledFile:
    """Named pipe without a writer: open() on it blocks until `release()`."""

    def __init__(self, path: str) -> None:
        self.path = path

    def release(self, payload: bytes = b"") -> None:
        """Attach a writer (unblocking a waiting reader), send payload, close."""
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_NONBLOCK)
        except OSError:
            # ENXIO: nobody is waiting on the pipe
            return
        try:
            if payload:
                os.set_blocking(fd, True)
                os.write(fd, payload)
        finally:
            os.close(fd)


@pytest.fixture
def stalled_file(tmp_path):
    if not hasattr(os, "mkfifo"):
        pytest.skip("named pipes are not available on this platform")
    path = os.path.join(str(tmp_path), "stalled.json")
    os.mkfifo(path)
    stalled = StalledFile(path)
    yield stalled
    stalled.release()
