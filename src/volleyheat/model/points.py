"""
Observation Primitives
======================
Value objects recorded on the court: points, their optional charting line and
the reversible ledger actions that wrap them.

All coordinates are in canvas pixel space. Conversion to court meters is the
job of `CourtGeometry`.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Dict, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class Team(StrEnum):
    US = "us"
    OPP = "opp"


@dataclass(frozen=True)
class Line:
    """Directed segment drawn in charting mode (start -> end)."""
    start_x: float
    start_y: float
    end_x: float
    end_y: float

    @property
    def dx(self) -> float:
        return self.end_x - self.start_x

    @property
    def dy(self) -> float:
        return self.end_y - self.start_y

    @property
    def length(self) -> float:
        return math.hypot(self.dx, self.dy)

    def to_dict(self) -> Dict[str, float]:
        return {
            "startX": self.start_x,
            "startY": self.start_y,
            "endX": self.end_x,
            "endY": self.end_y,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Line:
        return Line(
            start_x=data["startX"],
            start_y=data["startY"],
            end_x=data["endX"],
            end_y=data["endY"],
        )


@dataclass(frozen=True)
class Point:
    """
    A single observation.

    A point carrying a `line` is a charted point. `jersey_number` and `team`
    only carry meaning on charted points.
    """
    x: float
    y: float
    rotation: Optional[int] = None
    line: Optional[Line] = None
    jersey_number: Optional[str] = None
    team: Optional[Team] = None

    @property
    def is_charted(self) -> bool:
        return self.line is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"x": self.x, "y": self.y, "rotation": self.rotation}
        if self.line is not None:
            data["line"] = self.line.to_dict()
            data["jerseyNumber"] = self.jersey_number
            data["team"] = self.team.value if self.team else None
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Point:
        line = Line.from_dict(data["line"]) if data.get("line") else None

        jersey = data.get("jerseyNumber")
        if jersey is not None:
            jersey = str(jersey)

        team = None
        raw_team = data.get("team")
        if raw_team is not None:
            try:
                team = Team(raw_team)
            except ValueError:
                logger.warning(f"Unknown team '{raw_team}' dropped from point.")

        return Point(
            x=data["x"],
            y=data["y"],
            rotation=data.get("rotation"),
            line=line,
            jersey_number=jersey,
            team=team,
        )


@dataclass(frozen=True)
class AddAction:
    point: Point

    def to_dict(self) -> Dict[str, Any]:
        return {"action": "add", "point": self.point.to_dict()}


@dataclass(frozen=True)
class ClearAction:
    points: Tuple[Point, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"action": "clear", "points": [p.to_dict() for p in self.points]}


Action = Union[AddAction, ClearAction]


def action_from_dict(data: Dict[str, Any]) -> Action:
    """Factory method to deserialize a history entry into the correct action."""
    kind = data.get("action") if isinstance(data, dict) else None
    if kind == "add" and isinstance(data.get("point"), dict):
        return AddAction(Point.from_dict(data["point"]))
    if kind == "clear" and isinstance(data.get("points"), list):
        return ClearAction(tuple(Point.from_dict(p) for p in data["points"]))
    raise ValueError(f"Unknown history entry: {kind!r}")


def is_number(value: Any) -> bool:
    """True for real numbers, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def sanitize_jersey_number(raw: Optional[str]) -> Optional[str]:
    """
    Reduce operator input to a jersey number "0".."99".

    Non-digits are stripped and only the first two digits are kept.
    Returns None when nothing usable remains.
    """
    if not raw or not isinstance(raw, str):
        return None
    digits = re.sub(r"\D", "", raw)[:2]
    if not digits:
        return None
    if not 0 <= int(digits) <= 99:
        return None
    return digits
