"""
Point Filters
=============
Two independent multi-select filter sets, combined by AND across dimensions
and OR within a dimension. An empty set leaves its dimension unfiltered.

`None` inside a set means "matches points without a value" (no jersey number,
no rotation). The UI sentinel "-" is only accepted at the boundary through
`parse_jersey_token` / `parse_rotation_token`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Sequence, Union

import numpy as np

from volleyheat.config import AppConfig, DEFAULT_CONFIG
from volleyheat.model.points import Point

logger = logging.getLogger(__name__)

ABSENT_TOKEN = "-"

JerseyToken = Optional[str]
RotationToken = Optional[int]


def jersey_token(point: Point) -> JerseyToken:
    """Jersey number of a charted point, None otherwise."""
    if point.is_charted and point.jersey_number is not None:
        return point.jersey_number
    return None


def rotation_token(point: Point) -> RotationToken:
    return point.rotation


def parse_jersey_token(raw: Union[str, None]) -> JerseyToken:
    if raw is None or raw == ABSENT_TOKEN:
        return None
    return str(raw)


def parse_rotation_token(raw: Union[str, int, None]) -> RotationToken:
    if raw is None or raw == ABSENT_TOKEN:
        return None
    return int(raw)


@dataclass
class JerseySummary:
    """Jersey numbers present among charted points, for building the filter list."""
    counts: Dict[str, int] = field(default_factory=dict)
    blank_count: int = 0

    @property
    def numbers(self) -> List[str]:
        return sorted(self.counts, key=_jersey_sort_key)

    @property
    def tokens(self) -> List[JerseyToken]:
        """Blank entry first, then numbers in ascending order."""
        tokens: List[JerseyToken] = [None] if self.blank_count > 0 else []
        tokens.extend(self.numbers)
        return tokens

    def label(self, token: JerseyToken) -> str:
        if token is None:
            return f"{ABSENT_TOKEN} [{self.blank_count}]"
        return f"{token} [{self.counts.get(token, 0)}]"


class FilterEngine:
    def __init__(self, config: AppConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        self._jersey_filters: Set[JerseyToken] = set()
        self._rotation_filters: Set[RotationToken] = set()

    @property
    def jersey_filters(self) -> FrozenSet[JerseyToken]:
        return frozenset(self._jersey_filters)

    @property
    def rotation_filters(self) -> FrozenSet[RotationToken]:
        return frozenset(self._rotation_filters)

    @property
    def is_active(self) -> bool:
        return bool(self._jersey_filters or self._rotation_filters)

    # --- visibility ---
    def is_visible(self, point: Point) -> bool:
        jersey_ok = not self._jersey_filters or jersey_token(point) in self._jersey_filters
        rotation_ok = not self._rotation_filters or rotation_token(point) in self._rotation_filters
        return jersey_ok and rotation_ok

    def visibility_mask(self, points: Sequence[Point]) -> np.ndarray:
        """Boolean mask aligned with `points`."""
        return np.fromiter((self.is_visible(p) for p in points), dtype=bool, count=len(points))

    def visible_points(self, points: Iterable[Point]) -> List[Point]:
        return [p for p in points if self.is_visible(p)]

    # --- toggles ---
    def toggle_jersey_filter(self, token: JerseyToken) -> bool:
        """Add the token if absent, remove it if present. Returns the new membership."""
        if token in self._jersey_filters:
            self._jersey_filters.discard(token)
            return False
        self._jersey_filters.add(token)
        return True

    def toggle_rotation_filter(self, value: RotationToken) -> bool:
        if value in self._rotation_filters:
            self._rotation_filters.discard(value)
            return False
        self._rotation_filters.add(value)
        return True

    def on_current_rotation_changed(self, rotation: int) -> bool:
        """
        Sticky auto-inclusion: while a rotation filter is active, a newly
        selected current rotation is added so freshly drawn points stay
        visible. Never removes anything.
        """
        if not self._rotation_filters:
            return False
        if rotation not in self._rotation_filters:
            logger.debug(f"Auto-including rotation {rotation} in active filter")
        self._rotation_filters.add(rotation)
        return True

    def clear_jersey(self) -> None:
        self._jersey_filters.clear()

    def clear_rotation(self) -> None:
        self._rotation_filters.clear()

    def clear(self) -> None:
        self.clear_jersey()
        self.clear_rotation()

    # --- summaries for the filter lists ---
    @staticmethod
    def jersey_summary(points: Iterable[Point]) -> JerseySummary:
        summary = JerseySummary()
        for point in points:
            if not point.is_charted:
                continue
            if point.jersey_number is not None:
                summary.counts[point.jersey_number] = summary.counts.get(point.jersey_number, 0) + 1
            else:
                summary.blank_count += 1
        return summary

    def show_jersey_clear(self) -> bool:
        return len(self._jersey_filters) >= self.config.validation.min_jersey_filters_for_clear

    def show_rotation_clear(self) -> bool:
        return len(self._rotation_filters) > 0


def _jersey_sort_key(number: str):
    return (0, int(number), number) if number.isdigit() else (1, 0, number)
