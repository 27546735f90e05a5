"""
Session Ledger
==============
Owns the ordered point sequence and its bounded undo/redo history. Every
mutation of the points passes through this class.

Trim policy
-----------
With a bound M > 0 and auto-trim enabled, no stack ever holds more than M
entries after a push; eviction removes the oldest entries (front of the
stack). An evicted action can never be undone again.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from volleyheat.config import AppConfig, DEFAULT_CONFIG
from volleyheat.model.errors import check_invariant
from volleyheat.model.points import Action, AddAction, ClearAction, Point, is_number

logger = logging.getLogger(__name__)


class SessionLedger:
    """State machine over (points, undo_stack, redo_stack)."""

    def __init__(self, config: AppConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        self._points: List[Point] = []
        self._undo_stack: List[Action] = []
        self._redo_stack: List[Action] = []

    @classmethod
    def from_history(
        cls,
        points: Iterable[Point],
        undo_stack: Iterable[Action] = (),
        redo_stack: Iterable[Action] = (),
        config: AppConfig = DEFAULT_CONFIG,
    ) -> SessionLedger:
        """Rebuild a ledger from loaded data. Oversized stacks are trimmed."""
        ledger = cls(config)
        ledger._points = list(points)
        ledger._undo_stack = list(undo_stack)
        ledger._redo_stack = list(redo_stack)
        ledger._undo_stack = ledger._trimmed(ledger._undo_stack)
        ledger._redo_stack = ledger._trimmed(ledger._redo_stack)
        return ledger

    # --- read access ---
    @property
    def points(self) -> Tuple[Point, ...]:
        return tuple(self._points)

    @property
    def undo_stack(self) -> Tuple[Action, ...]:
        return tuple(self._undo_stack)

    @property
    def redo_stack(self) -> Tuple[Action, ...]:
        return tuple(self._redo_stack)

    @property
    def point_count(self) -> int:
        return len(self._points)

    def can_undo(self) -> bool:
        return len(self._undo_stack) > 0

    def can_redo(self) -> bool:
        return len(self._redo_stack) > 0

    # --- trimming ---
    @property
    def bound(self) -> int:
        return self.config.validation.max_undo_stack_size

    def _trimmed(self, stack: List[Action]) -> List[Action]:
        bound = self.bound
        if self.config.validation.auto_trim_undo_stack and bound > 0 and len(stack) > bound:
            evicted = len(stack) - bound
            logger.debug(f"Trimming {evicted} oldest history entr{'y' if evicted == 1 else 'ies'}")
            return stack[-bound:]
        return stack

    def _push_undo(self, action: Action) -> None:
        self._undo_stack.append(action)
        self._undo_stack = self._trimmed(self._undo_stack)

    def _push_redo(self, action: Action) -> None:
        self._redo_stack.append(action)
        self._redo_stack = self._trimmed(self._redo_stack)

    # --- mutations ---
    def add_point(self, point: Point) -> None:
        """
        Append a point and record it for undo.

        Raises:
            ValueError: if x/y are not numbers or the rotation is out of range.
        """
        if not isinstance(point, Point):
            raise TypeError(f"Expected Point, got {type(point).__name__}")
        if not (is_number(point.x) and is_number(point.y)):
            raise ValueError(f"Point must have numeric x/y, got ({point.x!r}, {point.y!r})")

        v = self.config.validation
        if point.rotation is not None:
            if not isinstance(point.rotation, int) or isinstance(point.rotation, bool) \
                    or not v.min_rotation <= point.rotation <= v.max_rotation:
                raise ValueError(
                    f"Rotation must be {v.min_rotation}-{v.max_rotation} or None, got {point.rotation!r}"
                )

        self._points.append(point)
        self._push_undo(AddAction(point))
        self._redo_stack = []

    def clear_all(self) -> bool:
        """Remove every point as one undoable step. No-op when already empty."""
        if not self._points:
            return False
        self._push_undo(ClearAction(tuple(self._points)))
        self._redo_stack = []
        self._points = []
        return True

    def undo(self) -> bool:
        if not self._undo_stack:
            return False

        action = self._undo_stack.pop()
        self._push_redo(action)

        if isinstance(action, AddAction):
            if check_invariant(bool(self._points), "undo of add with no points", self.config):
                self._points.pop()
        elif isinstance(action, ClearAction):
            self._points = list(action.points)
        return True

    def redo(self) -> bool:
        if not self._redo_stack:
            return False

        action = self._redo_stack.pop()
        self._push_undo(action)

        if isinstance(action, AddAction):
            self._points.append(action.point)
        elif isinstance(action, ClearAction):
            self._points = []
        return True

    def reset(self) -> None:
        self._points = []
        self._undo_stack = []
        self._redo_stack = []

    def last_point(self) -> Optional[Point]:
        return self._points[-1] if self._points else None
