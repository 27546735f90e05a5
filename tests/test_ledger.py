"""Tests for the session ledger (points plus bounded undo/redo)."""

import pytest

from volleyheat.model.errors import InvariantViolation, check_invariant
from volleyheat.model.ledger import SessionLedger
from volleyheat.model.points import AddAction, ClearAction, Point


def _points(n):
    return [Point(x=float(i), y=float(i), rotation=1) for i in range(n)]


class TestAddUndoRedo:

    def test_add_point_records_history(self, config):
        """Adding pushes an add action and empties the redo stack."""
        ledger = SessionLedger(config)
        point = Point(x=300.0, y=300.0, rotation=3)
        ledger.add_point(point)

        assert ledger.points == (point,)
        assert ledger.undo_stack == (AddAction(point),)
        assert ledger.redo_stack == ()

    def test_undo_removes_last_point(self, config):
        ledger = SessionLedger(config)
        first, second = _points(2)
        ledger.add_point(first)
        ledger.add_point(second)

        assert ledger.undo() is True
        assert ledger.points == (first,)
        assert ledger.can_redo()

    def test_undo_then_redo_restores_state(self, config):
        """Points and both stacks come back unchanged."""
        ledger = SessionLedger(config)
        for point in _points(4):
            ledger.add_point(point)
        ledger.undo()
        before = (ledger.points, ledger.undo_stack, ledger.redo_stack)

        ledger.undo()
        ledger.redo()

        assert (ledger.points, ledger.undo_stack, ledger.redo_stack) == before

    def test_undo_then_redo_after_clear(self, config):
        ledger = SessionLedger(config)
        for point in _points(3):
            ledger.add_point(point)
        ledger.clear_all()
        before = (ledger.points, ledger.undo_stack, ledger.redo_stack)

        ledger.undo()
        assert ledger.point_count == 3
        ledger.redo()

        assert (ledger.points, ledger.undo_stack, ledger.redo_stack) == before
        assert isinstance(ledger.undo_stack[-1], ClearAction)

    def test_new_point_discards_redo(self, config):
        ledger = SessionLedger(config)
        for point in _points(2):
            ledger.add_point(point)
        ledger.undo()
        ledger.add_point(Point(x=1.0, y=2.0))

        assert not ledger.can_redo()

    def test_undo_and_redo_on_empty_stacks(self, config):
        ledger = SessionLedger(config)
        assert ledger.undo() is False
        assert ledger.redo() is False
        assert ledger.points == ()

    def test_single_point_scenario(self, config):
        """One point at (300, 300) rotation 3, undo, redo."""
        ledger = SessionLedger(config)
        point = Point(x=300.0, y=300.0, rotation=3)
        ledger.add_point(point)

        ledger.undo()
        assert ledger.points == ()
        assert ledger.redo_stack == (AddAction(point),)

        ledger.redo()
        assert ledger.points == (point,)
        assert ledger.redo_stack == ()


class TestClear:

    def test_clear_then_undo_restores_points(self, config):
        ledger = SessionLedger(config)
        points = _points(3)
        for point in points:
            ledger.add_point(point)

        assert ledger.clear_all() is True
        assert ledger.points == ()
        assert isinstance(ledger.undo_stack[-1], ClearAction)

        ledger.undo()
        assert ledger.points == tuple(points)

    def test_redo_clear_empties_again(self, config):
        ledger = SessionLedger(config)
        for point in _points(2):
            ledger.add_point(point)
        ledger.clear_all()
        ledger.undo()
        ledger.redo()
        assert ledger.points == ()

    def test_clear_on_empty_is_noop(self, config):
        ledger = SessionLedger(config)
        assert ledger.clear_all() is False
        assert ledger.undo_stack == ()


class TestValidation:

    @pytest.mark.parametrize("rotation", [0, 7, -1, True])
    def test_rotation_out_of_range_rejected(self, config, rotation):
        ledger = SessionLedger(config)
        with pytest.raises(ValueError):
            ledger.add_point(Point(x=1.0, y=1.0, rotation=rotation))
        assert ledger.points == ()

    def test_missing_rotation_allowed(self, config):
        ledger = SessionLedger(config)
        ledger.add_point(Point(x=1.0, y=1.0, rotation=None))
        assert ledger.point_count == 1

    def test_non_numeric_coordinates_rejected(self, config):
        ledger = SessionLedger(config)
        with pytest.raises(ValueError):
            ledger.add_point(Point(x="1", y=1.0))

    def test_non_point_rejected(self, config):
        ledger = SessionLedger(config)
        with pytest.raises(TypeError):
            ledger.add_point({"x": 1, "y": 1})


class TestTrimming:

    def test_undo_stack_keeps_most_recent(self, small_history_config):
        """With a bound of 3, the oldest actions are evicted."""
        ledger = SessionLedger(small_history_config)
        points = _points(5)
        for point in points:
            ledger.add_point(point)

        assert len(ledger.undo_stack) == 3
        assert ledger.undo_stack == tuple(AddAction(p) for p in points[2:])

    def test_evicted_actions_cannot_be_undone(self, small_history_config):
        ledger = SessionLedger(small_history_config)
        for point in _points(5):
            ledger.add_point(point)

        while ledger.undo():
            pass

        assert ledger.point_count == 2

    def test_redo_stack_is_bounded(self, small_history_config):
        ledger = SessionLedger(small_history_config)
        for point in _points(3):
            ledger.add_point(point)
        for _ in range(3):
            ledger.undo()
        assert len(ledger.redo_stack) == 3

    def test_from_history_trims_loaded_stacks(self, small_history_config):
        points = _points(6)
        ledger = SessionLedger.from_history(
            points, [AddAction(p) for p in points], [], config=small_history_config
        )
        assert len(ledger.undo_stack) == 3
        assert ledger.undo_stack[0] == AddAction(points[3])

    def test_unbounded_when_zero(self, config):
        from dataclasses import replace
        unbounded = replace(config, validation=replace(config.validation, max_undo_stack_size=0))
        ledger = SessionLedger(unbounded)
        for point in _points(20):
            ledger.add_point(point)
        assert len(ledger.undo_stack) == 20


class TestInvariants:

    def test_inconsistent_undo_is_noop_in_release(self, config, caplog):
        """An add action with no points to pop is logged and skipped."""
        ledger = SessionLedger.from_history([], [AddAction(Point(x=1.0, y=1.0))], [], config=config)
        assert ledger.undo() is True
        assert ledger.points == ()
        assert "Invariant violated" in caplog.text

    def test_inconsistent_undo_raises_in_debug(self, strict_config):
        ledger = SessionLedger.from_history([], [AddAction(Point(x=1.0, y=1.0))], [], config=strict_config)
        with pytest.raises(InvariantViolation):
            ledger.undo()

    def test_check_invariant_passes_through(self, strict_config):
        assert check_invariant(True, "never shown", strict_config) is True
