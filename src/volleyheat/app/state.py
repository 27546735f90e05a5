from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from PySide6.QtCore import QObject, Signal, Slot

from volleyheat.config import AppConfig, DEFAULT_CONFIG
from volleyheat.controller.workers import SessionReadWorker
from volleyheat.model.errors import ModeMismatchError, SizeLimitError, ValidationError, VolleyheatError
from volleyheat.model.filters import FilterEngine, JerseyToken, RotationToken
from volleyheat.model.geometry import CourtGeometry
from volleyheat.model.io import Document, SessionCodec
from volleyheat.model.merge import ConfirmCallback, MergeEngine, MergeResult, DEFAULT_COMBINED_NAME
from volleyheat.model.points import Line, Point, Team, sanitize_jersey_number
from volleyheat.model.state import Session, SessionMode, sanitize_session_name
from volleyheat.view import figure_renderer

logger = logging.getLogger(__name__)


@dataclass
class Operator:
    """What the operator has selected for the next point."""
    current_rotation: int = 1
    track_rotation: bool = True
    current_team: Team = Team.US
    track_team: bool = True
    jersey_input: str = ""
    lines_visible: bool = True


def error_suggestion(error: Exception) -> str:
    message = str(error)
    if "JSON" in message:
        return " The file may be corrupted or not a valid JSON file."
    if isinstance(error, ModeMismatchError) or "mode" in message:
        return " Ensure all files are the same heatmap type."
    if "rotation" in message:
        return " The file may be from an older version or incompatible format."
    if isinstance(error, SizeLimitError):
        return ""
    return " Please ensure the file is a valid heatmap session file."


class Store(QObject):
    """
    Central coordinator between the UI and the model.

    Holds the live session, the geometry for its mode, the filters and the
    operator selections. It owns no business rules of its own; every change
    is delegated to the model and announced through signals.
    """
    session_changed = Signal(object)
    points_changed = Signal(object)
    filters_changed = Signal(object)
    geometry_changed = Signal(object)
    operator_changed = Signal(object)
    # (identifier, message)
    error_occurred = Signal(str, str)
    migration_reported = Signal(str)

    def __init__(self, config: AppConfig = DEFAULT_CONFIG) -> None:
        super().__init__()
        self.config = config
        self.codec = SessionCodec(config)
        self.merger = MergeEngine(config)
        self.session = Session.new("", SessionMode.SIMPLE, config)
        self.geometry = CourtGeometry(config, SessionMode.SIMPLE)
        self.filters = FilterEngine(config)
        self.operator = Operator()
        self.has_unsaved_changes = False
        self._line_start: Optional[tuple[float, float]] = None
        # Current read; superseded workers stay in _workers until finished
        self._worker: Optional[SessionReadWorker] = None
        self._workers: Dict[SessionReadWorker, Tuple[str, bool, Optional[ConfirmCallback]]] = {}

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def start_new_session(self, name: str, mode: SessionMode) -> bool:
        clean = sanitize_session_name(name, self.config.validation.max_session_name_length)
        if not clean:
            self.error_occurred.emit("session", "Please enter a valid session name.")
            return False
        self._commit(Session.new(clean, SessionMode(mode), self.config))
        self.operator.current_rotation = 1
        return True

    def open_document(
        self,
        document: Document,
        view_only: bool = False,
        source: str = "session",
        confirm: Optional[ConfirmCallback] = None,
    ) -> bool:
        """
        Validate, migrate and commit a document. On any failure the current
        session stays exactly as it was.
        """
        try:
            self.codec.validate(document, source=source)
            if self.codec.exceeds_point_threshold(document) and confirm is not None:
                if not confirm(len(document["points"])):
                    logger.info(f"Loading '{source}' cancelled by operator.")
                    return False
            session = self.codec.to_session(document, view_only=view_only)
        except ValidationError as e:
            self._report(source, e)
            return False

        self._commit(session)
        if session.migration_info:
            self.migration_reported.emit(session.migration_info)
            session.migration_info = None
        return True

    def load_file(self, filepath: str, view_only: bool = False,
                  confirm: Optional[ConfirmCallback] = None) -> bool:
        """Blocking load, for scripts and tests."""
        try:
            document = self.codec.read_document(filepath)
        except VolleyheatError as e:
            self._report(getattr(e, "source", None) or filepath, e)
            return False
        return self.open_document(document, view_only, source=filepath, confirm=confirm)

    def load_file_async(self, filepath: str, view_only: bool = False,
                        confirm: Optional[ConfirmCallback] = None) -> SessionReadWorker:
        """
        Read in a background thread. The session is committed in the
        `loaded` slot only, on the GUI thread.

        Starting a new read supersedes the previous one: the old worker is
        cancelled and its results are ignored, but it is kept referenced
        until its thread has finished.
        """
        if self._worker is not None:
            self._worker.cancel()

        worker = SessionReadWorker([filepath], self.config)
        self._workers[worker] = (filepath, view_only, confirm)
        worker.loaded.connect(self._on_worker_loaded)
        worker.error_occurred.connect(self._on_worker_error)
        worker.finished.connect(self._on_worker_finished)
        self._worker = worker
        worker.start()
        return worker

    @property
    def is_loading(self) -> bool:
        return self._worker is not None

    @property
    def running_reads(self) -> int:
        return len(self._workers)

    @Slot(object)
    def _on_worker_loaded(self, documents: List[Document]) -> None:
        worker = self.sender()
        if worker is not self._worker:
            logger.debug("Ignoring result of a superseded read.")
            return
        filepath, view_only, confirm = self._workers[worker]
        self.open_document(documents[0], view_only, source=os.path.basename(filepath), confirm=confirm)

    @Slot(str, str)
    def _on_worker_error(self, identifier: str, message: str) -> None:
        if self.sender() is not self._worker:
            logger.debug(f"Ignoring error of a superseded read: {message}")
            return
        self.error_occurred.emit(identifier, message)

    @Slot()
    def _on_worker_finished(self) -> None:
        worker = self.sender()
        self._workers.pop(worker, None)
        if worker is self._worker:
            self._worker = None

    def _commit(self, session: Session) -> None:
        self.session = session
        self.geometry = CourtGeometry(self.config, session.mode)
        self.filters.clear()
        self.operator.jersey_input = ""
        self._line_start = None
        self.has_unsaved_changes = False
        logger.info(f"Session committed: {session.title}")
        self.geometry_changed.emit(self.geometry)
        self.session_changed.emit(self.session)
        self.filters_changed.emit(self.filters)
        self.points_changed.emit(self.session.points)

    def _report(self, identifier: str, error: Exception) -> None:
        message = f"{error}{error_suggestion(error)}"
        logger.error(f"Error loading '{identifier}': {error}")
        self.error_occurred.emit(str(identifier), message)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    @property
    def can_edit(self) -> bool:
        return not self.session.is_view_only

    def _auto_include_rotation(self) -> None:
        if self.filters.on_current_rotation_changed(self.operator.current_rotation):
            self.filters_changed.emit(self.filters)

    def _rotation_for_new_point(self) -> Optional[int]:
        return self.operator.current_rotation if self.operator.track_rotation else None

    def place_point(self, x: float, y: float) -> Optional[Point]:
        """Simple mode click."""
        if self.session.mode != SessionMode.SIMPLE or not self.can_edit:
            return None
        x, y = self.geometry.clamp(x, y)
        if not self.geometry.is_within_bounds(x, y):
            return None

        self._auto_include_rotation()
        point = Point(x=x, y=y, rotation=self._rotation_for_new_point())
        logger.debug(f"Adding point at {x}, {y} rotation {point.rotation}")
        self.session.ledger.add_point(point)
        self._points_mutated()
        return point

    def begin_line(self, x: float, y: float) -> bool:
        """Charting mode press."""
        if self.session.mode != SessionMode.CHARTING or not self.can_edit:
            return False
        x, y = self.geometry.clamp(x, y)
        if not self.geometry.is_within_bounds(x, y):
            return False
        self._auto_include_rotation()
        self._line_start = (x, y)
        return True

    def finish_line(self, x: float, y: float) -> Optional[Point]:
        """Charting mode release: records the point at the line end."""
        if self.session.mode != SessionMode.CHARTING or not self.can_edit or self._line_start is None:
            return None
        start_x, start_y = self._line_start
        self._line_start = None

        x, y = self.geometry.clamp(x, y)
        if not self.geometry.is_within_bounds(x, y):
            return None

        point = Point(
            x=x,
            y=y,
            rotation=self._rotation_for_new_point(),
            line=Line(start_x=start_x, start_y=start_y, end_x=x, end_y=y),
            jersey_number=sanitize_jersey_number(self.operator.jersey_input),
            team=self.operator.current_team if self.operator.track_team else None,
        )
        logger.debug(f"Adding line point {point}")
        self.session.ledger.add_point(point)
        self.operator.jersey_input = ""
        self.operator_changed.emit(self.operator)
        self._points_mutated()
        return point

    @property
    def is_drawing(self) -> bool:
        return self._line_start is not None

    def clear_points(self) -> bool:
        if not self.can_edit:
            return False
        if self.session.ledger.clear_all():
            self._points_mutated()
            return True
        return False

    def undo(self) -> bool:
        if self.can_edit and self.session.ledger.undo():
            self._points_mutated()
            return True
        return False

    def redo(self) -> bool:
        if self.can_edit and self.session.ledger.redo():
            self._points_mutated()
            return True
        return False

    def _points_mutated(self) -> None:
        self.has_unsaved_changes = True
        self.points_changed.emit(self.session.points)

    # ------------------------------------------------------------------
    # Operator selections
    # ------------------------------------------------------------------
    def set_current_rotation(self, rotation: int) -> bool:
        v = self.config.validation
        if not self.can_edit or not self.operator.track_rotation:
            return False
        if not v.min_rotation <= rotation <= v.max_rotation:
            raise ValueError(f"Rotation must be {v.min_rotation}-{v.max_rotation}, got {rotation}")
        self.operator.current_rotation = rotation
        self._auto_include_rotation()
        self.operator_changed.emit(self.operator)
        return True

    def toggle_track_rotation(self) -> bool:
        if not self.can_edit:
            return self.operator.track_rotation
        self.operator.track_rotation = not self.operator.track_rotation
        if not self.operator.track_rotation:
            self.filters.clear_rotation()
            self.filters_changed.emit(self.filters)
        logger.info(f"Track rotation toggled: {'ON' if self.operator.track_rotation else 'OFF'}")
        self.operator_changed.emit(self.operator)
        return self.operator.track_rotation

    def toggle_track_team(self) -> bool:
        if self.can_edit:
            self.operator.track_team = not self.operator.track_team
            logger.info(f"Track team toggled: {'ON' if self.operator.track_team else 'OFF'}")
            self.operator_changed.emit(self.operator)
        return self.operator.track_team

    def set_current_team(self, team: Team) -> None:
        if not self.can_edit:
            return
        self.operator.current_team = Team(team)
        logger.info(f"Team selected: {self.operator.current_team}")
        self.operator_changed.emit(self.operator)

    def type_jersey_digit(self, digit: str) -> str:
        """Append one digit to the pending jersey number (max two digits)."""
        if self.can_edit and self.session.mode == SessionMode.CHARTING \
                and len(digit) == 1 and digit.isdigit() and len(self.operator.jersey_input) < 2:
            sanitized = sanitize_jersey_number(self.operator.jersey_input + digit)
            if sanitized:
                self.operator.jersey_input = sanitized
                self.operator_changed.emit(self.operator)
        return self.operator.jersey_input

    def erase_jersey_digit(self) -> str:
        if self.can_edit and self.operator.jersey_input:
            self.operator.jersey_input = self.operator.jersey_input[:-1]
            self.operator_changed.emit(self.operator)
        return self.operator.jersey_input

    def toggle_lines(self) -> bool:
        self.operator.lines_visible = not self.operator.lines_visible
        self.operator_changed.emit(self.operator)
        return self.operator.lines_visible

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------
    def toggle_jersey_filter(self, token: JerseyToken) -> None:
        self.filters.toggle_jersey_filter(token)
        self.filters_changed.emit(self.filters)

    def toggle_rotation_filter(self, value: RotationToken) -> None:
        # Filtering by rotation only makes sense while rotations are tracked
        if not self.operator.track_rotation:
            return
        self.filters.toggle_rotation_filter(value)
        self.filters_changed.emit(self.filters)

    def clear_filters(self, kind: str) -> None:
        if kind == "rotation":
            self.filters.clear_rotation()
        elif kind == "jersey":
            self.filters.clear_jersey()
        else:
            raise ValueError(f"Unknown filter kind: {kind}")
        self.filters_changed.emit(self.filters)

    def visible_points(self) -> List[Point]:
        return self.filters.visible_points(self.session.points)

    def position_text(self, x: float, y: float) -> Optional[str]:
        if not self.geometry.is_within_bounds(x, y):
            return None
        return f"Position: {self.geometry.format_position(x, y)}"

    # ------------------------------------------------------------------
    # Saving & combining
    # ------------------------------------------------------------------
    def save(self, directory: str) -> str:
        path = self.codec.save_session(self.session, directory)
        self.has_unsaved_changes = False
        logger.info("Session saved, cleared unsaved changes flag")
        return path

    def combine(
        self,
        mode: SessionMode,
        documents: Sequence[Document],
        names: Optional[Sequence[str]] = None,
        confirm: Optional[ConfirmCallback] = None,
        name: str = DEFAULT_COMBINED_NAME,
    ) -> Optional[MergeResult]:
        """Merge documents without touching the live session."""
        try:
            return self.merger.combine(mode, documents, names=names, confirm=confirm, name=name)
        except (ValidationError, ModeMismatchError) as e:
            identifier = getattr(e, "source", None) or "combine"
            logger.error(f"Error combining files: {e}")
            self.error_occurred.emit(str(identifier), f"Error combining files: {e}")
            return None

    def combine_files(
        self,
        mode: SessionMode,
        filepaths: Sequence[str],
        confirm: Optional[ConfirmCallback] = None,
        name: str = DEFAULT_COMBINED_NAME,
    ) -> Optional[MergeResult]:
        documents: List[Document] = []
        for filepath in filepaths:
            try:
                documents.append(self.codec.read_document(filepath))
            except VolleyheatError as e:
                self._report(getattr(e, "source", None) or filepath, e)
                return None
        names = [os.path.basename(p) for p in filepaths]
        return self.combine(mode, documents, names=names, confirm=confirm, name=name)

    def save_combined(self, result: MergeResult, directory: str) -> str:
        return self.codec.write_document(result.document, directory)

    def export_image(self, filepath: str, dpi: float = 100.0) -> int:
        """Render the visible points of the live session into an image file."""
        drawn = figure_renderer.export_image(
            self.geometry,
            self.session.points,
            filepath,
            filters=self.filters,
            show_lines=self.operator.lines_visible,
            dpi=dpi,
        )
        logger.info(f"Exported {drawn} point(s) to {filepath}")
        return drawn
