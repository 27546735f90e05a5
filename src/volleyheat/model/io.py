"""
Input/Output Manager (JSON)
Handles saving, loading, validating and migrating session documents.

Document layout:
    {
      "version": "1.1",
      "name": "...",
      "mode": "simple" | "charting",
      "points": [{"x", "y", "rotation", "line"?, "jerseyNumber"?, "team"?}, ...],
      "undoStack": [{"action": "add", "point"} | {"action": "clear", "points"}],
      "redoStack": [...],
      "savedAt": ISO-8601 timestamp
    }

A document is only turned into a live Session after `validate` succeeded.
`migrate` works on the document in place and is idempotent: field presence,
not value, decides whether a field gets backfilled.
"""
from __future__ import annotations

import json
import logging
import os
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from volleyheat.config import AppConfig, DEFAULT_CONFIG, APP_VERSION
from volleyheat.model.errors import SessionReadError, SizeLimitError, ValidationError
from volleyheat.model.ledger import SessionLedger
from volleyheat.model.points import Action, AddAction, Point, action_from_dict, is_number
from volleyheat.model.state import Session, SessionMode, sanitize_session_name

# Get module logger
logger = logging.getLogger(__name__)

FILE_EXTENSION = ".json"
READ_CHUNK_SIZE = 64 * 1024

Document = Dict[str, Any]


@dataclass
class MigrationReport:
    """Counts of backfilled fields, split per collection."""
    current_jersey: int = 0
    undo_jersey: int = 0
    redo_jersey: int = 0
    current_team: int = 0
    undo_team: int = 0
    redo_team: int = 0

    @property
    def total_migrated(self) -> int:
        return self.current_jersey + self.undo_jersey + self.redo_jersey

    @property
    def total_team_migrated(self) -> int:
        return self.current_team + self.undo_team + self.redo_team

    @property
    def changed(self) -> bool:
        return self.total_migrated > 0 or self.total_team_migrated > 0

    @property
    def message(self) -> Optional[str]:
        """Operator-facing summary, None when nothing was migrated."""
        if not self.changed:
            return None

        messages = []
        if self.total_migrated > 0:
            parts = []
            if self.current_jersey > 0:
                parts.append(f"{self.current_jersey} current")
            if self.undo_jersey > 0:
                parts.append(f"{self.undo_jersey} undo")
            if self.redo_jersey > 0:
                parts.append(f"{self.redo_jersey} redo")
            messages.append(
                f"{self.total_migrated} charting line(s) migrated to include jersey number tracking "
                f"({', '.join(parts)})"
            )
        if self.total_team_migrated > 0:
            messages.append(
                f"{self.total_team_migrated} charting line(s) migrated to include team tracking"
            )
        return "File updated:\n" + "\n".join(messages)


def _backfill_point(point: Any) -> Tuple[int, int]:
    """Add missing jerseyNumber/team keys to a charted point. Returns (jersey, team) counts."""
    if not isinstance(point, dict) or not point.get("line"):
        return 0, 0
    jersey = team = 0
    if "jerseyNumber" not in point:
        point["jerseyNumber"] = None
        jersey = 1
    if "team" not in point:
        point["team"] = None
        team = 1
    return jersey, team


def _backfill_stack(stack: Any) -> Tuple[int, int]:
    if not isinstance(stack, list):
        return 0, 0
    jersey = team = 0
    for action in stack:
        if not isinstance(action, dict):
            continue
        if action.get("action") == "add" and action.get("point"):
            j, t = _backfill_point(action["point"])
            jersey += j
            team += t
        elif action.get("action") == "clear" and isinstance(action.get("points"), list):
            for point in action["points"]:
                j, t = _backfill_point(point)
                jersey += j
                team += t
    return jersey, team


def _read_bytes(filepath: str, limit: int) -> bytes:
    """Read in chunks, stopping once more than `limit` bytes arrived."""
    chunks: List[bytes] = []
    total = 0
    with open(filepath, "rb") as f:
        while total <= limit:
            chunk = f.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
            total += len(chunk)
    return b"".join(chunks)


def _read_with_deadline(filepath: str, limit: int, timeout: float, source: str) -> bytes:
    """
    Run `_read_bytes` on a helper thread and give up after `timeout` seconds.

    A stalled reader (dead network share, FIFO without writer) is abandoned;
    the helper is a daemon thread so it never blocks interpreter exit.
    """
    outcome: Dict[str, Any] = {}

    def _target() -> None:
        try:
            outcome["data"] = _read_bytes(filepath, limit)
        except Exception as e:
            outcome["error"] = e

    reader = threading.Thread(target=_target, name=f"read-{source}", daemon=True)
    reader.start()
    reader.join(timeout)
    if reader.is_alive():
        logger.error(f"Reading '{source}' did not finish within {timeout:.1f}s")
        raise SessionReadError(f"Reading '{source}' timed out after {timeout:.1f}s", source=source)
    if "error" in outcome:
        raise outcome["error"]
    return outcome["data"]


def suggested_filename(name: str, mode: Union[SessionMode, str]) -> str:
    """Sanitized name + mode suffix + extension, e.g. 'Game_1_charting.json'."""
    safe = re.sub(r"[^a-zA-Z0-9]", "_", name or "")
    return f"{safe}{SessionMode(mode).file_suffix}{FILE_EXTENSION}"


class SessionCodec:
    """Serializes, validates and migrates session documents."""

    def __init__(self, config: AppConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def serialize(self, session: Session) -> Document:
        ledger = session.ledger
        return {
            "version": self.config.version,
            "name": session.name,
            "mode": session.mode.value,
            "points": [p.to_dict() for p in ledger.points],
            "undoStack": [a.to_dict() for a in ledger.undo_stack],
            "redoStack": [a.to_dict() for a in ledger.redo_stack],
            "savedAt": datetime.now(timezone.utc).isoformat(),
        }

    @staticmethod
    def dumps(document: Document) -> str:
        return json.dumps(document, indent=2)

    def loads(self, text: str, source: Optional[str] = None) -> Document:
        """Parse and validate a document from JSON text."""
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError("Invalid JSON format: file is not valid JSON", source=source) from e
        self.validate(document, source=source)
        return document

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate(self, document: Any, source: Optional[str] = None) -> None:
        """
        Check a document against the session schema.

        Raises:
            ValidationError: on the first structural problem found.
        """
        def fail(reason: str) -> None:
            raise ValidationError(f"Invalid session file: {reason}", source=source)

        if not isinstance(document, dict):
            fail("not a valid object")

        file_version = document.get("version")
        if file_version:
            logger.info(f"Loading session with version: {file_version}")
            if not self.check_version_compatibility(str(file_version)):
                logger.warning(f"Session version may not be fully compatible: {file_version}")
        else:
            logger.warning("Session file has no version information. Assuming legacy format.")

        name = document.get("name")
        if not name or not isinstance(name, str):
            fail("missing or invalid session name")

        valid_modes = [m.value for m in SessionMode]
        if document.get("mode") not in valid_modes:
            fail(f"mode must be one of {', '.join(valid_modes)}")

        points = document.get("points")
        if not isinstance(points, list):
            fail("points must be an array")
        for index, point in enumerate(points):
            self.validate_point(point, index, source=source)

        for key in ("undoStack", "redoStack"):
            if document.get(key) is not None and not isinstance(document[key], list):
                fail(f"{key} must be an array")

    def validate_point(self, point: Any, index: int, source: Optional[str] = None) -> None:
        if not isinstance(point, dict):
            raise ValidationError(f"Invalid session file: point {index} is not an object", source=source)

        x, y = point.get("x"), point.get("y")
        if not (is_number(x) and is_number(y)):
            raise ValidationError(
                f"Invalid session file: point {index} missing valid x/y coordinates", source=source
            )

        # Allow some margin before warning about odd coordinates
        max_coordinate = self.config.grid.canvas_size * 2
        if x < 0 or x > max_coordinate or y < 0 or y > max_coordinate:
            logger.warning(
                f"Point {index} has coordinates outside expected bounds: ({x}, {y}). "
                f"This may cause display issues."
            )

        v = self.config.validation
        rotation = point.get("rotation")
        if rotation is not None:
            if not isinstance(rotation, int) or isinstance(rotation, bool) \
                    or not v.min_rotation <= rotation <= v.max_rotation:
                raise ValidationError(
                    f"Invalid session file: point {index} missing valid rotation "
                    f"(must be {v.min_rotation}-{v.max_rotation})",
                    source=source,
                )

    def check_version_compatibility(self, file_version: str) -> bool:
        """Currently accepts every version; the comparison is logged for later enforcement."""
        logger.debug(
            f"Version compatibility check: file={file_version}, current={self.config.version} "
            f"(app {APP_VERSION})"
        )
        return True

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------
    @staticmethod
    def migrate(document: Document) -> MigrationReport:
        """Backfill jerseyNumber/team on charted points in place."""
        report = MigrationReport()

        for point in document.get("points") or []:
            j, t = _backfill_point(point)
            report.current_jersey += j
            report.current_team += t

        report.undo_jersey, report.undo_team = _backfill_stack(document.get("undoStack"))
        report.redo_jersey, report.redo_team = _backfill_stack(document.get("redoStack"))

        if report.total_migrated > 0:
            logger.info(f"Migrated {report.total_migrated} line(s) to include jersey number tracking")
        if report.total_team_migrated > 0:
            logger.info(f"Migrated {report.total_team_migrated} line(s) to include team tracking")
        return report

    # ------------------------------------------------------------------
    # Document -> Session
    # ------------------------------------------------------------------
    def to_session(self, document: Document, view_only: bool = False) -> Session:
        """
        Build a live session from a validated document. The document is
        migrated first; the report message is kept on the session.
        """
        report = self.migrate(document)

        points = []
        for index, data in enumerate(document["points"]):
            try:
                points.append(Point.from_dict(data))
            except (KeyError, TypeError) as e:
                raise ValidationError(
                    f"Invalid session file: point {index} has a malformed line ({e})",
                    source=document.get("name"),
                ) from e
        undo_stack = self._actions(document.get("undoStack"), "undoStack")
        redo_stack = self._actions(document.get("redoStack"), "redoStack")

        name = sanitize_session_name(document.get("name"), self.config.validation.max_session_name_length)
        session = Session(
            name=name or "Loaded Session",
            mode=SessionMode(document["mode"]),
            ledger=SessionLedger.from_history(points, undo_stack, redo_stack, config=self.config),
            is_view_only=view_only,
            migration_info=report.message,
        )
        logger.info(f"Session '{session.name}' loaded with {len(points)} point(s).")
        return session

    def _actions(self, entries: Optional[List[Any]], key: str) -> List[Action]:
        """History entries whose payload would not pass `add_point` checks are dropped."""
        actions: List[Action] = []
        for index, entry in enumerate(entries or []):
            try:
                action = action_from_dict(entry)
                payload = [entry["point"]] if isinstance(action, AddAction) else entry["points"]
                for point_index, point in enumerate(payload):
                    self.validate_point(point, point_index, source=key)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Dropping malformed {key} entry {index}: {e}")
                continue
            actions.append(action)
        return actions

    def exceeds_point_threshold(self, document: Document) -> bool:
        return len(document.get("points") or []) > self.config.validation.max_point_count

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    def read_document(self, filepath: str, timeout: Optional[float] = None) -> Document:
        """
        Read, parse and validate a session file.

        Args:
            filepath: Path to the JSON file.
            timeout: Seconds the read may take, including a stalled open().
                Defaults to the configured read timeout; 0 disables it.

        Raises:
            SizeLimitError: file is larger than the configured cap.
            SessionReadError: the file cannot be read or the read timed out.
            ValidationError: not JSON or not a valid session document.
        """
        source = os.path.basename(filepath)
        logger.info(f"Loading session from: {filepath}")

        limit = self.config.validation.max_file_size
        try:
            size = os.path.getsize(filepath)
        except OSError as e:
            raise SessionReadError(f"Error reading file: {e}", source=source) from e
        if size > limit:
            raise SizeLimitError(size, limit, source=source)

        if timeout is None:
            timeout = self.config.validation.read_timeout_seconds

        try:
            if timeout:
                raw = _read_with_deadline(filepath, limit, timeout, source)
            else:
                raw = _read_bytes(filepath, limit)
        except SessionReadError:
            raise
        except OSError as e:
            raise SessionReadError(f"Error reading file: {e}", source=source) from e

        if len(raw) > limit:
            raise SizeLimitError(len(raw), limit, source=source)

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError("Invalid JSON format: file is not valid JSON", source=source) from e

        return self.loads(text, source=source)

    def write_document(self, document: Document, directory: str, filename: Optional[str] = None) -> str:
        """Write a document into `directory`. Returns the full path."""
        filename = filename or suggested_filename(document.get("name", ""), document["mode"])
        filepath = os.path.join(directory, filename)
        logger.info(f"Saving session to: {filepath}")
        try:
            with open(filepath, "w", encoding="utf-8") as f:
                f.write(self.dumps(document))
        except OSError as e:
            logger.exception(f"Failed to save session: {e}")
            raise
        logger.info(f"Session saved to: {filepath}")
        return filepath

    def save_session(self, session: Session, directory: str) -> str:
        return self.write_document(self.serialize(session), directory)
