"""
Session State (Data Model)
==========================
This module defines the session that is being recorded or viewed.

Why is this file needed?
------------------------
1. State Management: It holds the session name, its mode and the ledger of
   points in one place.
2. Persistence: This object is what gets serialized when saving a session.
3. Decoupling: Views read from this object; the Store replaces it wholesale on
   "start new" and "load".

Classes:
    SessionMode: simple (click-to-place) or charting (drag-to-draw lines).
    Session: The main container class.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional

from volleyheat.config import AppConfig, DEFAULT_CONFIG
from volleyheat.model.ledger import SessionLedger

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "Untitled Session"


class SessionMode(StrEnum):
    SIMPLE = "simple"
    CHARTING = "charting"

    @property
    def label(self) -> str:
        return "Heatmap and Charting" if self is SessionMode.CHARTING else "Simple Heatmap"

    @property
    def file_suffix(self) -> str:
        return f"_{self.value}"


_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F-\x9F]")
_PATH_HOSTILE_CHARS = re.compile(r'[<>:"/\\|?*]')


def sanitize_session_name(name: Optional[str], max_length: int = 50) -> str:
    """Trim, drop control and path-hostile characters, cap the length."""
    if not name or not isinstance(name, str):
        return ""
    name = name.strip()
    name = _CONTROL_CHARS.sub("", name)
    name = _PATH_HOSTILE_CHARS.sub("", name)
    return name[:max_length]


@dataclass
class Session:
    """
    The live session. Owns no external resources; it is discarded and
    replaced wholesale on "start new", "load" or teardown.
    """
    name: str = DEFAULT_SESSION_NAME
    mode: SessionMode = SessionMode.SIMPLE
    ledger: SessionLedger = field(default_factory=SessionLedger)
    is_view_only: bool = False
    # Human-readable note produced when a loaded file had to be migrated.
    migration_info: Optional[str] = None

    @classmethod
    def new(cls, name: str, mode: SessionMode, config: AppConfig = DEFAULT_CONFIG) -> Session:
        """Start an empty session. The name is sanitized; blanks fall back to the default."""
        clean = sanitize_session_name(name, config.validation.max_session_name_length)
        session = cls(
            name=clean or DEFAULT_SESSION_NAME,
            mode=SessionMode(mode),
            ledger=SessionLedger(config),
        )
        logger.info(f"Starting new session: {session.name} ({session.mode})")
        return session

    @property
    def points(self):
        return self.ledger.points

    @property
    def title(self) -> str:
        suffix = " (view only)" if self.is_view_only else ""
        return f"{self.name} - {self.mode.label}{suffix}"
