"""
Background Workers (Threading)
==============================
This module contains QThread subclasses for file reads, the only blocking I/O
in the application.

Why is this file needed?
------------------------
1. Responsiveness: a slow disk or network share must not freeze the GUI while
   a session file is being read.
2. Validate-before-commit: the worker only reads and validates. It never
   touches the live session; the Store commits in the slot connected to
   `loaded`, so a failed or cancelled read leaves the prior state unchanged.
3. Signals: results cross back to the GUI thread through Qt Signals.

Classes:
    SessionReadWorker: Reads one or more session files (single shot).
"""
import logging
import os
from typing import List, Optional, Sequence

from PySide6.QtCore import QThread, Signal

from volleyheat.config import AppConfig, DEFAULT_CONFIG
from volleyheat.model.errors import VolleyheatError
from volleyheat.model.io import SessionCodec

logger = logging.getLogger(__name__)


class SessionReadWorker(QThread):
    # Emitted once with the list of validated documents, in input order
    loaded = Signal(object)
    # (identifier, message): identifier is the offending file name
    error_occurred = Signal(str, str)

    def __init__(
        self,
        filepaths: Sequence[str],
        config: AppConfig = DEFAULT_CONFIG,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__()
        self.filepaths = list(filepaths)
        self.codec = SessionCodec(config)
        self.timeout = timeout
        self.is_cancelled = False

    def run(self) -> None:
        documents: List[dict] = []
        current = ""
        try:
            logger.info(f"Reading {len(self.filepaths)} session file(s) in background...")
            for filepath in self.filepaths:
                current = os.path.basename(filepath)
                if self.is_cancelled:
                    logger.info("Session read cancelled.")
                    return
                documents.append(self.codec.read_document(filepath, timeout=self.timeout))

            if self.is_cancelled:
                logger.info("Session read cancelled.")
                return
            self.loaded.emit(documents)

        except VolleyheatError as e:
            logger.error(f"Error in SessionReadWorker ({current}): {e}")
            self.error_occurred.emit(getattr(e, "source", None) or current, str(e))

    def cancel(self) -> None:
        self.is_cancelled = True
