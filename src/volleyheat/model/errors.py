"""
Error Taxonomy
==============
Exceptions raised by the model layer.

Validation, size and mode errors are recovered at the boundary that detected
them (the Store reports them and leaves the live session untouched).
InvariantViolation is a development aid: it is only raised when assertions are
enabled in the debug config, otherwise the inconsistency is logged and the
operation becomes a no-op.
"""
from __future__ import annotations

import logging
from typing import Optional

from volleyheat.config import AppConfig

logger = logging.getLogger(__name__)


class VolleyheatError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(VolleyheatError, ValueError):
    """A session document is malformed or outside the schema."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source


class SizeLimitError(VolleyheatError):
    """A session document exceeds the configured byte cap."""

    def __init__(self, size: int, limit: int, source: Optional[str] = None) -> None:
        size_mb = size / (1024 * 1024)
        limit_mb = limit / (1024 * 1024)
        label = f"'{source}' " if source else ""
        super().__init__(
            f"File {label}is too large ({size_mb:.2f}MB). Maximum file size is {limit_mb:.0f}MB."
        )
        self.size = size
        self.limit = limit
        self.source = source


class ModeMismatchError(VolleyheatError):
    """A merge input does not match the selected mode."""

    def __init__(self, source: str, mode: str, expected: str) -> None:
        super().__init__(
            f"File \"{source}\" is {mode} mode but {expected} mode was selected. "
            f"All files must match the selected mode."
        )
        self.source = source
        self.mode = mode
        self.expected = expected


class SessionReadError(VolleyheatError, OSError):
    """Reading a session file failed (missing, unreadable or timed out)."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source


class InvariantViolation(VolleyheatError, AssertionError):
    """Internal inconsistency detected while assertions are enabled."""


def check_invariant(condition: bool, message: str, config: AppConfig) -> bool:
    """
    Report an internal inconsistency.

    Returns the condition so callers can bail out with a no-op when it is False.
    Raises InvariantViolation only when debug assertions are active.
    """
    if condition:
        return True
    if config.debug.assertions_active:
        raise InvariantViolation(f"Assertion failed: {message}")
    logger.error(f"Invariant violated: {message}")
    return False
