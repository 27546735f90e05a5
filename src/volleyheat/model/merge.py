"""
Session Merging
===============
Combines several validated session documents of the same mode into one.

Points are concatenated in selection order (no reordering, no
de-duplication). History is not carried over: the merged document starts with
empty undo/redo stacks.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Union

from volleyheat.config import AppConfig, DEFAULT_CONFIG
from volleyheat.model.errors import ModeMismatchError, ValidationError
from volleyheat.model.io import Document, SessionCodec
from volleyheat.model.state import SessionMode, sanitize_session_name

logger = logging.getLogger(__name__)

DEFAULT_COMBINED_NAME = "Combined Session"

# Asked with the combined point count when it exceeds the performance threshold.
ConfirmCallback = Callable[[int], bool]


@dataclass
class MergeResult:
    document: Document
    source_count: int

    @property
    def point_count(self) -> int:
        return len(self.document["points"])


class MergeEngine:
    def __init__(self, config: AppConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        self.codec = SessionCodec(config)

    def combine(
        self,
        target_mode: Union[SessionMode, str],
        documents: Sequence[Document],
        names: Optional[Sequence[str]] = None,
        confirm: Optional[ConfirmCallback] = None,
        name: str = DEFAULT_COMBINED_NAME,
    ) -> Optional[MergeResult]:
        """
        Merge `documents` into a single document of `target_mode`.

        Args:
            target_mode: Mode every input must have.
            documents: At least two session documents.
            names: Display names (e.g. file names) used in error messages.
            confirm: Gate asked when the combined point count exceeds the
                configured threshold. Returning False cancels the merge.
            name: Name of the combined session.

        Returns:
            The merge result, or None when the confirmation gate declined.

        Raises:
            ValidationError: fewer than two documents or an invalid document.
            ModeMismatchError: a document's mode differs from `target_mode`.
        """
        target_mode = SessionMode(target_mode)
        if len(documents) < 2:
            raise ValidationError("Please select at least 2 files to combine.")
        if names is not None and len(names) != len(documents):
            raise ValueError("names must match documents one to one")

        labels = list(names) if names is not None else [f"#{i + 1}" for i in range(len(documents))]

        # Check everything before producing anything.
        for label, document in zip(labels, documents):
            self.codec.validate(document, source=label)
            if document["mode"] != target_mode.value:
                raise ModeMismatchError(source=label, mode=document["mode"], expected=target_mode.value)

        combined: List[dict] = []
        for document in documents:
            combined.extend(copy.deepcopy(document["points"]))

        threshold = self.config.validation.max_point_count
        if len(combined) > threshold:
            logger.warning(f"Combined session has {len(combined)} points (threshold {threshold}).")
            if confirm is not None and not confirm(len(combined)):
                logger.info("Combine cancelled by operator.")
                return None

        clean_name = sanitize_session_name(name, self.config.validation.max_session_name_length)
        document: Document = {
            "version": self.config.version,
            "name": clean_name or DEFAULT_COMBINED_NAME,
            "mode": target_mode.value,
            "points": combined,
            "undoStack": [],
            "redoStack": [],
            "savedAt": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(f"Combined {len(documents)} sessions into {len(combined)} points.")
        return MergeResult(document=document, source_count=len(documents))
