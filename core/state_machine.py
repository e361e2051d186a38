"""Per-download rename state machine and lifecycle logging."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from typing import Optional

from core.logging_utils import get_logger, log_with_context

logger = get_logger(__name__)


class DownloadState(StrEnum):
    """Lifecycle status of a rename decision."""

    PENDING = "PENDING"
    RENAMED = "RENAMED"
    SKIPPED = "SKIPPED"
    ABANDONED = "ABANDONED"


class InvalidStatusTransition(Exception):
    """Raised when an illegal state transition is attempted."""


ALLOWED_TRANSITIONS: dict[DownloadState, set[DownloadState]] = {
    # PENDING -> PENDING counts another attempt to read the filename.
    DownloadState.PENDING: {
        DownloadState.PENDING,
        DownloadState.RENAMED,
        DownloadState.SKIPPED,
        DownloadState.ABANDONED,
    },
    DownloadState.RENAMED: set(),
    DownloadState.SKIPPED: set(),
    DownloadState.ABANDONED: set(),
}

TERMINAL_STATES = frozenset(
    {DownloadState.RENAMED, DownloadState.SKIPPED, DownloadState.ABANDONED}
)


@dataclass(frozen=True)
class DownloadRecord:
    download_id: int
    state: DownloadState = DownloadState.PENDING
    attempts: int = 0
    filename: Optional[str] = None
    reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class DownloadTracker:
    """Arena of in-flight downloads keyed by download id.

    A download enters as PENDING, may accumulate attempts, and ends in exactly
    one terminal state. Terminal records are evicted; only the id is kept so
    repeated browser notifications for the same download are ignored.
    """

    def __init__(self) -> None:
        self._pending: dict[int, DownloadRecord] = {}
        self._decided: dict[int, DownloadState] = {}

    def begin(self, download_id: int) -> Optional[DownloadRecord]:
        """Start tracking ``download_id``; ``None`` if it is already known."""

        if download_id in self._pending or download_id in self._decided:
            return None
        record = DownloadRecord(download_id=download_id, updated_at=datetime.utcnow())
        self._pending[download_id] = record
        log_with_context(
            logger,
            logging.DEBUG,
            "Download tracking started",
            download_id=download_id,
            stage="TRACKER",
        )
        return record

    def get(self, download_id: int) -> Optional[DownloadRecord]:
        return self._pending.get(download_id)

    def is_known(self, download_id: int) -> bool:
        return download_id in self._pending or download_id in self._decided

    def decided_state(self, download_id: int) -> Optional[DownloadState]:
        return self._decided.get(download_id)

    def pending_ids(self) -> list[int]:
        return list(self._pending)

    def record_attempt(self, download_id: int, *, reason: Optional[str] = None) -> DownloadRecord:
        record = self._require(download_id)
        return self._transition(
            record, DownloadState.PENDING, attempts=record.attempts + 1, reason=reason
        )

    def mark_renamed(self, download_id: int, filename: str) -> DownloadRecord:
        return self._transition(
            self._require(download_id), DownloadState.RENAMED, filename=filename
        )

    def mark_skipped(self, download_id: int, reason: str) -> DownloadRecord:
        return self._transition(
            self._require(download_id), DownloadState.SKIPPED, reason=reason
        )

    def mark_abandoned(self, download_id: int, reason: str) -> DownloadRecord:
        return self._transition(
            self._require(download_id), DownloadState.ABANDONED, reason=reason
        )

    def forget(self, download_id: int) -> None:
        """Drop every trace of ``download_id``, e.g. after the browser erased it."""

        self._pending.pop(download_id, None)
        self._decided.pop(download_id, None)

    def _require(self, download_id: int) -> DownloadRecord:
        record = self._pending.get(download_id)
        if record is None:
            state = self._decided.get(download_id)
            raise InvalidStatusTransition(
                f"Download {download_id} is not pending"
                + (f" (already {state.value})" if state else "")
            )
        return record

    def _transition(
        self,
        record: DownloadRecord,
        to_state: DownloadState,
        *,
        attempts: Optional[int] = None,
        filename: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> DownloadRecord:
        allowed = ALLOWED_TRANSITIONS.get(record.state, set())
        if to_state not in allowed:
            log_with_context(
                logger,
                logging.ERROR,
                "Invalid status transition attempted",
                download_id=record.download_id,
                old_status=record.state.value,
                new_status=to_state.value,
                stage="TRACKER",
            )
            raise InvalidStatusTransition(
                f"Cannot transition download {record.download_id} "
                f"from {record.state.value} to {to_state.value}"
            )

        updated = replace(
            record,
            state=to_state,
            attempts=record.attempts if attempts is None else attempts,
            filename=filename if filename is not None else record.filename,
            reason=reason if reason is not None else record.reason,
            updated_at=datetime.utcnow(),
        )

        if to_state in TERMINAL_STATES:
            self._pending.pop(record.download_id, None)
            self._decided[record.download_id] = to_state
        else:
            self._pending[record.download_id] = updated

        log_with_context(
            logger,
            logging.INFO if to_state in TERMINAL_STATES else logging.DEBUG,
            "Download status changed",
            download_id=record.download_id,
            old_status=record.state.value,
            new_status=to_state.value,
            attempts=updated.attempts,
            reason=updated.reason,
            stage="TRACKER",
        )
        return updated
