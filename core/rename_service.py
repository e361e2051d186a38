"""Decide and deliver a rename for each download the browser reports."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from config.rename_settings import DEFAULT_RENAME_SETTINGS, RenameSettings
from core.filename_utils import extract_basename, has_alphanumeric, sanitize_domain
from core.logging_utils import get_logger, log_with_context
from core.state_machine import DownloadRecord, DownloadTracker
from core.template import build_filename
from core.tokens import (
    RenderContext,
    resolve_download_title,
    resolve_extension_from_download,
)
from core.url_utils import build_referrer_pattern, extract_hostname, pick_tab_by_referrer
from download.base import (
    ConflictAction,
    DecisionLog,
    DownloadItem,
    DownloadSource,
    RenameSink,
    SettingsStore,
    TabInfo,
    TabResolver,
)

logger = get_logger(__name__)

REASON_DISABLED = "disabled"
REASON_BLACKLISTED = "blacklisted"
REASON_UNCHANGED = "unchanged"
REASON_UNRENDERABLE = "unrenderable"
REASON_FILENAME_PENDING = "filename_pending"
REASON_RETRIES_EXHAUSTED = "retries_exhausted"
REASON_ERROR = "error"


@dataclass(frozen=True)
class RenameOutcome:
    filename: Optional[str]
    reason: Optional[str] = None
    context: Optional[RenderContext] = None


class RenameService:
    """Runs the rename pipeline once per download id."""

    def __init__(
        self,
        *,
        settings_store: SettingsStore,
        tab_resolver: TabResolver,
        download_source: DownloadSource,
        sink: RenameSink,
        tracker: Optional[DownloadTracker] = None,
        decision_log: Optional[DecisionLog] = None,
        retry_attempts: int = 5,
        retry_delay_seconds: float = 0.5,
        referrer_tab_fallback: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings_store = settings_store
        self._tab_resolver = tab_resolver
        self._download_source = download_source
        self._sink = sink
        self.tracker = tracker or DownloadTracker()
        self._decision_log = decision_log
        self._retry_attempts = max(retry_attempts, 1)
        self._retry_delay_seconds = retry_delay_seconds
        self._referrer_tab_fallback = referrer_tab_fallback
        self._clock = clock or datetime.now
        self._tasks: dict[int, asyncio.Task] = {}

    async def read_settings(self) -> RenameSettings:
        try:
            return await self._settings_store.read()
        except Exception as exc:
            log_with_context(
                logger,
                logging.WARNING,
                "Settings unavailable, using defaults",
                error=str(exc),
                stage="PIPELINE",
            )
            return DEFAULT_RENAME_SETTINGS

    async def resolve_tab(self, item: DownloadItem) -> Optional[TabInfo]:
        """Find the tab a download started from, or ``None``."""

        try:
            if isinstance(item.tab_id, int) and item.tab_id >= 0:
                tab = await self._tab_resolver.get_tab(item.tab_id)
                if tab is not None:
                    return tab

            pattern = build_referrer_pattern(item.referrer)
            if not pattern:
                return None
            tabs = await self._tab_resolver.query(pattern)
            return pick_tab_by_referrer(
                item.referrer, tabs, fallback_to_first=self._referrer_tab_fallback
            )
        except Exception as exc:
            log_with_context(
                logger,
                logging.WARNING,
                "Tab lookup failed",
                download_id=item.id,
                tab_id=item.tab_id,
                error=str(exc),
                stage="PIPELINE",
            )
            return None

    def build_context(
        self, item: DownloadItem, tab: Optional[TabInfo], settings: RenameSettings
    ) -> RenderContext:
        page_url = (tab.url if tab else "") or item.final_url or item.url
        return RenderContext(
            domain=extract_hostname(page_url),
            title=resolve_download_title(
                tab_title=tab.title if tab else "",
                url=item.final_url or item.url,
                filename=item.filename,
                max_length=settings.max_title_length,
            ),
            ext=resolve_extension_from_download(item),
            date=self._clock(),
            original_name=extract_basename(item.filename),
        )

    async def evaluate(self, item: DownloadItem) -> RenameOutcome:
        settings = await self.read_settings()
        if not settings.enabled:
            return RenameOutcome(filename=None, reason=REASON_DISABLED)

        tab = await self.resolve_tab(item)
        context = self.build_context(item, tab, settings)

        hostname = context.domain.lower()
        if settings.is_blacklisted(hostname, sanitize_domain(hostname, settings.remove_www)):
            return RenameOutcome(filename=None, reason=REASON_BLACKLISTED, context=context)

        target = build_filename(context, settings)
        if not has_alphanumeric(target):
            return RenameOutcome(filename=None, reason=REASON_UNRENDERABLE, context=context)
        if target == extract_basename(item.filename):
            return RenameOutcome(filename=None, reason=REASON_UNCHANGED, context=context)
        return RenameOutcome(filename=target, context=context)

    async def compute_suggestion(self, item: DownloadItem) -> Optional[str]:
        """Return the filename to suggest for ``item``, or ``None`` to keep it."""

        return (await self.evaluate(item)).filename

    def schedule(self, download_id: int) -> Optional[asyncio.Task]:
        """Start processing ``download_id`` unless it is already tracked."""

        if self.tracker.begin(download_id) is None:
            return None
        task = asyncio.create_task(self.process_download(download_id))
        self._tasks[download_id] = task
        task.add_done_callback(lambda done: self._discard_task(download_id, done))
        return task

    def _discard_task(self, download_id: int, task: asyncio.Task) -> None:
        if self._tasks.get(download_id) is task:
            del self._tasks[download_id]

    async def process_download(self, download_id: int) -> Optional[DownloadRecord]:
        if self.tracker.get(download_id) is None and self.tracker.begin(download_id) is None:
            return None

        try:
            item = await self._wait_for_filename(download_id)
            if item is None:
                record = self.tracker.mark_abandoned(download_id, REASON_RETRIES_EXHAUSTED)
                await self._sink.keep_original(download_id)
                await self._finish(record)
                return record

            outcome = await self.evaluate(item)
            if outcome.filename:
                await self._sink.suggest(download_id, outcome.filename, ConflictAction.UNIQUIFY)
                record = self.tracker.mark_renamed(download_id, outcome.filename)
            else:
                await self._sink.keep_original(download_id)
                record = self.tracker.mark_skipped(download_id, outcome.reason or REASON_UNCHANGED)
            await self._finish(record)
            return record
        except asyncio.CancelledError:
            log_with_context(
                logger,
                logging.INFO,
                "Download processing cancelled",
                download_id=download_id,
                stage="PIPELINE",
            )
            raise
        except Exception:
            logger.exception("Rename pipeline failed download_id=%s", download_id)
            if self.tracker.get(download_id) is None:
                return None
            record = self.tracker.mark_abandoned(download_id, REASON_ERROR)
            await self._finish(record)
            return record

    async def _wait_for_filename(self, download_id: int) -> Optional[DownloadItem]:
        for attempt in range(1, self._retry_attempts + 1):
            item = await self._download_source.get(download_id)
            if item is not None and item.filename:
                return item

            self.tracker.record_attempt(download_id, reason=REASON_FILENAME_PENDING)
            if attempt == self._retry_attempts:
                break
            log_with_context(
                logger,
                logging.DEBUG,
                "Filename not assigned yet, retrying",
                download_id=download_id,
                attempt=attempt,
                delay=self._retry_delay_seconds,
                stage="PIPELINE",
            )
            await asyncio.sleep(self._retry_delay_seconds)
        return None

    async def _finish(self, record: DownloadRecord) -> None:
        self._log_decision(record)
        # Only the id is needed past this point; the tracker remembers it.
        await self._download_source.discard(record.download_id)

    def _log_decision(self, record: DownloadRecord) -> None:
        log_with_context(
            logger,
            logging.INFO,
            "Rename decision made",
            download_id=record.download_id,
            state=record.state.value,
            filename=record.filename,
            reason=record.reason,
            attempts=record.attempts,
            stage="PIPELINE",
        )
        if self._decision_log is None:
            return
        try:
            self._decision_log.record(
                download_id=record.download_id,
                state=record.state.value,
                filename=record.filename,
                reason=record.reason,
                attempts=record.attempts,
            )
        except Exception as exc:
            log_with_context(
                logger,
                logging.WARNING,
                "Failed to record rename decision",
                download_id=record.download_id,
                error=str(exc),
                stage="STORAGE",
            )

    def forget(self, download_id: int) -> None:
        task = self._tasks.pop(download_id, None)
        if task is not None and not task.done():
            task.cancel()
        self.tracker.forget(download_id)

    async def wait_idle(self) -> None:
        """Wait until every scheduled download has been decided."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
