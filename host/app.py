"""Native host application: wires registries, storage and the rename service."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Mapping, Optional, TextIO

from sqlalchemy.orm import Session, sessionmaker

from config.rename_settings import SettingsValidationError
from config.settings import Settings
from core.logging_utils import get_logger, log_with_context
from core.rename_service import RenameService
from download.base import ConflictAction, RenameSink, SettingsStore
from download.registry import DownloadRegistry, TabRegistry
from host.options import preview_filename, reset_settings, save_settings
from host.protocol import (
    ProtocolError,
    download_item_from_payload,
    encode_message,
    error_message,
    parse_message,
    preview_message,
    settings_message,
    suggest_message,
    tab_from_payload,
)
from storage.stores import SqlDecisionLog, SqlSettingsStore

logger = get_logger(__name__)

Writer = Callable[[str], None]


def stream_writer(stream: TextIO) -> Writer:
    def _write(line: str) -> None:
        stream.write(line + "\n")
        stream.flush()

    return _write


async def read_lines(stream: TextIO) -> AsyncIterator[str]:
    """Yield lines from a blocking stream without stalling the event loop."""

    while True:
        line = await asyncio.to_thread(stream.readline)
        if not line:
            return
        yield line


class JsonLineSink(RenameSink):
    """Sends rename suggestions back to the browser as protocol lines."""

    def __init__(self, write: Writer):
        self._write = write

    async def suggest(
        self,
        download_id: int,
        filename: str,
        conflict_action: ConflictAction = ConflictAction.UNIQUIFY,
    ) -> None:
        self._write(encode_message(suggest_message(download_id, filename, conflict_action)))

    async def keep_original(self, download_id: int) -> None:
        self._write(encode_message(suggest_message(download_id, None)))


class HostApplication:
    """Dispatches incoming protocol messages."""

    def __init__(
        self,
        *,
        service: RenameService,
        tabs: TabRegistry,
        downloads: DownloadRegistry,
        settings_store: SettingsStore,
        write: Writer,
    ) -> None:
        self.service = service
        self.tabs = tabs
        self.downloads = downloads
        self.settings_store = settings_store
        self._write = write
        self._handlers = {
            "download": self._handle_download,
            "download.erased": self._handle_download_erased,
            "tabs.update": self._handle_tabs_update,
            "tabs.remove": self._handle_tabs_remove,
            "settings.get": self._handle_settings_get,
            "settings.set": self._handle_settings_set,
            "settings.reset": self._handle_settings_reset,
            "preview": self._handle_preview,
        }

    def _reply(self, message: Mapping[str, Any]) -> None:
        self._write(encode_message(message))

    async def run(self, lines: AsyncIterator[str]) -> None:
        log_with_context(logger, logging.INFO, "Host started", stage="HOST")
        try:
            async for line in lines:
                await self.handle_line(line)
        finally:
            await self.service.wait_idle()
            log_with_context(logger, logging.INFO, "Host stopped", stage="HOST")

    async def handle_line(self, line: str) -> None:
        if not line.strip():
            return
        try:
            message = parse_message(line)
        except ProtocolError as exc:
            log_with_context(
                logger, logging.WARNING, "Dropping invalid message", error=str(exc), stage="HOST"
            )
            self._reply(error_message(str(exc)))
            return
        await self.handle_message(message)

    async def handle_message(self, message: Mapping[str, Any]) -> None:
        message_type = message.get("type")
        handler = self._handlers.get(message_type)
        if handler is None:
            log_with_context(
                logger,
                logging.WARNING,
                "Unknown message type",
                message_type=message_type,
                stage="HOST",
            )
            self._reply(error_message(f"Unknown message type: {message_type}"))
            return
        try:
            await handler(message)
        except ProtocolError as exc:
            log_with_context(
                logger,
                logging.WARNING,
                "Malformed message payload",
                message_type=message_type,
                error=str(exc),
                stage="HOST",
            )
            self._reply(error_message(str(exc)))
        except Exception as exc:  # pragma: no cover - defensive guard
            logger.exception("Message handler failed message_type=%s", message_type)
            self._reply(error_message(f"Internal error: {exc}"))

    async def _handle_download(self, message: Mapping[str, Any]) -> None:
        item = download_item_from_payload(message.get("download"))
        if self.service.tracker.decided_state(item.id) is not None:
            # Late "changed" events for a decided download are not stored again.
            return
        self.downloads.upsert(item)
        log_with_context(
            logger,
            logging.DEBUG,
            "Download event received",
            download_id=item.id,
            event=message.get("event"),
            stage="HOST",
        )
        self.service.schedule(item.id)

    async def _handle_download_erased(self, message: Mapping[str, Any]) -> None:
        download_id = message.get("id")
        if not isinstance(download_id, int) or isinstance(download_id, bool):
            raise ProtocolError("download.erased requires an integer 'id'")
        self.service.forget(download_id)
        self.downloads.remove(download_id)

    async def _handle_tabs_update(self, message: Mapping[str, Any]) -> None:
        tabs = message.get("tabs")
        if not isinstance(tabs, list):
            raise ProtocolError("tabs.update requires a 'tabs' list")
        self.tabs.update(tab_from_payload(tab) for tab in tabs)

    async def _handle_tabs_remove(self, message: Mapping[str, Any]) -> None:
        tab_id = message.get("tabId", message.get("tab_id"))
        if not isinstance(tab_id, int) or isinstance(tab_id, bool):
            raise ProtocolError("tabs.remove requires an integer 'tabId'")
        self.tabs.remove(tab_id)

    async def _handle_settings_get(self, message: Mapping[str, Any]) -> None:
        settings = await self.service.read_settings()
        self._reply(settings_message(settings, preview=preview_filename(settings)))

    async def _handle_settings_set(self, message: Mapping[str, Any]) -> None:
        values = message.get("settings")
        if not isinstance(values, Mapping):
            raise ProtocolError("settings.set requires a 'settings' object")
        try:
            settings = await save_settings(self.settings_store, values)
        except SettingsValidationError as exc:
            self._reply(error_message(str(exc)))
            return
        self._reply(settings_message(settings, preview=preview_filename(settings)))

    async def _handle_settings_reset(self, message: Mapping[str, Any]) -> None:
        settings = await reset_settings(self.settings_store)
        self._reply(settings_message(settings, preview=preview_filename(settings)))

    async def _handle_preview(self, message: Mapping[str, Any]) -> None:
        values = message.get("settings") or {}
        if not isinstance(values, Mapping):
            raise ProtocolError("preview 'settings' must be an object")
        current = await self.service.read_settings()
        try:
            candidate = current.merged(values)
        except SettingsValidationError as exc:
            self._reply(error_message(str(exc)))
            return
        self._reply(preview_message(preview_filename(candidate)))


def build_application(
    settings: Settings,
    *,
    session_factory: sessionmaker[Session],
    write: Writer,
    settings_store: Optional[SettingsStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> HostApplication:
    """Create the host application with SQLite-backed settings and decision log."""

    tabs = TabRegistry()
    downloads = DownloadRegistry()
    store = settings_store or SqlSettingsStore(session_factory)
    service = RenameService(
        settings_store=store,
        tab_resolver=tabs,
        download_source=downloads,
        sink=JsonLineSink(write),
        decision_log=SqlDecisionLog(session_factory),
        retry_attempts=settings.filename_retry_attempts,
        retry_delay_seconds=settings.filename_retry_delay_seconds,
        referrer_tab_fallback=settings.referrer_tab_fallback,
        clock=clock,
    )
    logger.info("Host application initialized")
    return HostApplication(
        service=service,
        tabs=tabs,
        downloads=downloads,
        settings_store=store,
        write=write,
    )
