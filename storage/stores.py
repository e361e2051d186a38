"""SQLite-backed implementations of the settings store and decision log."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from config.rename_settings import RenameSettings
from core.logging_utils import get_logger, log_with_context
from download.base import DecisionLog, SettingsStore
from storage.models import DEFAULT_PROFILE_ID
from storage.repositories import RenameDecisionRepository, RenameSettingsRepository

logger = get_logger(__name__)


class SqlSettingsStore(SettingsStore):
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        profile_id: str = DEFAULT_PROFILE_ID,
    ):
        self._session_factory = session_factory
        self._profile_id = profile_id

    async def read(self) -> RenameSettings:
        session = self._session_factory()
        try:
            return RenameSettingsRepository(session, self._profile_id).load()
        finally:
            session.close()

    async def write(self, settings: RenameSettings) -> None:
        session = self._session_factory()
        try:
            RenameSettingsRepository(session, self._profile_id).save(settings)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        log_with_context(
            logger,
            logging.INFO,
            "Rename settings saved",
            profile_id=self._profile_id,
            enabled=settings.enabled,
            filename_pattern=settings.filename_pattern,
            stage="SETTINGS",
        )

    async def reset(self) -> RenameSettings:
        session = self._session_factory()
        try:
            settings = RenameSettingsRepository(session, self._profile_id).reset()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        log_with_context(
            logger,
            logging.INFO,
            "Rename settings reset to defaults",
            profile_id=self._profile_id,
            stage="SETTINGS",
        )
        return settings


class SqlDecisionLog(DecisionLog):
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def record(
        self,
        *,
        download_id: int,
        state: str,
        filename: Optional[str],
        reason: Optional[str],
        attempts: int,
    ) -> None:
        session = self._session_factory()
        try:
            RenameDecisionRepository(session).add_decision(
                download_id=download_id,
                state=state,
                filename=filename,
                reason=reason,
                attempts=attempts,
            )
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
