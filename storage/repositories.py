"""Repository helpers for database operations."""
from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from config.rename_settings import DEFAULT_RENAME_SETTINGS, RenameSettings
from storage.models import DEFAULT_PROFILE_ID, RenameDecision, RenameSettingsRecord


def _enum_value(value: str | Enum | None) -> Optional[str]:
    """Return the string value for enum members while allowing raw strings."""

    if value is None:
        return None
    return value.value if isinstance(value, Enum) else value


def _record_to_mapping(record: RenameSettingsRecord) -> dict[str, Any]:
    return {
        "enabled": record.enabled,
        "filename_pattern": record.filename_pattern,
        "max_title_length": record.max_title_length,
        "remove_www": record.remove_www,
        "domain_blacklist": record.domain_blacklist,
        "schema_version": record.schema_version,
    }


def _apply_settings(record: RenameSettingsRecord, settings: RenameSettings) -> None:
    record.enabled = settings.enabled
    record.filename_pattern = settings.filename_pattern
    record.max_title_length = settings.max_title_length
    record.remove_www = settings.remove_www
    record.domain_blacklist = list(settings.domain_blacklist)
    record.schema_version = settings.schema_version
    record.updated_at = datetime.utcnow()


class RenameSettingsRepository:
    """Load and persist rename settings per profile."""

    def __init__(self, session: Session, profile_id: str = DEFAULT_PROFILE_ID):
        self.session = session
        self.profile_id = profile_id

    def get_or_create(self) -> RenameSettingsRecord:
        record = self.session.get(RenameSettingsRecord, self.profile_id)
        if record is None:
            now = datetime.utcnow()
            record = RenameSettingsRecord(profile_id=self.profile_id, created_at=now)
            _apply_settings(record, DEFAULT_RENAME_SETTINGS)
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)
        return record

    def load(self) -> RenameSettings:
        """Return stored settings, backfilling unset columns with defaults."""

        record = self.session.get(RenameSettingsRecord, self.profile_id)
        if record is None:
            return DEFAULT_RENAME_SETTINGS
        return RenameSettings.from_mapping(_record_to_mapping(record))

    def save(self, settings: RenameSettings) -> RenameSettingsRecord:
        record = self.get_or_create()
        _apply_settings(record, settings)
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def reset(self) -> RenameSettings:
        self.save(DEFAULT_RENAME_SETTINGS)
        return DEFAULT_RENAME_SETTINGS


class RenameDecisionRepository:
    """Repository for the rename decision log."""

    def __init__(self, session: Session):
        self.session = session

    def add_decision(
        self,
        *,
        download_id: int,
        state: str | Enum,
        filename: Optional[str] = None,
        reason: Optional[str] = None,
        attempts: int = 0,
        commit: bool = True,
    ) -> RenameDecision:
        decision = RenameDecision(
            download_id=download_id,
            state=_enum_value(state),
            filename=filename,
            reason=reason,
            attempts=attempts,
            created_at=datetime.utcnow(),
        )
        self.session.add(decision)
        if commit:
            self.session.commit()
            self.session.refresh(decision)
        else:
            self.session.flush()
        return decision

    def list_recent(self, limit: int = 20) -> Sequence[RenameDecision]:
        stmt = (
            select(RenameDecision)
            .order_by(RenameDecision.created_at.desc(), RenameDecision.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def get_latest_for_download(self, download_id: int) -> Optional[RenameDecision]:
        stmt = (
            select(RenameDecision)
            .where(RenameDecision.download_id == download_id)
            .order_by(RenameDecision.created_at.desc(), RenameDecision.id.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()
