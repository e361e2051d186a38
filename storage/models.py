from __future__ import annotations

"""ORM models for persisted settings and rename decisions."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.db import Base

DEFAULT_PROFILE_ID = "default"


class RenameSettingsRecord(Base):
    """Stored rename preferences for one profile."""

    __tablename__ = "rename_settings"

    profile_id: Mapped[str] = mapped_column(String, primary_key=True)
    enabled: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    filename_pattern: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    max_title_length: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    remove_www: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    domain_blacklist: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class RenameDecision(Base):
    """Outcome recorded for a download once the pipeline has decided."""

    __tablename__ = "rename_decisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    download_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    state: Mapped[str] = mapped_column(String, nullable=False)
    filename: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
