"""Persistence layer for database models and repositories."""

from storage.db import Base, get_engine, get_session_factory, init_db
from storage.models import DEFAULT_PROFILE_ID, RenameDecision, RenameSettingsRecord
from storage.repositories import RenameDecisionRepository, RenameSettingsRepository
from storage.stores import SqlDecisionLog, SqlSettingsStore

__all__ = [
    "Base",
    "get_engine",
    "get_session_factory",
    "init_db",
    "DEFAULT_PROFILE_ID",
    "RenameDecision",
    "RenameSettingsRecord",
    "RenameDecisionRepository",
    "RenameSettingsRepository",
    "SqlDecisionLog",
    "SqlSettingsStore",
]
