"""SQLite engine, sessions and schema upkeep for the renamer database.

The native host and the command line open the same database file, so the
engine waits on a locked database instead of failing right away.
"""
from __future__ import annotations

import logging

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config.settings import Settings
from core.logging_utils import get_logger, log_with_context

logger = get_logger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 15

# Columns added after the first release, per table.
COLUMN_MIGRATIONS: dict[str, dict[str, str]] = {
    "rename_settings": {
        "domain_blacklist": "JSON",
        "schema_version": "INTEGER NOT NULL DEFAULT 1",
    },
    "rename_decisions": {
        "reason": "TEXT",
        "attempts": "INTEGER NOT NULL DEFAULT 0",
    },
}


class Base(DeclarativeBase):
    """Base class for all ORM models."""


def database_url(db_path: str) -> str:
    if db_path in ("", ":memory:"):
        return "sqlite:///:memory:"
    return f"sqlite:///{db_path}"


def get_engine(settings: Settings) -> Engine:
    return create_engine(
        database_url(settings.db_path),
        echo=bool(settings.debug_mode),
        connect_args={"timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
        future=True,
    )


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, autoflush=False)


def init_db(engine: Engine) -> None:
    """Create missing tables, then add columns that older databases lack."""

    # Register the mapped classes on Base.metadata before creating tables.
    import storage.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        for table_name, columns in COLUMN_MIGRATIONS.items():
            _add_missing_columns(conn, table_name, columns)


def _add_missing_columns(conn: Connection, table_name: str, columns: dict[str, str]) -> list[str]:
    existing = {column["name"] for column in inspect(conn).get_columns(table_name)}
    added = []
    for column_name, column_def in columns.items():
        if column_name in existing:
            continue
        conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {column_def}"))
        added.append(column_name)
        log_with_context(
            logger,
            logging.INFO,
            "Added missing column",
            table=table_name,
            column=column_name,
            stage="STORAGE",
        )
    return added
