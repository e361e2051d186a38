import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import Session, sessionmaker

from config.rename_settings import DEFAULT_RENAME_SETTINGS, RenameSettings
from storage.db import database_url, init_db
from storage.models import RenameDecision, RenameSettingsRecord
from storage.repositories import RenameDecisionRepository, RenameSettingsRepository
from storage.stores import SqlDecisionLog, SqlSettingsStore


@pytest.fixture()
def session_factory():
    engine = create_engine("sqlite:///:memory:", future=True)
    init_db(engine)
    return sessionmaker(bind=engine, class_=Session, autoflush=False)


def test_load_returns_defaults_when_nothing_saved(session_factory):
    session = session_factory()
    try:
        assert RenameSettingsRepository(session).load() == DEFAULT_RENAME_SETTINGS
    finally:
        session.close()


def test_save_and_load_round_trip(session_factory):
    settings = RenameSettings(
        enabled=False,
        filename_pattern="{domain}/{title}.{ext}",
        max_title_length=32,
        remove_www=False,
        domain_blacklist=("example.com", "files.example.org"),
    )
    session = session_factory()
    try:
        RenameSettingsRepository(session).save(settings)
    finally:
        session.close()

    check_session = session_factory()
    try:
        assert RenameSettingsRepository(check_session).load() == settings
    finally:
        check_session.close()


def test_legacy_row_is_backfilled_and_migrated(session_factory):
    session = session_factory()
    try:
        session.add(
            RenameSettingsRecord(
                profile_id="default",
                filename_pattern="%domain%_%title%_%date%",
                remove_www=False,
                schema_version=1,
                created_at=datetime(2024, 1, 1),
                updated_at=datetime(2024, 1, 1),
            )
        )
        session.commit()

        loaded = RenameSettingsRepository(session).load()
    finally:
        session.close()

    assert loaded.filename_pattern == "{domain}_{title}_{date}"
    assert loaded.remove_www is False
    assert loaded.enabled is True
    assert loaded.max_title_length == 80
    assert loaded.domain_blacklist == ()


def test_profiles_are_independent(session_factory):
    session = session_factory()
    try:
        RenameSettingsRepository(session, "work").save(RenameSettings(max_title_length=10))
        assert RenameSettingsRepository(session, "work").load().max_title_length == 10
        assert RenameSettingsRepository(session).load().max_title_length == 80
    finally:
        session.close()


def test_reset_restores_defaults(session_factory):
    session = session_factory()
    try:
        repo = RenameSettingsRepository(session)
        repo.save(RenameSettings(enabled=False))
        assert repo.reset() == DEFAULT_RENAME_SETTINGS
        assert repo.load() == DEFAULT_RENAME_SETTINGS
    finally:
        session.close()


def test_decisions_are_listed_newest_first(session_factory):
    session = session_factory()
    try:
        repo = RenameDecisionRepository(session)
        first = repo.add_decision(download_id=1, state="RENAMED", filename="a.pdf")
        second = repo.add_decision(download_id=2, state="SKIPPED", reason="disabled")
        third = repo.add_decision(download_id=1, state="ABANDONED", reason="retries_exhausted", attempts=5)
        first.created_at = datetime.utcnow() - timedelta(minutes=5)
        session.commit()

        recent = repo.list_recent(limit=2)
        latest = repo.get_latest_for_download(1)

        assert [decision.id for decision in recent] == [third.id, second.id]
        assert latest.id == third.id
        assert latest.attempts == 5
    finally:
        session.close()


def test_sql_settings_store(session_factory):
    store = SqlSettingsStore(session_factory)

    async def _scenario():
        assert await store.read() == DEFAULT_RENAME_SETTINGS
        await store.write(RenameSettings(max_title_length=12))
        saved = await store.read()
        reset = await store.reset()
        return saved, reset, await store.read()

    saved, reset, after_reset = asyncio.run(_scenario())

    assert saved.max_title_length == 12
    assert reset == after_reset == DEFAULT_RENAME_SETTINGS


def test_sql_decision_log_persists_entries(session_factory):
    SqlDecisionLog(session_factory).record(
        download_id=42,
        state="RENAMED",
        filename="example.com_Page_2024-05-02.pdf",
        reason=None,
        attempts=1,
    )

    session = session_factory()
    try:
        stored = session.query(RenameDecision).one()
    finally:
        session.close()

    assert stored.download_id == 42
    assert stored.filename == "example.com_Page_2024-05-02.pdf"
    assert stored.attempts == 1


def test_init_db_adds_columns_missing_from_older_databases():
    engine = create_engine("sqlite:///:memory:", future=True)
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE rename_settings ("
                "profile_id VARCHAR PRIMARY KEY, enabled BOOLEAN, filename_pattern VARCHAR, "
                "max_title_length INTEGER, remove_www BOOLEAN, "
                "created_at DATETIME NOT NULL, updated_at DATETIME NOT NULL)"
            )
        )
        conn.execute(
            text(
                "INSERT INTO rename_settings VALUES "
                "('default', 1, '%title%.%ext%', 40, 1, '2024-01-01 00:00:00', '2024-01-01 00:00:00')"
            )
        )

    init_db(engine)
    init_db(engine)

    columns = {column["name"] for column in inspect(engine).get_columns("rename_settings")}
    assert {"domain_blacklist", "schema_version"} <= columns

    session = sessionmaker(bind=engine, class_=Session, autoflush=False)()
    try:
        loaded = RenameSettingsRepository(session).load()
    finally:
        session.close()
    assert loaded.filename_pattern == "{title}.{ext}"
    assert loaded.max_title_length == 40


def test_database_url_for_memory_and_files():
    assert database_url(":memory:") == "sqlite:///:memory:"
    assert database_url("/tmp/renamer.sqlite3") == "sqlite:////tmp/renamer.sqlite3"
