"""Options-page operations: preview, save and reset of rename settings."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from config.rename_settings import RenameSettings
from core.template import build_filename
from core.tokens import RenderContext
from download.base import SettingsStore

SAMPLE_DATE = datetime(2024, 5, 2, 12, 0, 0)
SAMPLE_TITLE = "Sample Page"
SAMPLE_EXTENSION = "pdf"


def sample_context(settings: RenameSettings) -> RenderContext:
    return RenderContext(
        domain="example.com" if settings.remove_www else "www.example.com",
        title=SAMPLE_TITLE,
        ext=SAMPLE_EXTENSION,
        date=SAMPLE_DATE,
        original_name="Sample Page.pdf",
    )


def preview_filename(settings: RenameSettings) -> str:
    """Render the sample download through ``settings``."""

    return build_filename(sample_context(settings), settings)


async def save_settings(store: SettingsStore, values: Mapping[str, Any]) -> RenameSettings:
    """Apply ``values`` over the stored settings and persist the result.

    Raises ``SettingsValidationError`` without writing anything when a value
    is unusable.
    """

    current = await store.read()
    updated = current.merged(values)
    await store.write(updated)
    return updated


async def reset_settings(store: SettingsStore) -> RenameSettings:
    return await store.reset()
