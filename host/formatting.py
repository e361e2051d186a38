"""Plain-text formatting of settings and rename history for the command line."""
from __future__ import annotations

from typing import Iterable

from config.rename_settings import RenameSettings
from core.state_machine import DownloadState
from storage.models import RenameDecision

STATE_LABELS = {
    DownloadState.RENAMED.value: "renamed",
    DownloadState.SKIPPED.value: "kept",
    DownloadState.ABANDONED.value: "abandoned",
    DownloadState.PENDING.value: "pending",
}


def format_settings(settings: RenameSettings) -> str:
    blacklist = ", ".join(settings.domain_blacklist) or "-"
    max_length = settings.max_title_length or "unlimited"
    lines = [
        f"enabled:          {'yes' if settings.enabled else 'no'}",
        f"filename_pattern: {settings.filename_pattern}",
        f"max_title_length: {max_length}",
        f"remove_www:       {'yes' if settings.remove_www else 'no'}",
        f"domain_blacklist: {blacklist}",
    ]
    return "\n".join(lines)


def format_decision(decision: RenameDecision) -> str:
    """Render one decision as a single history line."""

    label = STATE_LABELS.get(decision.state, decision.state.lower())
    timestamp = decision.created_at.strftime("%Y-%m-%d %H:%M:%S")
    line = f"{timestamp} #{decision.download_id} {label}"
    if decision.filename:
        line += f" -> {decision.filename}"
    if decision.reason:
        line += f" ({decision.reason})"
    if decision.attempts:
        line += f" after {decision.attempts} retries"
    return line


def format_history(decisions: Iterable[RenameDecision]) -> str:
    lines = [format_decision(decision) for decision in decisions]
    return "\n".join(lines) if lines else "No rename decisions recorded yet."
