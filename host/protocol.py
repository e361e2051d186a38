"""JSON-lines protocol spoken between the browser extension and this host.

Each line is one JSON object with a ``type`` key. Browser payloads use the
extension API's camel-case keys (``finalUrl``, ``tabId``); snake-case
spellings are accepted too.
"""
from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from config.rename_settings import RenameSettings
from download.base import ConflictAction, DownloadItem, TabInfo


class ProtocolError(ValueError):
    """Raised when an incoming line is not a valid protocol message."""


def parse_message(line: str) -> dict[str, Any]:
    try:
        message = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(message, dict):
        raise ProtocolError("Message must be a JSON object")
    if not isinstance(message.get("type"), str):
        raise ProtocolError("Message is missing a string 'type'")
    return message


def encode_message(message: Mapping[str, Any]) -> str:
    return json.dumps(message, ensure_ascii=False, separators=(",", ":"))


def _pick(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def download_item_from_payload(payload: Any) -> DownloadItem:
    if not isinstance(payload, Mapping):
        raise ProtocolError("Download payload must be an object")
    download_id = _as_int(payload.get("id"))
    if download_id is None:
        raise ProtocolError("Download payload is missing an integer 'id'")
    return DownloadItem(
        id=download_id,
        filename=_as_text(_pick(payload, "filename")),
        url=_as_text(_pick(payload, "url")),
        final_url=_as_text(_pick(payload, "finalUrl", "final_url")),
        referrer=_as_text(_pick(payload, "referrer")),
        tab_id=_as_int(_pick(payload, "tabId", "tab_id")),
        mime=_as_text(_pick(payload, "mime")),
    )


def tab_from_payload(payload: Any) -> TabInfo:
    if not isinstance(payload, Mapping):
        raise ProtocolError("Tab payload must be an object")
    return TabInfo(
        id=_as_int(payload.get("id")),
        url=_as_text(payload.get("url")),
        title=_as_text(payload.get("title")),
    )


def suggest_message(
    download_id: int,
    filename: Optional[str],
    conflict_action: ConflictAction = ConflictAction.UNIQUIFY,
) -> dict[str, Any]:
    message: dict[str, Any] = {"type": "suggest", "id": download_id, "filename": filename}
    if filename is not None:
        message["conflictAction"] = conflict_action.value
    return message


def settings_message(
    settings: RenameSettings, *, preview: Optional[str] = None
) -> dict[str, Any]:
    message: dict[str, Any] = {"type": "settings", "settings": settings.to_mapping()}
    if preview is not None:
        message["preview"] = preview
    return message


def preview_message(filename: str) -> dict[str, Any]:
    return {"type": "preview", "filename": filename}


def error_message(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}
