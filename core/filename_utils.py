from __future__ import annotations

import re
from typing import Optional

MAX_FILENAME_LENGTH = 250

_TITLE_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9._-]+")
_UNDERSCORE_RUN_RE = re.compile(r"_+")
_EXTENSION_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9]+")
_FORBIDDEN_PATH_CHARS_RE = re.compile(r"[<>:\"/\\|?*]")
_TRAILING_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_ALPHANUMERIC_RE = re.compile(r"[A-Za-z0-9]")


def sanitize_title(title: Optional[str], max_length: Optional[int] = None) -> str:
    """Reduce a page title to ``[A-Za-z0-9._-]`` joined by single underscores."""

    trimmed = (title or "").strip()
    replaced = _TITLE_DISALLOWED_RE.sub("_", trimmed)
    collapsed = _UNDERSCORE_RUN_RE.sub("_", replaced).strip("_")
    if not max_length or max_length <= 0:
        return collapsed
    # Cutting can expose an underscore at the new edge.
    return collapsed[:max_length].strip("_")


def sanitize_extension(ext: Optional[str]) -> str:
    return _EXTENSION_DISALLOWED_RE.sub("", ext or "")


def sanitize_domain(hostname: Optional[str], remove_www: bool) -> str:
    if not hostname:
        return ""
    normalized = hostname.lower()
    if remove_www and normalized.startswith("www."):
        return normalized[4:]
    return normalized


def extract_basename(path: Optional[str]) -> str:
    """Return the part after the last ``/``."""

    if not path:
        return ""
    return path.rsplit("/", 1)[-1]


def extract_extension_from_name(name: Optional[str]) -> str:
    """Return the suffix after the last dot of the basename.

    Dotfiles such as ``.bashrc`` and names ending in a bare dot have no
    extension.
    """

    base = extract_basename(name)
    dot_index = base.rfind(".")
    if dot_index <= 0 or dot_index == len(base) - 1:
        return ""
    return base[dot_index + 1 :]


def strip_extension(name: Optional[str]) -> str:
    return _TRAILING_EXTENSION_RE.sub("", name or "")


def sanitize_filename_part(value: Optional[str]) -> str:
    return _FORBIDDEN_PATH_CHARS_RE.sub("_", value or "")


def sanitize_filename(name: Optional[str]) -> str:
    """Make a relative path safe for the download directory.

    Each ``/``-separated segment is cleaned on its own so folder routing in
    the template survives; the joined result is capped at
    ``MAX_FILENAME_LENGTH`` characters.
    """

    parts = (name or "").split("/")
    sanitized = "/".join(sanitize_filename_part(part) for part in parts)
    return sanitized[:MAX_FILENAME_LENGTH]


def has_alphanumeric(value: Optional[str]) -> bool:
    return bool(value) and _ALPHANUMERIC_RE.search(value) is not None
