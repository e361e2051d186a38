"""Utilities for extracting hosts, paths and tab matches from URLs.

Every helper here takes untrusted input from the browser and degrades to an
empty value instead of raising.
"""
from __future__ import annotations

from typing import Optional, Sequence, TypeVar
from urllib.parse import SplitResult, urlsplit

from core.filename_utils import extract_extension_from_name

TabT = TypeVar("TabT")


def parse_absolute_url(url: Optional[str]) -> Optional[SplitResult]:
    """Split ``url`` when it is absolute, returning ``None`` otherwise."""

    if not url:
        return None
    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return None
    if not parsed.scheme:
        return None
    return parsed


def extract_hostname(url: Optional[str]) -> str:
    """Return the host portion of an absolute URL, or an empty string."""

    parsed = parse_absolute_url(url)
    if parsed is None:
        return ""
    try:
        return parsed.hostname or ""
    except ValueError:
        return ""


def extract_extension_from_url(url: Optional[str]) -> str:
    """Return the extension of the last path segment of ``url``."""

    parsed = parse_absolute_url(url)
    if parsed is None:
        return ""
    return extract_extension_from_name(parsed.path)


def build_referrer_pattern(referrer: Optional[str]) -> str:
    """Build a ``scheme://host/*`` match pattern for tab queries."""

    parsed = parse_absolute_url(referrer)
    if parsed is None:
        return ""
    host = parsed.netloc.rpartition("@")[2].lower()
    if not host:
        return ""
    return f"{parsed.scheme}://{host}/*"


def pick_tab_by_referrer(
    referrer: Optional[str],
    tabs: Optional[Sequence[TabT]],
    *,
    fallback_to_first: bool = True,
) -> Optional[TabT]:
    """Pick the tab a download most likely came from.

    A tab whose URL equals the referrer wins. Otherwise, when
    ``fallback_to_first`` is set, the first tab with any URL is returned;
    with several tabs open on the same origin this can pick the wrong one.
    """

    if not referrer or not tabs:
        return None

    for tab in tabs:
        if getattr(tab, "url", None) == referrer:
            return tab

    if not fallback_to_first:
        return None

    for tab in tabs:
        if getattr(tab, "url", None):
            return tab
    return None
