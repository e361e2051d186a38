"""Turn raw download and tab metadata into template tokens."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type
from typing import Optional
from urllib.parse import unquote

from config.rename_settings import RenameSettings
from core.filename_utils import (
    extract_basename,
    extract_extension_from_name,
    sanitize_domain,
    sanitize_extension,
    sanitize_filename_part,
    sanitize_title,
    strip_extension,
)
from core.mime_utils import extension_from_mime, extensions_agree
from core.url_utils import extract_extension_from_url, parse_absolute_url
from download.base import DownloadItem

UNKNOWN_DOMAIN = "unknown-domain"
DEFAULT_TITLE = "download"


@dataclass(frozen=True)
class RenderContext:
    """Raw, unsanitized inputs gathered for one download."""

    domain: str
    title: str
    ext: str
    date: date_type
    original_name: str = ""


@dataclass(frozen=True)
class TokenSet:
    """Sanitized values ready for substitution; only ``ext`` may be empty."""

    domain: str
    title: str
    date: str
    year: str
    ext: str
    original_name: str

    def as_placeholders(self) -> dict[str, str]:
        return {
            "domain": self.domain,
            "title": self.title,
            "date": self.date,
            "year": self.year,
            "original_name": self.original_name,
            "ext": self.ext,
        }


def format_date(value: date_type) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _url_path(url: str) -> str:
    parsed = parse_absolute_url(url)
    if parsed is None:
        return url
    return unquote(parsed.path)


def _title_from_name(name: str, max_length: Optional[int]) -> str:
    basename = extract_basename(name)
    if not basename:
        return ""
    return sanitize_title(strip_extension(basename), max_length)


def resolve_download_title(
    *,
    tab_title: Optional[str] = None,
    url: Optional[str] = None,
    filename: Optional[str] = None,
    max_length: Optional[int] = None,
) -> str:
    """Pick the best available title for a download.

    The page title of the originating tab is the strongest signal, then the
    last segment of the download URL, then the suggested filename. Sources
    that sanitize to nothing are skipped.
    """

    if tab_title:
        sanitized = sanitize_title(tab_title, max_length)
        if sanitized:
            return sanitized

    for candidate in (_url_path(url or ""), filename):
        if not candidate:
            continue
        sanitized = _title_from_name(candidate, max_length)
        if sanitized:
            return sanitized

    return DEFAULT_TITLE


def resolve_extension_from_download(item: DownloadItem) -> str:
    """Reconcile the extension hints carried by a download record.

    A MIME type that disagrees with the filename wins, since browsers keep
    stale extensions (a ``.jpg`` that is served as WebP). Otherwise the
    filename, final URL, original URL and MIME type are tried in order.
    """

    from_filename = sanitize_extension(extract_extension_from_name(item.filename))
    from_final_url = sanitize_extension(extract_extension_from_url(item.final_url))
    from_url = sanitize_extension(extract_extension_from_url(item.url))
    from_mime = extension_from_mime(item.mime)

    if from_mime and from_filename and not extensions_agree(from_mime, from_filename):
        return from_mime
    if from_mime and not (from_filename or from_final_url or from_url):
        return from_mime
    return from_filename or from_final_url or from_url or from_mime


def resolve_original_name(original_name: Optional[str], fallback: str) -> str:
    stripped = sanitize_filename_part(strip_extension(extract_basename(original_name)))
    return stripped or fallback


def extract_tokens(context: RenderContext, settings: RenameSettings) -> TokenSet:
    """Sanitize every field of ``context`` into a :class:`TokenSet`."""

    domain = sanitize_domain(context.domain, settings.remove_www) or UNKNOWN_DOMAIN
    title = sanitize_title(context.title, settings.max_title_length) or DEFAULT_TITLE
    return TokenSet(
        domain=domain,
        title=title,
        date=format_date(context.date),
        year=f"{context.date.year:04d}",
        ext=sanitize_extension(context.ext),
        original_name=resolve_original_name(context.original_name, title),
    )
