"""Map download MIME types to filename extensions."""
from __future__ import annotations

from typing import Optional

from core.filename_utils import sanitize_extension

MIME_EXTENSION_MAP: dict[str, str] = {
    "image/avif": "avif",
    "image/bmp": "bmp",
    "image/gif": "gif",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/svg+xml": "svg",
    "image/tiff": "tif",
    "image/webp": "webp",
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
    "application/pdf": "pdf",
    "application/zip": "zip",
    "application/x-zip-compressed": "zip",
    "application/gzip": "gz",
    "application/x-gzip": "gz",
    "application/x-7z-compressed": "7z",
    "application/x-rar-compressed": "rar",
    "application/vnd.rar": "rar",
    "application/x-tar": "tar",
    "application/json": "json",
    "application/epub+zip": "epub",
    "application/msword": "doc",
    "application/vnd.ms-excel": "xls",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "text/plain": "txt",
    "text/csv": "csv",
    "text/html": "html",
}

# Carry no information about the payload; the filename decides.
GENERIC_MIME_TYPES = frozenset(
    {
        "application/octet-stream",
        "binary/octet-stream",
        "application/download",
        "application/force-download",
        "application/x-download",
        "application/unknown",
    }
)

# Spellings that name the same format and must not count as a conflict.
EXTENSION_ALIASES: dict[str, str] = {
    "jpeg": "jpg",
    "jpe": "jpg",
    "htm": "html",
    "tiff": "tif",
    "mpeg": "mpg",
}


def normalize_mime(mime: Optional[str]) -> str:
    """Lower-case a MIME type and drop its parameters."""

    if not mime:
        return ""
    return str(mime).split(";", 1)[0].strip().lower()


def _extension_from_subtype(mime: str) -> str:
    parts = mime.split("/")
    if len(parts) != 2:
        return ""
    subtype = parts[1].strip()
    if not subtype:
        return ""

    without_suffix = subtype.split("+", 1)[0]
    vendor_part = without_suffix.rsplit(".", 1)[-1]
    is_experimental = vendor_part.startswith("x-")
    without_prefix = vendor_part[2:] if is_experimental else vendor_part
    dashed_parts = without_prefix.split("-")

    if is_experimental and len(dashed_parts) > 1:
        # x-7z-compressed, x-rar-compressed: the format comes first.
        return sanitize_extension(dashed_parts[0])
    if len(dashed_parts) > 1:
        return sanitize_extension(dashed_parts[-1])
    return sanitize_extension(without_prefix)


def extension_from_mime(mime: Optional[str]) -> str:
    """Return the extension implied by ``mime``, or an empty string."""

    normalized = normalize_mime(mime)
    if not normalized or normalized in GENERIC_MIME_TYPES:
        return ""
    mapped = sanitize_extension(MIME_EXTENSION_MAP.get(normalized, ""))
    if mapped:
        return mapped
    return _extension_from_subtype(normalized)


def canonical_extension(ext: str) -> str:
    lowered = ext.lower()
    return EXTENSION_ALIASES.get(lowered, lowered)


def extensions_agree(first: str, second: str) -> bool:
    # "photo.jpeg" served as image/jpeg keeps "jpeg": an alias spelling is not
    # a disagreement, so the MIME extension does not replace it.
    return canonical_extension(first) == canonical_extension(second)
