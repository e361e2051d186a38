"""Render filename templates into safe, non-empty relative paths.

Templates use ``{domain}``, ``{title}``, ``{date}``, ``{year}``, ``{ext}`` and
``{original_name}``. A ``/`` in the template routes the download into a
sub-folder. Unknown placeholders are left as literal text.
"""
from __future__ import annotations

import re
from typing import Optional

from config.rename_settings import DEFAULT_RENAME_SETTINGS, RenameSettings
from core.filename_utils import has_alphanumeric, sanitize_filename
from core.tokens import RenderContext, TokenSet, extract_tokens

EXT_PLACEHOLDER = "{ext}"
_TRAILING_DOTS_RE = re.compile(r"\.+$")
_PLACEHOLDER_RE = re.compile(r"\{(domain|title|date|year|ext|original_name)\}")


def apply_template(template: Optional[str], tokens: TokenSet) -> str:
    result = template or ""
    if not tokens.ext:
        result = result.replace("." + EXT_PLACEHOLDER, "")
    values = tokens.as_placeholders()
    # One pass, so braces inside a token value are never expanded again.
    return _PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], result)


def fallback_filename(tokens: TokenSet) -> str:
    name = f"{tokens.domain}_{tokens.title}_{tokens.date}"
    if tokens.ext:
        name = f"{name}.{tokens.ext}"
    return sanitize_filename(name)


def render_tokens(template: Optional[str], tokens: TokenSet) -> str:
    """Render ``tokens`` through ``template``, falling back when unusable."""

    rendered = sanitize_filename(apply_template(template, tokens))
    if not has_alphanumeric(rendered):
        rendered = fallback_filename(tokens)
    if not tokens.ext:
        rendered = _TRAILING_DOTS_RE.sub("", rendered)
    return rendered


def build_filename(
    context: RenderContext, settings: Optional[RenameSettings] = None
) -> str:
    """Build the target filename for ``context`` under ``settings``."""

    active = settings or DEFAULT_RENAME_SETTINGS
    tokens = extract_tokens(context, active)
    return render_tokens(active.filename_pattern, tokens)
