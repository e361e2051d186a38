"""User-facing rename settings and their versioned schema.

Two shapes of these settings exist in the wild: the current one with
``{token}`` placeholders and a domain blacklist, and an older camel-case one
with ``%token%`` placeholders. Both load into :class:`RenameSettings`;
older payloads are migrated on the way in.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Iterable, Mapping

CURRENT_SCHEMA_VERSION = 2
DEFAULT_FILENAME_PATTERN = "{domain}_{title}_{date}.{ext}"
DEFAULT_MAX_TITLE_LENGTH = 80

TEMPLATE_TOKENS = ("domain", "title", "date", "year", "ext", "original_name")

_LEGACY_KEYS = {
    "template": "filename_pattern",
    "filenamePattern": "filename_pattern",
    "maxTitleLength": "max_title_length",
    "removeWww": "remove_www",
    "domainBlacklist": "domain_blacklist",
    "schemaVersion": "schema_version",
}
_LEGACY_TOKEN_RE = re.compile(r"%(" + "|".join(TEMPLATE_TOKENS) + r")%")


class SettingsValidationError(ValueError):
    """Raised when a user-supplied settings value cannot be used."""


@dataclass(frozen=True)
class RenameSettings:
    """Snapshot of the user's rename preferences."""

    enabled: bool = True
    filename_pattern: str = DEFAULT_FILENAME_PATTERN
    max_title_length: int = DEFAULT_MAX_TITLE_LENGTH
    remove_www: bool = True
    domain_blacklist: tuple[str, ...] = field(default_factory=tuple)
    schema_version: int = CURRENT_SCHEMA_VERSION

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any] | None, *, strict: bool = False
    ) -> "RenameSettings":
        """Build settings from a stored or user-supplied mapping.

        Missing fields are backfilled from the defaults and unknown keys are
        ignored. With ``strict`` a value of the wrong shape raises
        :class:`SettingsValidationError`; otherwise the default is used.
        """

        values = _normalize_keys(data or {})
        defaults = cls()

        version = _coerce_int(
            values.get("schema_version"), 1, strict=False, name="schema_version"
        )
        pattern = values.get("filename_pattern")
        if isinstance(pattern, str) and pattern.strip():
            pattern = pattern.strip()
            if version < CURRENT_SCHEMA_VERSION:
                pattern = migrate_legacy_pattern(pattern)
        elif pattern is None or not strict:
            pattern = defaults.filename_pattern
        else:
            raise SettingsValidationError("filename_pattern must be a non-empty string")

        return cls(
            enabled=_coerce_bool(
                values.get("enabled"), defaults.enabled, strict=strict, name="enabled"
            ),
            filename_pattern=pattern,
            max_title_length=_coerce_int(
                values.get("max_title_length"),
                defaults.max_title_length,
                strict=strict,
                name="max_title_length",
            ),
            remove_www=_coerce_bool(
                values.get("remove_www"),
                defaults.remove_www,
                strict=strict,
                name="remove_www",
            ),
            domain_blacklist=normalize_blacklist(values.get("domain_blacklist")),
            schema_version=CURRENT_SCHEMA_VERSION,
        )

    def to_mapping(self) -> dict[str, Any]:
        data = asdict(self)
        data["domain_blacklist"] = list(self.domain_blacklist)
        return data

    def merged(self, values: Mapping[str, Any]) -> "RenameSettings":
        """Return a copy with ``values`` applied on top, validating strictly."""

        incoming = _normalize_keys(values)
        data = self.to_mapping()
        data.update(incoming)
        if "schema_version" not in incoming and any(key in _LEGACY_KEYS for key in values):
            data["schema_version"] = 1
        return RenameSettings.from_mapping(data, strict=True)

    def with_pattern(self, pattern: str) -> "RenameSettings":
        return replace(self, filename_pattern=pattern)

    def is_blacklisted(self, *domains: str) -> bool:
        blocked = set(self.domain_blacklist)
        return any(domain and domain.lower() in blocked for domain in domains)


DEFAULT_RENAME_SETTINGS = RenameSettings()


def migrate_legacy_pattern(pattern: str) -> str:
    """Rewrite ``%token%`` placeholders into ``{token}`` placeholders."""

    return _LEGACY_TOKEN_RE.sub(lambda match: "{" + match.group(1) + "}", pattern)


def normalize_blacklist(value: Any) -> tuple[str, ...]:
    """Lower-case, trim and de-duplicate blacklist entries, keeping order."""

    if value is None:
        return ()
    if isinstance(value, str):
        entries: Iterable[Any] = re.split(r"[,\s]+", value)
    elif isinstance(value, Iterable):
        entries = value
    else:
        return ()

    seen: list[str] = []
    for entry in entries:
        domain = str(entry).strip().lower()
        if domain and domain not in seen:
            seen.append(domain)
    return tuple(seen)


def _normalize_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        target = _LEGACY_KEYS.get(key, key)
        # A current key always wins over its legacy spelling.
        if target in normalized and key != target:
            continue
        normalized[target] = value
    return normalized


def _coerce_bool(value: Any, default: bool, *, strict: bool, name: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    if isinstance(value, int):
        return bool(value)
    if strict:
        raise SettingsValidationError(f"{name} must be a boolean, got {value!r}")
    return default


def _coerce_int(value: Any, default: int, *, strict: bool, name: str) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        result = None
    else:
        try:
            result = int(value)
        except (TypeError, ValueError):
            result = None
    if result is None or result < 0:
        if strict:
            raise SettingsValidationError(
                f"{name} must be a non-negative integer, got {value!r}"
            )
        return default
    return result
