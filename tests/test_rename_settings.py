import pytest

from config.rename_settings import (
    DEFAULT_RENAME_SETTINGS,
    RenameSettings,
    SettingsValidationError,
    migrate_legacy_pattern,
    normalize_blacklist,
)


def test_defaults_fill_every_field():
    settings = RenameSettings.from_mapping({})

    assert settings == DEFAULT_RENAME_SETTINGS
    assert settings.enabled is True
    assert settings.filename_pattern == "{domain}_{title}_{date}.{ext}"
    assert settings.max_title_length == 80
    assert settings.remove_www is True
    assert settings.domain_blacklist == ()
    assert settings.schema_version == 2


def test_legacy_percent_shape_is_migrated():
    settings = RenameSettings.from_mapping(
        {
            "enabled": False,
            "filenamePattern": "%domain%_%title%_%date%.%ext%",
            "maxTitleLength": 40,
            "removeWww": False,
            "domainBlacklist": ["Example.com", " example.com ", "files.example.org"],
        }
    )

    assert settings.enabled is False
    assert settings.filename_pattern == "{domain}_{title}_{date}.{ext}"
    assert settings.max_title_length == 40
    assert settings.remove_www is False
    assert settings.domain_blacklist == ("example.com", "files.example.org")


def test_legacy_template_key_and_ignored_fields():
    settings = RenameSettings.from_mapping(
        {"template": "{title}.{ext}", "folderRoutingEnabled": True, "folderRules": []}
    )
    assert settings.filename_pattern == "{title}.{ext}"


def test_current_schema_keeps_percent_text_literal():
    settings = RenameSettings.from_mapping({"filename_pattern": "%title%", "schema_version": 2})
    assert settings.filename_pattern == "%title%"


def test_lenient_loading_backfills_bad_values():
    settings = RenameSettings.from_mapping(
        {"max_title_length": -3, "enabled": "maybe", "filename_pattern": "   "}
    )

    assert settings.max_title_length == 80
    assert settings.enabled is True
    assert settings.filename_pattern == DEFAULT_RENAME_SETTINGS.filename_pattern


def test_merged_coerces_user_strings():
    settings = DEFAULT_RENAME_SETTINGS.merged(
        {"max_title_length": "30", "remove_www": "no", "domain_blacklist": "a.com, b.com\nc.com"}
    )

    assert settings.max_title_length == 30
    assert settings.remove_www is False
    assert settings.domain_blacklist == ("a.com", "b.com", "c.com")


@pytest.mark.parametrize(
    "values",
    [
        {"max_title_length": "-1"},
        {"max_title_length": "ten"},
        {"enabled": "sometimes"},
        {"filename_pattern": ""},
    ],
)
def test_merged_rejects_invalid_values(values):
    with pytest.raises(SettingsValidationError):
        DEFAULT_RENAME_SETTINGS.merged(values)


def test_merged_migrates_legacy_keys():
    settings = DEFAULT_RENAME_SETTINGS.merged({"filenamePattern": "%original_name%.%ext%"})
    assert settings.filename_pattern == "{original_name}.{ext}"


def test_to_mapping_round_trips():
    settings = RenameSettings(
        enabled=False,
        filename_pattern="{year}/{title}.{ext}",
        max_title_length=0,
        remove_www=False,
        domain_blacklist=("example.com",),
    )
    assert RenameSettings.from_mapping(settings.to_mapping()) == settings


def test_is_blacklisted_is_case_insensitive():
    settings = RenameSettings(domain_blacklist=normalize_blacklist(["Example.COM"]))

    assert settings.is_blacklisted("www.example.com", "EXAMPLE.com")
    assert not settings.is_blacklisted("sub.example.com")
    assert not settings.is_blacklisted("")


def test_migrate_legacy_pattern_only_touches_known_tokens():
    assert migrate_legacy_pattern("%year%/%title%_%foo%") == "{year}/{title}_%foo%"
