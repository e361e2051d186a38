import pytest

import main
from config.rename_settings import SettingsValidationError


@pytest.fixture()
def workspace(tmp_path, monkeypatch):
    monkeypatch.setenv("APP_BASE_DIR", str(tmp_path))
    monkeypatch.delenv("DB_PATH", raising=False)
    monkeypatch.delenv("LOG_DIR", raising=False)
    monkeypatch.setattr(main, "configure_logging", lambda settings: None)
    return tmp_path


def test_parse_assignments():
    assert main._parse_assignments(["enabled=no", "filename_pattern={title}={ext}"]) == {
        "enabled": "no",
        "filename_pattern": "{title}={ext}",
    }
    with pytest.raises(SettingsValidationError):
        main._parse_assignments(["enabled"])


def test_preview_command_prints_sample_name(workspace, capsys):
    assert main.main(["preview", "--pattern", "{title}.{ext}"]) == 0
    assert capsys.readouterr().out.strip() == "Sample_Page.pdf"


def test_settings_set_persists_between_runs(workspace, capsys):
    assert main.main(["settings", "set", "max_title_length=6", "remove_www=no"]) == 0
    capsys.readouterr()

    assert main.main(["settings", "show"]) == 0
    output = capsys.readouterr().out

    assert "max_title_length: 6" in output
    assert "preview:          www.example.com_Sample_2024-05-02.pdf" in output
    assert (workspace / "renamer.sqlite3").exists()


def test_invalid_setting_exits_with_error(workspace, capsys):
    assert main.main(["settings", "set", "max_title_length=lots"]) == 2
    assert "error:" in capsys.readouterr().err


def test_history_without_decisions(workspace, capsys):
    assert main.main(["history"]) == 0
    assert "No rename decisions recorded yet." in capsys.readouterr().out
