from pathlib import Path

import pytest

from src.config.loader import load_settings


def _write(path: Path, text: str) -> str:
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_load_settings_from_yaml(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("PLAN_SYNC_DB_PATH", raising=False)
    settings_path = _write(
        tmp_path / "settings.yaml",
        "engine:\n  autosave_quiet_period_seconds: 1.5\n  edit_lock_ttl_seconds: 600\n"
        "storage:\n  db_path: custom.db\n",
    )
    settings = load_settings(settings_path)
    assert settings.engine.autosave_quiet_period_seconds == 1.5
    assert settings.engine.edit_lock_ttl_seconds == 600
    assert settings.storage.db_path == "custom.db"
    assert settings.sync.reconnect_max_attempts == 5


def test_env_overrides_yaml(tmp_path, monkeypatch) -> None:
    settings_path = _write(tmp_path / "settings.yaml", "storage:\n  db_path: custom.db\n")
    monkeypatch.setenv("PLAN_SYNC_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("PLAN_SYNC_LOG_LEVEL", "detailed")
    settings = load_settings(settings_path)
    assert settings.storage.db_path == str(tmp_path / "env.db")
    assert settings.logging.level == "detailed"


def test_missing_explicit_path_fails(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "nope.yaml"))


def test_non_mapping_root_fails(tmp_path) -> None:
    settings_path = _write(tmp_path / "settings.yaml", "- just\n- a list\n")
    with pytest.raises(ValueError):
        load_settings(settings_path)


def test_defaults_without_any_file(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PLAN_SYNC_DB_PATH", raising=False)
    settings = load_settings()
    assert settings.engine.autosave_quiet_period_seconds == 3.0
    assert settings.storage.db_path == "data/documents.db"
