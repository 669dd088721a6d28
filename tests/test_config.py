"""Tests for tvshows.config."""

import json

import pytest

from tvshows import config
from tvshows.config import Settings, StateStore


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(config, "SETTINGS_FILE", tmp_path / "settings.json")
    monkeypatch.setattr(config, "_settings", None)
    return tmp_path


def test_defaults():
    settings = Settings()
    assert settings.hosts == ["localhost:3000"]
    assert settings.seek_step == 15.0
    assert settings.autoplay_parts is True


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HOSTS", '["10.0.0.1:3000", "10.0.0.2:3000"]')
    monkeypatch.setenv("SEEK_STEP", "10")
    settings = Settings()
    assert settings.hosts == ["10.0.0.1:3000", "10.0.0.2:3000"]
    assert settings.seek_step == 10.0


def test_settings_file_takes_precedence(config_dir):
    (config_dir / "settings.json").write_text(json.dumps({"hosts": ["192.168.1.2:3000"]}))
    assert config.get_settings().hosts == ["192.168.1.2:3000"]


def test_unreadable_settings_file_is_ignored(config_dir):
    (config_dir / "settings.json").write_text("{not json")
    assert config.get_settings().hosts == ["localhost:3000"]


def test_update_settings_persists(config_dir):
    config.update_settings({"seek_step": 30.0, "unknown": 1})

    saved = json.loads((config_dir / "settings.json").read_text())
    assert saved == {"seek_step": 30.0}
    assert config.get_editable_settings()["seek_step"] == 30.0


def test_state_store_round_trip(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = StateStore(path)
    assert store.get("host_index") is None
    assert store.get("host_index", 0) == 0

    assert store.set("host_index", 2) is True
    assert StateStore(path).get("host_index") == 2


def test_state_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2")
    assert StateStore(path).get("host_index", 0) == 0


def test_state_store_write_failure_is_reported(tmp_path):
    # A directory where the file should be makes the write fail
    path = tmp_path / "state.json"
    path.mkdir()
    store = StateStore(path)
    assert store.set("host_index", 1) is False
