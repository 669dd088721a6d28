"""Application configuration with JSON file persistence."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Config file location (can be overridden by CONFIG_DIR env var)
CONFIG_DIR = Path(os.getenv("CONFIG_DIR", str(Path.home() / ".config" / "tvshows")))
SETTINGS_FILE = CONFIG_DIR / "settings.json"
STATE_FILE = CONFIG_DIR / "state.json"


class Settings(BaseSettings):
    # Media server candidates, tried in order (host:port)
    hosts: List[str] = ["localhost:3000"]
    request_timeout: float = 30.0

    # Playback settings
    seek_step: float = 15.0
    autoplay_parts: bool = True  # Multi-part episodes start at part 1 instead of showing the list

    # Player shell
    server_port: int = 8754

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


_settings: Settings | None = None


def load_settings_from_file() -> dict[str, Any]:
    """Load settings from JSON file if it exists."""
    if SETTINGS_FILE.exists():
        try:
            with open(SETTINGS_FILE) as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            pass
    return {}


def save_settings_to_file(settings: dict[str, Any]) -> bool:
    """Save settings to JSON file."""
    try:
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        with open(SETTINGS_FILE, "w") as f:
            json.dump(settings, f, indent=2)
        return True
    except IOError:
        return False


def get_settings() -> Settings:
    """Get settings, merging env vars with JSON file (JSON takes precedence)."""
    global _settings
    if _settings is None:
        _settings = Settings()

        file_settings = load_settings_from_file()
        if file_settings:
            for key, value in file_settings.items():
                if hasattr(_settings, key):
                    setattr(_settings, key, value)

    return _settings


def update_settings(updates: dict[str, Any]) -> Settings:
    """Update settings and persist to JSON file."""
    settings = get_settings()
    file_settings = load_settings_from_file()

    for key, value in updates.items():
        if hasattr(settings, key):
            setattr(settings, key, value)
            file_settings[key] = value

    save_settings_to_file(file_settings)
    return settings


def get_editable_settings() -> dict[str, Any]:
    """Get settings that can be edited via the UI."""
    settings = get_settings()
    return {
        "hosts": settings.hosts,
        "seek_step": settings.seek_step,
        "autoplay_parts": settings.autoplay_parts,
    }


class StateStore:
    """Small JSON key-value file for state that must survive restarts.

    Reads are lazy and cached; every write rewrites the whole file.
    Write failures are reported by the return value, never raised.
    """

    def __init__(self, path: Path | str = STATE_FILE):
        self.path = Path(path)
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            self._data = {}
            if self.path.exists():
                try:
                    with open(self.path) as f:
                        loaded = json.load(f)
                    if isinstance(loaded, dict):
                        self._data.update(loaded)
                except (json.JSONDecodeError, IOError) as e:
                    logger.warning(f"Ignoring unreadable state file {self.path}: {e}")
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> bool:
        data = self._load()
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(data, f, indent=2)
            return True
        except (IOError, TypeError) as e:
            logger.warning(f"Failed to persist {key} to {self.path}: {e}")
            return False
