from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from platformdirs import user_cache_dir, user_config_dir

APP_NAME = "LopicClient"
ENV_PREFIX = "LOPIC_CLIENT_"
ENV_FILE_NAME = "settings.env"

DEFAULT_SERVER_URL = "http://127.0.0.1:6060/"
DEFAULT_EVENTS_PATH = "/ws/upload"
DEFAULT_REFRESH_PATH = "api/auth/refresh"
DEFAULT_REFRESH_BUFFER_SECONDS = 5 * 60


def config_dir() -> Path:
    path = Path(user_config_dir(APP_NAME, roaming=True))
    path.mkdir(parents=True, exist_ok=True)
    return path


def cache_dir() -> Path:
    path = Path(user_cache_dir(APP_NAME))
    path.mkdir(parents=True, exist_ok=True)
    return path


def log_dir() -> Path:
    path = cache_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _env_file_path(explicit: Path | None) -> Path:
    if explicit is not None:
        return explicit
    return config_dir() / ENV_FILE_NAME


def _normalise_server_url(value: str) -> str:
    trimmed = value.strip()
    if not trimmed.endswith("/"):
        trimmed += "/"
    return trimmed


@dataclass(slots=True)
class Settings:
    """Connection details for a Lopic server.

    ``server_url`` always ends with a slash; the refresh path is appended to it
    verbatim while API paths are resolved against it by httpx.
    """

    server_url: str = DEFAULT_SERVER_URL
    events_path: str = DEFAULT_EVENTS_PATH
    refresh_path: str = DEFAULT_REFRESH_PATH
    refresh_buffer_seconds: float = DEFAULT_REFRESH_BUFFER_SECONDS
    user_agent: str = "LopicClient-Python"
    keyring_service: str = APP_NAME
    persist_credentials: bool = True

    def __post_init__(self) -> None:
        self.server_url = _normalise_server_url(self.server_url)

    @property
    def refresh_url(self) -> str:
        return f"{self.server_url}{self.refresh_path.lstrip('/')}"

    @property
    def is_secure(self) -> bool:
        return self.server_url.lower().startswith("https://")


class SettingsManager:
    """Load and persist client settings with environment overrides."""

    def __init__(self, env_file: Path | None = None) -> None:
        self._env_file = _env_file_path(env_file)

    @property
    def env_file(self) -> Path:
        return self._env_file

    def load(self) -> Settings:
        """Load settings from environment, falling back to persisted file."""
        load_dotenv(self._env_file, override=False)

        settings = Settings()
        server_url = self._get_env("SERVER_URL")
        if server_url:
            settings.server_url = _normalise_server_url(server_url)
        events_path = self._get_env("EVENTS_PATH")
        if events_path:
            settings.events_path = events_path
        refresh_path = self._get_env("REFRESH_PATH")
        if refresh_path:
            settings.refresh_path = refresh_path
        buffer = self._get_env("REFRESH_BUFFER_SECONDS")
        if buffer:
            try:
                settings.refresh_buffer_seconds = float(buffer)
            except ValueError as exc:
                raise ValueError(
                    f"{ENV_PREFIX}REFRESH_BUFFER_SECONDS must be numeric, got {buffer!r}"
                ) from exc
        keyring_service = self._get_env("KEYRING_SERVICE")
        if keyring_service:
            settings.keyring_service = keyring_service
        persist = self._get_env("PERSIST_CREDENTIALS")
        if persist is not None:
            settings.persist_credentials = persist.strip().lower() in {
                "1",
                "true",
                "yes",
                "on",
            }
        return settings

    def save(self, settings: Settings) -> None:
        """Persist core configuration fields to the managed env file."""
        self._env_file.parent.mkdir(parents=True, exist_ok=True)
        content = [
            f"{ENV_PREFIX}SERVER_URL={settings.server_url}",
            f"{ENV_PREFIX}EVENTS_PATH={settings.events_path}",
            f"{ENV_PREFIX}REFRESH_PATH={settings.refresh_path}",
            f"{ENV_PREFIX}REFRESH_BUFFER_SECONDS={settings.refresh_buffer_seconds:g}",
            f"{ENV_PREFIX}KEYRING_SERVICE={settings.keyring_service}",
            f"{ENV_PREFIX}PERSIST_CREDENTIALS={'true' if settings.persist_credentials else 'false'}",
        ]
        self._env_file.write_text("\n".join(content) + "\n", encoding="utf-8")

    def _get_env(self, name: str) -> str | None:
        return os.getenv(f"{ENV_PREFIX}{name}") or None


__all__ = [
    "APP_NAME",
    "ENV_PREFIX",
    "Settings",
    "SettingsManager",
    "cache_dir",
    "config_dir",
    "log_dir",
]
