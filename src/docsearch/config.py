"""Environment driven configuration for the document search service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

LOGGER = logging.getLogger(__name__)

DEFAULT_DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DEFAULT_DRIVE_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"
DEFAULT_INDEX_FILE_NAME = "search_index.json"


def _str_from_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _int_from_env(name: str, default: int, *, minimum: int | None = None, maximum: int | None = None) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default
    if minimum is not None and parsed < minimum:
        LOGGER.warning("%s=%s is below %s; using %s", name, parsed, minimum, minimum)
        return minimum
    if maximum is not None and parsed > maximum:
        LOGGER.warning("%s=%s is above %s; using %s", name, parsed, maximum, maximum)
        return maximum
    return parsed


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _level_from_env(name: str, default: str) -> str:
    value = _str_from_env(name, default).upper()
    if not isinstance(logging.getLevelName(value), int):
        LOGGER.warning("Unknown log level for %s: %s; using default %s", name, value, default)
        return default
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration resolved from the process environment."""

    drive_api_base: str = DEFAULT_DRIVE_API_BASE
    drive_upload_base: str = DEFAULT_DRIVE_UPLOAD_BASE
    drive_timeout_seconds: float = 30.0
    drive_list_page_size: int = 100
    files_page_size: int = 10
    index_file_name: str = DEFAULT_INDEX_FILE_NAME
    index_store: str = "drive"
    search_page_size: int = 10
    snippet_radius: int = 50
    build_file_timeout_seconds: float = 120.0
    build_fetch_attempts: int = 2
    status_poll_interval_seconds: float = 0.5
    log_dir: str = "logs"
    log_level: str = "INFO"
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            drive_api_base=_str_from_env("DRIVE_API_BASE", DEFAULT_DRIVE_API_BASE).rstrip("/"),
            drive_upload_base=_str_from_env("DRIVE_UPLOAD_BASE", DEFAULT_DRIVE_UPLOAD_BASE).rstrip("/"),
            drive_timeout_seconds=_float_from_env("DRIVE_TIMEOUT_SECONDS", 30.0),
            drive_list_page_size=_int_from_env("DRIVE_LIST_PAGE_SIZE", 100, minimum=1, maximum=1000),
            files_page_size=_int_from_env("FILES_PAGE_SIZE", 10, minimum=1, maximum=1000),
            index_file_name=_str_from_env("INDEX_FILE_NAME", DEFAULT_INDEX_FILE_NAME),
            index_store=_str_from_env("INDEX_STORE", "drive").lower(),
            search_page_size=_int_from_env("SEARCH_PAGE_SIZE", 10, minimum=1),
            snippet_radius=_int_from_env("SNIPPET_RADIUS", 50, minimum=0),
            build_file_timeout_seconds=_float_from_env("BUILD_FILE_TIMEOUT_SECONDS", 120.0),
            build_fetch_attempts=_int_from_env("BUILD_FETCH_ATTEMPTS", 2, minimum=1, maximum=3),
            status_poll_interval_seconds=_float_from_env("STATUS_POLL_INTERVAL_SECONDS", 0.5),
            log_dir=_str_from_env("LOG_DIR", "logs"),
            log_level=_level_from_env("LOG_LEVEL", "INFO"),
            environment=_str_from_env("ENVIRONMENT", "development"),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings instance."""

    return Settings.from_env()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for testing)."""

    get_settings.cache_clear()  # type: ignore[attr-defined]
