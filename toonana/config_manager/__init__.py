"""High-level configuration management for toonana."""
from __future__ import annotations

from .constants import (
    AVATARS_DIRNAME,
    DATA_DIR_ENV,
    DATABASE_FILENAME,
    DEFAULT_GEMINI_BASE_URL,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_JOB_TIMEOUT_SECONDS,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_URL,
    IMAGES_DIRNAME,
    SETTINGS_FILENAME,
)
from .loader import (
    SettingsProvider,
    load_settings,
    resolve_data_root,
    save_settings,
    settings_path,
)
from .settings import (
    EnvironmentOverrides,
    ToonanaSettings,
    load_environment_overrides,
    serialize_settings,
)

__all__ = [
    "AVATARS_DIRNAME",
    "DATA_DIR_ENV",
    "DATABASE_FILENAME",
    "DEFAULT_GEMINI_BASE_URL",
    "DEFAULT_GEMINI_MODEL",
    "DEFAULT_JOB_TIMEOUT_SECONDS",
    "DEFAULT_OLLAMA_MODEL",
    "DEFAULT_OLLAMA_URL",
    "IMAGES_DIRNAME",
    "SETTINGS_FILENAME",
    "EnvironmentOverrides",
    "SettingsProvider",
    "ToonanaSettings",
    "load_environment_overrides",
    "load_settings",
    "resolve_data_root",
    "save_settings",
    "serialize_settings",
    "settings_path",
]
