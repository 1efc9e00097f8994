"""Settings loading and persistence for the application data directory."""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from toonana import logging_manager

from .constants import DATA_DIR_ENV, DEFAULT_DATA_DIR, SETTINGS_FILENAME
from .settings import (
    ToonanaSettings,
    apply_environment_overrides,
    load_environment_overrides,
    serialize_settings,
)

logger = logging_manager.get_logger().getChild("config")


def resolve_data_root(data_root: Optional[os.PathLike[str] | str] = None) -> Path:
    """Return the absolute application data directory, creating it if needed."""

    candidate = data_root or os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR
    path = Path(candidate).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    path.mkdir(parents=True, exist_ok=True)
    return path.resolve()


def settings_path(data_root: Path) -> Path:
    return Path(data_root) / SETTINGS_FILENAME


def _read_settings_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        logger.debug("No settings file found at %s; using defaults.", path)
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(
            "Failed to read settings file at %s: %s",
            path,
            exc,
            extra={"event": "config.settings.invalid"},
        )
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Settings file at %s does not contain an object; using defaults.",
            path,
            extra={"event": "config.settings.invalid"},
        )
        return {}
    return data


def load_settings(data_root: Path, *, include_environment: bool = True) -> ToonanaSettings:
    """Load ``settings.json`` from ``data_root``.

    Missing or corrupt files yield default settings. When
    ``include_environment`` is true, values the file leaves unset are filled
    from environment variables (for example ``GEMINI_API_KEY``).
    """

    payload = _read_settings_json(settings_path(data_root))
    try:
        settings = ToonanaSettings.model_validate(payload)
    except ValidationError as exc:
        logger.warning(
            "Settings file failed validation; using defaults.",
            extra={"event": "config.settings.validation_error", "error": str(exc)},
        )
        settings = ToonanaSettings()
    if include_environment:
        settings = apply_environment_overrides(settings, load_environment_overrides())
    return settings


def save_settings(data_root: Path, settings: ToonanaSettings) -> Path:
    """Persist ``settings`` as pretty-printed JSON, replacing the file atomically."""

    path = settings_path(data_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = serialize_settings(settings)
    fd, tmp_name = tempfile.mkstemp(prefix=".settings-", suffix=".json", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


class SettingsProvider:
    """Synchronous settings reader bound to one data directory."""

    def __init__(self, data_root: Path) -> None:
        self._data_root = Path(data_root)

    @property
    def data_root(self) -> Path:
        return self._data_root

    def load(self, *, include_environment: bool = True) -> ToonanaSettings:
        return load_settings(self._data_root, include_environment=include_environment)

    def save(self, settings: ToonanaSettings) -> ToonanaSettings:
        save_settings(self._data_root, settings)
        return settings


__all__ = [
    "SettingsProvider",
    "load_settings",
    "resolve_data_root",
    "save_settings",
    "settings_path",
]
