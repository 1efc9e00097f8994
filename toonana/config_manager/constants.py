"""Shared constants for the configuration manager package."""
from __future__ import annotations

from pathlib import Path

DATA_DIR_ENV = "TOONANA_DATA_DIR"
DEFAULT_DATA_DIR = Path.home() / ".toonana"
SETTINGS_FILENAME = "settings.json"
DATABASE_FILENAME = "app.sqlite"
IMAGES_DIRNAME = "images"
AVATARS_DIRNAME = "avatars"

DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"
DEFAULT_OLLAMA_MODEL = "gemma3:1b"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-image-preview"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_JOB_TIMEOUT_SECONDS = 600.0

__all__ = [
    "DATA_DIR_ENV",
    "DEFAULT_DATA_DIR",
    "SETTINGS_FILENAME",
    "DATABASE_FILENAME",
    "IMAGES_DIRNAME",
    "AVATARS_DIRNAME",
    "DEFAULT_OLLAMA_URL",
    "DEFAULT_OLLAMA_MODEL",
    "DEFAULT_GEMINI_MODEL",
    "DEFAULT_GEMINI_BASE_URL",
    "DEFAULT_JOB_TIMEOUT_SECONDS",
]
