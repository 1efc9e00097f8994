"""Pydantic models and helper utilities for configuration values."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from toonana import logging_manager

from .constants import (
    DEFAULT_GEMINI_BASE_URL,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_JOB_TIMEOUT_SECONDS,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_URL,
)

logger = logging_manager.get_logger().getChild("config")


class ToonanaSettings(BaseModel):
    """Typed representation of the persisted application settings."""

    model_config = ConfigDict(extra="allow")

    gemini_api_key: Optional[SecretStr] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    ollama_base_url: Optional[str] = None
    default_ollama_model: Optional[str] = None
    ollama_temperature: Optional[float] = None
    ollama_top_p: Optional[float] = None
    nano_banana_base_url: Optional[str] = None
    nano_banana_api_key: Optional[SecretStr] = None
    avatar_description: Optional[str] = None
    avatar_image_path: Optional[str] = None
    job_timeout_seconds: float = DEFAULT_JOB_TIMEOUT_SECONDS
    debug: bool = False

    def resolve_ollama_url(self) -> str:
        """Return the Ollama base URL without a trailing slash."""

        return (self.ollama_base_url or DEFAULT_OLLAMA_URL).strip().rstrip("/")

    def resolve_ollama_model(self, model: Optional[str] = None) -> str:
        """Return ``model`` or the configured default Ollama model."""

        return model or self.default_ollama_model or DEFAULT_OLLAMA_MODEL

    def resolve_gemini_key(self) -> Optional[str]:
        if self.gemini_api_key is None:
            return None
        value = self.gemini_api_key.get_secret_value().strip()
        return value or None

    def resolve_nano_banana_key(self) -> Optional[str]:
        if self.nano_banana_api_key is None:
            return None
        value = self.nano_banana_api_key.get_secret_value().strip()
        return value or None

    @property
    def renderer_configured(self) -> bool:
        """Return whether a custom remote renderer endpoint is set."""

        return bool((self.nano_banana_base_url or "").strip())


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    gemini_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "TOONANA_GEMINI_API_KEY"),
    )
    gemini_model: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TOONANA_GEMINI_MODEL")
    )
    ollama_base_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OLLAMA_URL", "TOONANA_OLLAMA_URL")
    )
    default_ollama_model: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TOONANA_OLLAMA_MODEL")
    )
    nano_banana_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("NANO_BANANA_URL", "TOONANA_NANO_BANANA_URL"),
    )
    nano_banana_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("NANO_BANANA_API_KEY", "TOONANA_NANO_BANANA_API_KEY"),
    )
    job_timeout_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("TOONANA_JOB_TIMEOUT")
    )
    debug: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("TOONANA_DEBUG")
    )


def load_environment_overrides() -> Dict[str, Any]:
    """Return configuration overrides sourced from environment variables."""

    try:
        overrides = EnvironmentOverrides()
    except ValidationError as exc:
        logger.warning(
            "Invalid environment configuration detected; using defaults.",
            extra={"event": "config.env.validation_error", "error": str(exc)},
        )
        return {}
    return overrides.model_dump(exclude_none=True)


def apply_environment_overrides(
    settings: ToonanaSettings, overrides: Dict[str, Any]
) -> ToonanaSettings:
    """Fill values the settings file leaves unset from ``overrides``."""

    updates = {
        key: value
        for key, value in overrides.items()
        if key not in settings.model_fields_set or getattr(settings, key, None) is None
    }
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def serialize_settings(settings: ToonanaSettings) -> Dict[str, Any]:
    """Return a JSON-ready mapping with secret values revealed."""

    payload: Dict[str, Any] = {}
    for key, value in settings.model_dump().items():
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        payload[key] = value
    return payload


__all__ = [
    "ToonanaSettings",
    "EnvironmentOverrides",
    "apply_environment_overrides",
    "load_environment_overrides",
    "serialize_settings",
]
