"""HTTP client for a self-hosted storyboard renderer."""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional
from urllib.parse import urljoin

import requests

from .. import config_manager as cfg
from ..errors import ImageProviderError

PROVIDER = "renderer"


class RemoteRendererClient:
    """Minimal client for a renderer that turns storyboard text into one image."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout_seconds: float = 60.0,
        connect_timeout_seconds: float = 10.0,
        generate_path: str = "/generate",
        session: Optional[requests.Session] = None,
    ) -> None:
        trimmed = (base_url or "").strip().rstrip("/")
        if not trimmed:
            raise ValueError("RemoteRendererClient base_url cannot be empty")
        self._base_url = trimmed + "/"
        self._api_key = (api_key or "").strip() or None
        self._timeout = (max(float(connect_timeout_seconds), 1.0), max(float(timeout_seconds), 1.0))
        self._generate_url = urljoin(self._base_url, generate_path.lstrip("/"))
        self._session = session or requests.Session()

    @classmethod
    def from_settings(
        cls,
        settings: cfg.ToonanaSettings,
        *,
        session: Optional[requests.Session] = None,
    ) -> Optional["RemoteRendererClient"]:
        """Return a client for the configured renderer, or ``None`` when unset."""

        if not settings.renderer_configured:
            return None
        return cls(
            settings.nano_banana_base_url or "",
            api_key=settings.resolve_nano_banana_key(),
            session=session,
        )

    @property
    def base_url(self) -> str:  # pragma: no cover - trivial
        return self._base_url.rstrip("/")

    def generate(self, storyboard: str) -> str:
        """Render ``storyboard`` and return the image as base64 or a data URI."""

        headers = {"X-API-Key": self._api_key} if self._api_key else {}
        try:
            response = self._session.post(
                self._generate_url,
                json={"storyboard": storyboard},
                headers=headers,
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise ImageProviderError(f"request failed: {exc}", provider=PROVIDER) from exc

        if not response.ok:
            detail = response.text[:300].strip()
            message = f"HTTP {response.status_code}"
            if detail:
                message = f"{message}: {detail}"
            raise ImageProviderError(message, provider=PROVIDER)

        try:
            payload: Any = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise ImageProviderError("response was not valid JSON", provider=PROVIDER) from exc
        if not isinstance(payload, Mapping):
            raise ImageProviderError("JSON response did not contain an object", provider=PROVIDER)

        for key in ("image_base64", "image"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        raise ImageProviderError("response did not contain image data", provider=PROVIDER)

    def close(self) -> None:
        self._session.close()


__all__ = ["PROVIDER", "RemoteRendererClient"]
