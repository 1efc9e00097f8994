"""Cloud multimodal image client with streaming and non-streaming modes."""

from __future__ import annotations

import threading
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

import requests

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..errors import (
    ConfigurationError,
    ImageProviderError,
    JobCancelledError,
    NoImageDataError,
    SafetyBlockedError,
)
from ..progress import RenderProgress
from .extraction import StreamImageCollector, find_block_reason, find_http_uri, find_inline_image
from .formats import encode_base64
from .prompting import IMAGE_ONLY_SUFFIX

logger = log_mgr.get_logger().getChild("images.gemini")

STREAM_PROVIDER = "gemini-stream"
ONCE_PROVIDER = "gemini"

_STREAM_PROGRESS_START = 1
_STREAM_PROGRESS_STEP = 2
_STREAM_PROGRESS_CEILING = 98
_STREAM_PROGRESS_CLOSED = 99

_GOOGLE_API_SUFFIX = ".googleapis.com"


def build_request_body(
    prompt: str,
    reference_part: Optional[Mapping[str, Any]] = None,
    *,
    image_only: bool = False,
) -> Dict[str, Any]:
    """Return a ``generateContent`` request body for ``prompt``."""

    parts: list[Dict[str, Any]] = [{"text": prompt}]
    if reference_part:
        parts.append(dict(reference_part))
    modalities = ["IMAGE"] if image_only else ["IMAGE", "TEXT"]
    return {
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": {"responseModalities": modalities},
    }


class GeminiImageClient:
    """Issue image generation requests against the Generative Language API."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = cfg.DEFAULT_GEMINI_MODEL,
        base_url: str = cfg.DEFAULT_GEMINI_BASE_URL,
        stream_timeout_seconds: float = 90.0,
        timeout_seconds: float = 60.0,
        connect_timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not (api_key or "").strip():
            raise ConfigurationError("Gemini API key not set")
        self._api_key = api_key.strip()
        self._model = model
        self._base_url = (base_url or cfg.DEFAULT_GEMINI_BASE_URL).strip().rstrip("/")
        self._stream_timeout = (connect_timeout_seconds, stream_timeout_seconds)
        self._timeout = (connect_timeout_seconds, timeout_seconds)
        self._session = session or requests.Session()

    @classmethod
    def from_settings(
        cls,
        settings: cfg.ToonanaSettings,
        *,
        session: Optional[requests.Session] = None,
    ) -> "GeminiImageClient":
        key = settings.resolve_gemini_key()
        if not key:
            raise ConfigurationError("Gemini API key not set")
        return cls(
            key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            session=session,
        )

    @property
    def model(self) -> str:
        return self._model

    def _url(self, method: str, *, stream: bool) -> str:
        url = f"{self._base_url}/models/{self._model}:{method}"
        # Server-sent events keep each JSON fragment on its own line.
        return f"{url}?alt=sse" if stream else url

    def _headers(self) -> Dict[str, str]:
        return {"X-goog-api-key": self._api_key, "Content-Type": "application/json"}

    def _post(
        self,
        url: str,
        body: Mapping[str, Any],
        *,
        provider: str,
        stream: bool,
        timeout: Tuple[float, float],
    ) -> requests.Response:
        try:
            response = self._session.post(
                url,
                json=dict(body),
                headers=self._headers(),
                stream=stream,
                timeout=timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise ImageProviderError(f"request failed: {exc}", provider=provider) from exc
        if not 200 <= response.status_code < 300:
            detail = response.text[:300].strip()
            response.close()
            message = f"HTTP {response.status_code}"
            if detail:
                message = f"{message}: {detail}"
            raise ImageProviderError(message, provider=provider)
        return response

    def _is_provider_domain(self, uri: str) -> bool:
        own = urlparse(self._base_url).hostname or ""
        host = urlparse(uri).hostname or ""
        if not host:
            return False
        if host == own:
            return True
        # Sibling Google hosts only share the key when the base URL is Google's own.
        return own.endswith(_GOOGLE_API_SUFFIX) and host.endswith(_GOOGLE_API_SUFFIX)

    def fetch_uri(self, uri: str, *, provider: str = STREAM_PROVIDER) -> str:
        """Download ``uri`` and return its bytes base64-encoded."""

        headers = {"X-goog-api-key": self._api_key} if self._is_provider_domain(uri) else {}
        try:
            response = self._session.get(uri, headers=headers, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            raise ImageProviderError(f"file fetch failed: {exc}", provider=provider) from exc
        if not 200 <= response.status_code < 300:
            raise ImageProviderError(
                f"file fetch failed: HTTP {response.status_code}", provider=provider
            )
        return encode_base64(response.content)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    def generate_stream(
        self,
        prompt: str,
        *,
        reference_part: Optional[Mapping[str, Any]] = None,
        progress: Optional[RenderProgress] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Stream an image generation and return base64 data or a data URI.

        Progress is derived from the number of lines processed because the
        wire protocol carries no percentage.
        """

        body = build_request_body(prompt, reference_part)
        response = self._post(
            self._url("streamGenerateContent", stream=True),
            body,
            provider=STREAM_PROVIDER,
            stream=True,
            timeout=self._stream_timeout,
        )
        collector = StreamImageCollector()
        completed = _STREAM_PROGRESS_START
        if progress is not None:
            progress.report(completed)
        try:
            response.encoding = "utf-8"
            for line in response.iter_lines(decode_unicode=True):
                if cancel_event is not None and cancel_event.is_set():
                    raise JobCancelledError("image stream cancelled")
                if not line:
                    continue
                collector.feed(line)
                if completed < _STREAM_PROGRESS_CEILING:
                    completed = min(completed + _STREAM_PROGRESS_STEP, _STREAM_PROGRESS_CEILING)
                    if progress is not None:
                        progress.report(completed)
        except requests.exceptions.RequestException as exc:
            raise ImageProviderError(f"stream error: {exc}", provider=STREAM_PROVIDER) from exc
        finally:
            response.close()

        if progress is not None:
            progress.report(_STREAM_PROGRESS_CLOSED)
        logger.debug(
            "Image stream closed",
            extra={"event": "images.gemini.stream_closed", "lines": collector.lines_seen},
        )

        if collector.inline_image:
            result = collector.inline_image
        elif collector.http_uri:
            result = self.fetch_uri(collector.http_uri, provider=STREAM_PROVIDER)
        elif collector.block_reason:
            raise SafetyBlockedError(
                f"blocked by safety filters ({collector.block_reason})", provider=STREAM_PROVIDER
            )
        else:
            raise NoImageDataError("no image data received", provider=STREAM_PROVIDER)

        if progress is not None:
            progress.report(100)
        return result

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------
    def generate_once(
        self,
        prompt: str,
        *,
        reference_part: Optional[Mapping[str, Any]] = None,
        image_only: bool = False,
    ) -> str:
        body = build_request_body(prompt, reference_part, image_only=image_only)
        response = self._post(
            self._url("generateContent", stream=False),
            body,
            provider=ONCE_PROVIDER,
            stream=False,
            timeout=self._timeout,
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ImageProviderError(
                f"response parse error: {exc}", provider=ONCE_PROVIDER
            ) from exc

        inline = find_inline_image(payload)
        if inline:
            return inline
        uri = find_http_uri(payload)
        if uri:
            return self.fetch_uri(uri, provider=ONCE_PROVIDER)
        reason = find_block_reason(payload)
        if reason:
            raise SafetyBlockedError(
                f"blocked by safety filters ({reason})", provider=ONCE_PROVIDER
            )
        raise NoImageDataError("no image in response", provider=ONCE_PROVIDER)

    def generate_with_retry(
        self,
        prompt: str,
        *,
        reference_part: Optional[Mapping[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Call :meth:`generate_once`, retrying once image-only when no image came back.

        Safety blocks and transport errors are not retried.
        """

        try:
            return self.generate_once(prompt, reference_part=reference_part)
        except NoImageDataError:
            if cancel_event is not None and cancel_event.is_set():
                raise JobCancelledError("image generation cancelled")
            logger.info(
                "Retrying image generation with an image-only instruction",
                extra={"event": "images.gemini.retry_image_only"},
            )
        return self.generate_once(
            prompt + IMAGE_ONLY_SUFFIX,
            reference_part=reference_part,
            image_only=True,
        )

    def close(self) -> None:
        self._session.close()


__all__ = [
    "GeminiImageClient",
    "ONCE_PROVIDER",
    "STREAM_PROVIDER",
    "build_request_body",
]
