"""Ordered fallback across the configured image providers."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, List, Mapping, Optional, TypeVar

import requests

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..errors import (
    ConfigurationError,
    FallbackExhaustedError,
    ImageProviderError,
    JobCancelledError,
    SafetyBlockedError,
)
from ..progress import RenderProgress
from .gemini import ONCE_PROVIDER, STREAM_PROVIDER, GeminiImageClient
from .renderer import PROVIDER as RENDERER_PROVIDER
from .renderer import RemoteRendererClient

logger = log_mgr.get_logger().getChild("images.fallback")

T = TypeVar("T")

HEARTBEAT_INTERVAL_SECONDS = 0.8
HEARTBEAT_STEP = 2
HEARTBEAT_CEILING = 98


@dataclass(frozen=True, slots=True)
class ImageRequest:
    """Inputs for one image generation.

    ``renderer_text`` is what the remote renderer receives; it defaults to
    ``prompt`` when unset.
    """

    prompt: str
    renderer_text: Optional[str] = None
    reference_part: Optional[Mapping[str, Any]] = None


def _ensure_active(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise JobCancelledError("image generation cancelled")


class ImageFallbackChain:
    """Try the remote renderer, then streaming Gemini, then non-streaming Gemini.

    The first provider that yields image data wins. A safety block ends the
    chain immediately; any other provider failure moves on to the next step.
    """

    def __init__(
        self,
        *,
        renderer: Optional[RemoteRendererClient] = None,
        gemini: Optional[GeminiImageClient] = None,
        gemini_unavailable_reason: Optional[str] = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        heartbeat_step: int = HEARTBEAT_STEP,
        heartbeat_ceiling: int = HEARTBEAT_CEILING,
    ) -> None:
        self._renderer = renderer
        self._gemini = gemini
        self._gemini_unavailable_reason = gemini_unavailable_reason or "Gemini API key not set"
        self._heartbeat_interval = heartbeat_interval
        self._heartbeat_step = heartbeat_step
        self._heartbeat_ceiling = heartbeat_ceiling

    @classmethod
    def from_settings(
        cls,
        settings: cfg.ToonanaSettings,
        *,
        session: Optional[requests.Session] = None,
    ) -> "ImageFallbackChain":
        renderer = RemoteRendererClient.from_settings(settings, session=session)
        gemini: Optional[GeminiImageClient] = None
        reason: Optional[str] = None
        try:
            gemini = GeminiImageClient.from_settings(settings, session=session)
        except ConfigurationError as exc:
            reason = str(exc)
        return cls(renderer=renderer, gemini=gemini, gemini_unavailable_reason=reason)

    async def _await_with_heartbeat(self, awaitable: Awaitable[T], progress: RenderProgress) -> T:
        task = asyncio.ensure_future(awaitable)
        ticks = 0
        try:
            while True:
                done, _ = await asyncio.wait({task}, timeout=self._heartbeat_interval)
                if task in done:
                    return task.result()
                if ticks < self._heartbeat_ceiling:
                    ticks = min(ticks + self._heartbeat_step, self._heartbeat_ceiling)
                    progress.report(ticks, heartbeat=True)
        finally:
            if not task.done():
                task.cancel()

    def _record_failure(
        self,
        failures: List[ImageProviderError],
        error: ImageProviderError,
        next_provider: Optional[str],
    ) -> None:
        failures.append(error)
        logger.warning(
            "Image provider %s failed: %s",
            error.provider,
            error,
            extra={
                "event": "images.fallback",
                "provider": error.provider,
                "next_provider": next_provider,
            },
        )

    async def generate(
        self,
        request: ImageRequest,
        *,
        progress: Optional[RenderProgress] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Return base64 image data (or a data URI) from the first provider that succeeds.

        Raises :class:`SafetyBlockedError` as soon as a provider reports a
        safety block and :class:`FallbackExhaustedError` when every provider
        failed.
        """

        progress = progress or RenderProgress()
        failures: List[ImageProviderError] = []

        if self._renderer is not None:
            _ensure_active(cancel_event)
            renderer_text = request.renderer_text or request.prompt
            try:
                return await self._await_with_heartbeat(
                    asyncio.to_thread(self._renderer.generate, renderer_text), progress
                )
            except SafetyBlockedError:
                raise
            except ImageProviderError as exc:
                self._record_failure(failures, exc, STREAM_PROVIDER)
        else:
            logger.debug(
                "Remote renderer not configured",
                extra={"event": "images.fallback.skip", "provider": RENDERER_PROVIDER},
            )

        if self._gemini is None:
            error = ImageProviderError(self._gemini_unavailable_reason, provider=ONCE_PROVIDER)
            self._record_failure(failures, error, None)
            raise FallbackExhaustedError(failures)

        _ensure_active(cancel_event)
        try:
            return await asyncio.to_thread(
                self._gemini.generate_stream,
                request.prompt,
                reference_part=request.reference_part,
                progress=progress,
                cancel_event=cancel_event,
            )
        except SafetyBlockedError:
            raise
        except ImageProviderError as exc:
            self._record_failure(failures, exc, ONCE_PROVIDER)

        _ensure_active(cancel_event)
        try:
            result = await asyncio.to_thread(
                self._gemini.generate_with_retry,
                request.prompt,
                reference_part=request.reference_part,
                cancel_event=cancel_event,
            )
        except SafetyBlockedError:
            raise
        except ImageProviderError as exc:
            self._record_failure(failures, exc, None)
            raise FallbackExhaustedError(failures) from exc
        progress.report(100)
        return result


__all__ = [
    "HEARTBEAT_CEILING",
    "HEARTBEAT_INTERVAL_SECONDS",
    "HEARTBEAT_STEP",
    "ImageFallbackChain",
    "ImageRequest",
]
