"""Comic job: entry text to storyboard to rendered strip on disk."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..errors import (
    FallbackExhaustedError,
    ImageDecodeError,
    ImageProviderError,
    JobCancelledError,
    JobStageError,
)
from ..images.fallback import ImageFallbackChain, ImageRequest
from ..images.formats import decode_base64_image, guess_image_extension
from ..images.prompting import (
    CharacterReference,
    build_comic_image_prompt,
    build_storyboard_prompt,
    load_reference_part,
    with_character_consistency,
)
from ..llm_client import LLMClient, create_client
from ..observability import pipeline_stage
from ..progress import PROGRESS_TOTAL, RenderProgress
from ..storage.files import FileStore
from .models import ComicJobStatus, Stage
from .publisher import StatusPublisher
from .runner import JobRunner

logger = log_mgr.get_logger().getChild("jobs.comic")

PARSE_DELAY_SECONDS = 0.15
SETTLE_DELAY_SECONDS = 0.1

LLMClientFactory = Callable[[cfg.ToonanaSettings], LLMClient]
ImageChainFactory = Callable[[cfg.ToonanaSettings], ImageFallbackChain]


class EntrySource(Protocol):
    def get_entry_text(self, entry_id: str) -> str:
        ...


def image_failure_message(error: ImageProviderError) -> str:
    if isinstance(error, FallbackExhaustedError):
        return str(error)
    return f"image generation failed ({error.provider}: {error})"


class ComicJobRunner(JobRunner[ComicJobStatus]):
    """Run the staged comic pipeline for one entry."""

    job_kind = "comic"

    def __init__(
        self,
        publisher: StatusPublisher[ComicJobStatus],
        *,
        entries: EntrySource,
        files: FileStore,
        settings: cfg.ToonanaSettings,
        cancel_event: Optional[threading.Event] = None,
        llm_client_factory: LLMClientFactory = create_client,
        image_chain_factory: ImageChainFactory = ImageFallbackChain.from_settings,
        parse_delay: float = PARSE_DELAY_SECONDS,
        settle_delay: float = SETTLE_DELAY_SECONDS,
    ) -> None:
        super().__init__(
            publisher,
            cancel_event=cancel_event,
            timeout_seconds=settings.job_timeout_seconds,
        )
        self._entries = entries
        self._files = files
        self._settings = settings
        self._llm_client_factory = llm_client_factory
        self._image_chain_factory = image_chain_factory
        self._parse_delay = parse_delay
        self._settle_delay = settle_delay

    @property
    def entry_id(self) -> str:
        return self._publisher.current.entry_id

    @property
    def style(self) -> str:
        return self._publisher.current.style

    async def _run_stages(self) -> None:
        self._checkpoint()
        with pipeline_stage("parsing", {"entry_id": self.entry_id}):
            self._publisher.publish(Stage.parsing())
            await asyncio.sleep(self._parse_delay)

        self._checkpoint()
        with pipeline_stage("storyboarding", {"entry_id": self.entry_id}):
            self._publisher.publish(Stage.storyboarding())
            entry_text = await self._load_entry()

        self._checkpoint()
        with pipeline_stage("prompting", {"style": self.style}):
            self._publisher.publish(Stage.prompting())
            storyboard = await self._write_storyboard(entry_text)

        self._checkpoint()
        images_dir = self._files.entry_images_dir(self.entry_id)
        with pipeline_stage("rendering"):
            self._publisher.publish(Stage.rendering(0, PROGRESS_TOTAL))
            image_payload = await self._render(storyboard)

        self._checkpoint()
        with pipeline_stage("saving"):
            self._publisher.publish(Stage.saving())
            path = await self._save(image_payload, images_dir)
            await asyncio.sleep(self._settle_delay)

        self._publisher.publish(
            Stage.done(),
            result_image_path=str(path),
            storyboard_text=storyboard,
        )

    async def _load_entry(self) -> str:
        try:
            return await asyncio.to_thread(self._entries.get_entry_text, self.entry_id)
        except Exception as exc:
            raise JobStageError(f"load entry failed: {exc}") from exc

    async def _write_storyboard(self, entry_text: str) -> str:
        parts: List[str] = []

        def _on_chunk(fragment: str) -> None:
            if self._cancel_event.is_set():
                raise JobCancelledError("storyboard stream cancelled")
            parts.append(fragment)
            self._publisher.publish(Stage.prompting(), storyboard_text="".join(parts))

        prompt = build_storyboard_prompt(entry_text, self.style)
        client = self._llm_client_factory(self._settings)
        try:
            return await asyncio.to_thread(client.generate_streaming, prompt, _on_chunk)
        except JobCancelledError:
            raise
        except Exception as exc:
            raise JobStageError(f"ollama prompting failed: {exc}") from exc
        finally:
            client.close()

    async def _render(self, storyboard: str) -> str:
        reference = CharacterReference(
            description=self._settings.avatar_description,
            image_path=self._settings.avatar_image_path,
        )
        request = ImageRequest(
            prompt=with_character_consistency(
                build_comic_image_prompt(storyboard, self.style), reference, scope="images"
            ),
            renderer_text=with_character_consistency(storyboard, reference, scope="panels"),
            reference_part=await asyncio.to_thread(load_reference_part, reference),
        )
        chain = self._image_chain_factory(self._settings)
        progress = RenderProgress()
        unregister = progress.register_observer(self._publisher.on_progress)
        try:
            return await chain.generate(request, progress=progress, cancel_event=self._cancel_event)
        except ImageProviderError as exc:
            raise JobStageError(image_failure_message(exc)) from exc
        finally:
            unregister()

    async def _save(self, image_payload: str, images_dir: Path) -> Path:
        try:
            data = decode_base64_image(image_payload)
        except ImageDecodeError as exc:
            raise JobStageError(f"image decode failed: {exc}") from exc
        extension = guess_image_extension(data)
        filename = f"{self.job_id}-result.{extension}"
        try:
            return await asyncio.to_thread(self._files.write_bytes, images_dir, filename, data)
        except OSError as exc:
            raise JobStageError(f"image save failed: {exc}") from exc


__all__ = [
    "ComicJobRunner",
    "EntrySource",
    "PARSE_DELAY_SECONDS",
    "SETTLE_DELAY_SECONDS",
    "image_failure_message",
]
