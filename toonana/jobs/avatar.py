"""Avatar job: render a single character portrait from a description."""

from __future__ import annotations

import threading
from typing import Optional

from .. import config_manager as cfg
from ..errors import ImageProviderError, JobStageError
from ..images.fallback import ImageFallbackChain, ImageRequest
from ..images.formats import to_data_uri
from ..images.prompting import build_avatar_prompt
from ..observability import pipeline_stage
from ..progress import PROGRESS_TOTAL, RenderProgress
from .comic import ImageChainFactory, image_failure_message
from .models import AvatarJobStatus, Stage
from .publisher import StatusPublisher
from .runner import JobRunner


class AvatarJobRunner(JobRunner[AvatarJobStatus]):
    """Render-only variant of the comic pipeline.

    The previous avatar is never sent as a reference image, so a new portrait
    is not anchored to the old one.
    """

    job_kind = "avatar"

    def __init__(
        self,
        publisher: StatusPublisher[AvatarJobStatus],
        *,
        description: str,
        settings: cfg.ToonanaSettings,
        cancel_event: Optional[threading.Event] = None,
        image_chain_factory: ImageChainFactory = ImageFallbackChain.from_settings,
    ) -> None:
        super().__init__(
            publisher,
            cancel_event=cancel_event,
            timeout_seconds=settings.job_timeout_seconds,
        )
        self._description = description
        self._settings = settings.model_copy(update={"avatar_image_path": None})
        self._image_chain_factory = image_chain_factory

    async def _run_stages(self) -> None:
        self._checkpoint()
        with pipeline_stage("rendering", {"description_length": len(self._description)}):
            self._publisher.publish(Stage.rendering(0, PROGRESS_TOTAL))
            chain = self._image_chain_factory(self._settings)
            progress = RenderProgress()
            unregister = progress.register_observer(self._publisher.on_progress)
            try:
                result = await chain.generate(
                    ImageRequest(prompt=build_avatar_prompt(self._description)),
                    progress=progress,
                    cancel_event=self._cancel_event,
                )
            except ImageProviderError as exc:
                raise JobStageError(image_failure_message(exc)) from exc
            finally:
                unregister()

        self._publisher.publish(Stage.done(), image_base64=to_data_uri(result.strip()))


__all__ = ["AvatarJobRunner"]
