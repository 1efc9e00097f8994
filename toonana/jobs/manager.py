"""Submit, inspect and cancel comic and avatar generation jobs."""

from __future__ import annotations

import asyncio
import uuid
from typing import Optional

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..images.fallback import ImageFallbackChain
from ..llm_client import create_client
from ..storage.files import FileStore
from .avatar import AvatarJobRunner
from .comic import ComicJobRunner, EntrySource, ImageChainFactory, LLMClientFactory
from .models import AvatarJobStatus, ComicJobStatus
from .publisher import StatusPublisher
from .registry import JobHandle, JobHandleTable, StatusRegistry
from .runner import JobRunner

logger = log_mgr.get_logger().getChild("jobs.manager")


class GenerationJobManager:
    """Command surface for the generation pipelines.

    Jobs run as tasks on the event loop that submitted them. Status snapshots
    live in the two registries; running tasks live in the handle table until
    they finish or are cancelled.
    """

    def __init__(
        self,
        *,
        settings_provider: cfg.SettingsProvider,
        entries: EntrySource,
        files: FileStore,
        comic_statuses: Optional[StatusRegistry[ComicJobStatus]] = None,
        avatar_statuses: Optional[StatusRegistry[AvatarJobStatus]] = None,
        handles: Optional[JobHandleTable] = None,
        llm_client_factory: LLMClientFactory = create_client,
        image_chain_factory: ImageChainFactory = ImageFallbackChain.from_settings,
        comic_runner_options: Optional[dict] = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._entries = entries
        self._files = files
        self._comic_statuses = comic_statuses or StatusRegistry()
        self._avatar_statuses = avatar_statuses or StatusRegistry()
        self._handles = handles or JobHandleTable()
        self._llm_client_factory = llm_client_factory
        self._image_chain_factory = image_chain_factory
        self._comic_runner_options = dict(comic_runner_options or {})

    @property
    def comic_statuses(self) -> StatusRegistry[ComicJobStatus]:
        return self._comic_statuses

    @property
    def avatar_statuses(self) -> StatusRegistry[AvatarJobStatus]:
        return self._avatar_statuses

    @property
    def handles(self) -> JobHandleTable:
        return self._handles

    def _spawn(self, runner: JobRunner, publisher: StatusPublisher) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(runner.run(), name=f"{runner.job_kind}-{runner.job_id}")
        handle = JobHandle(
            job_id=runner.job_id,
            task=task,
            cancel_event=runner.cancel_event,
            on_cancel=publisher.cancel,
        )
        self._handles.register(runner.job_id, handle)
        task.add_done_callback(lambda _task: self._handles.remove(handle.job_id, handle))
        logger.info(
            "Job submitted",
            extra={
                "event": "job.submitted",
                "job_id": runner.job_id,
                "attributes": {"kind": runner.job_kind},
            },
        )

    # ------------------------------------------------------------------
    # Comic jobs
    # ------------------------------------------------------------------
    async def submit_comic_job(self, entry_id: str, style: str) -> str:
        """Queue a comic job and return its id without waiting for it."""

        job_id = str(uuid.uuid4())
        settings = self._settings_provider.load()
        publisher = StatusPublisher(
            self._comic_statuses,
            ComicJobStatus(job_id=job_id, entry_id=entry_id, style=style),
        )
        runner = ComicJobRunner(
            publisher,
            entries=self._entries,
            files=self._files,
            settings=settings,
            llm_client_factory=self._llm_client_factory,
            image_chain_factory=self._image_chain_factory,
            **self._comic_runner_options,
        )
        self._spawn(runner, publisher)
        return job_id

    def get_comic_status(self, job_id: str) -> Optional[ComicJobStatus]:
        return self._comic_statuses.get(job_id)

    # ------------------------------------------------------------------
    # Avatar jobs
    # ------------------------------------------------------------------
    async def submit_avatar_job(self, description: str) -> str:
        description = (description or "").strip()
        if not description:
            raise ValueError("avatar description must not be empty")
        job_id = str(uuid.uuid4())
        settings = self._settings_provider.load()
        publisher = StatusPublisher(self._avatar_statuses, AvatarJobStatus(job_id=job_id))
        runner = AvatarJobRunner(
            publisher,
            description=description,
            settings=settings,
            image_chain_factory=self._image_chain_factory,
        )
        self._spawn(runner, publisher)
        return job_id

    def get_avatar_status(self, job_id: str) -> Optional[AvatarJobStatus]:
        return self._avatar_statuses.get(job_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def cancel_job(self, job_id: str) -> bool:
        """Cancel ``job_id`` if it is still running; unknown ids are a no-op."""

        return self._handles.take_and_cancel(job_id)

    async def wait_for(self, job_id: str, timeout: Optional[float] = None) -> None:
        """Wait until ``job_id``'s task has finished, if it is still registered."""

        handle = self._handles.get(job_id)
        if handle is None:
            return
        await asyncio.wait({handle.task}, timeout=timeout)

    async def shutdown(self) -> None:
        """Cancel every running job and wait for the tasks to settle."""

        tasks = []
        for job_id in self._handles.job_ids():
            handle = self._handles.get(job_id)
            if handle is not None:
                tasks.append(handle.task)
            self._handles.take_and_cancel(job_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["GenerationJobManager"]
