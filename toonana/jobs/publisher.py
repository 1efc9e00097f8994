"""Per-job status writer enforcing stage order and terminal write-once."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Generic

from .. import logging_manager as log_mgr
from ..progress import ProgressEvent
from .models import Stage, StageKind, utc_now
from .registry import StatusRegistry, StatusT

logger = log_mgr.get_logger().getChild("jobs.publisher")

PROGRESS_PUBLISH_STEP = 5


class StatusPublisher(Generic[StatusT]):
    """Write one job's status snapshots into a :class:`StatusRegistry`.

    Writes that would move the job backwards, or that arrive after a
    terminal stage, are dropped. Rendering progress arriving through
    :meth:`on_progress` is throttled to strictly increasing multiples of
    :data:`PROGRESS_PUBLISH_STEP` plus heartbeat ticks.
    """

    def __init__(
        self,
        registry: StatusRegistry[StatusT],
        initial: StatusT,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._lock = threading.RLock()
        self._current = initial
        registry.upsert(initial.job_id, initial)

    @property
    def job_id(self) -> str:
        return self._current.job_id

    @property
    def current(self) -> StatusT:
        with self._lock:
            return self._current

    @property
    def is_terminal(self) -> bool:
        with self._lock:
            return self._current.stage.is_terminal

    def _accepts(self, stage: Stage) -> bool:
        previous = self._current.stage
        if previous.is_terminal:
            return False
        if stage.rank < previous.rank:
            return False
        if stage.kind is StageKind.RENDERING and previous.kind is StageKind.RENDERING:
            return (stage.completed or 0) >= (previous.completed or 0)
        return True

    def publish(self, stage: Stage, **fields: Any) -> bool:
        """Record ``stage`` with optional field updates; return whether it was written."""

        with self._lock:
            if not self._accepts(stage):
                logger.debug(
                    "Dropped status write",
                    extra={
                        "event": "job.status.dropped",
                        "job_id": self.job_id,
                        "status": stage.kind.value,
                    },
                )
                return False
            updated_at = max(self._clock(), self._current.updated_at)
            status = replace(self._current, stage=stage, updated_at=updated_at, **fields)
            self._registry.upsert(status.job_id, status)
            self._current = status
            return True

    def on_progress(self, event: ProgressEvent) -> None:
        """Translate a render progress event into a throttled ``Rendering`` write."""

        with self._lock:
            stage = self._current.stage
            if stage.kind is not StageKind.RENDERING:
                return
            completed = min(event.completed, event.total)
            if completed <= (stage.completed or 0):
                return
            if not event.heartbeat and completed % PROGRESS_PUBLISH_STEP != 0:
                return
            self.publish(Stage.rendering(completed, event.total))

    def fail(self, error: str) -> bool:
        return self.publish(Stage.failed(error))

    def cancel(self) -> bool:
        return self.publish(Stage.cancelled())


__all__ = ["PROGRESS_PUBLISH_STEP", "StatusPublisher"]
