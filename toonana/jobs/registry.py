"""Process-local registries for job status snapshots and running tasks."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Generic, List, Optional, TypeVar, Union

from .. import logging_manager as log_mgr
from .models import AvatarJobStatus, ComicJobStatus, utc_now

logger = log_mgr.get_logger().getChild("jobs.registry")

StatusT = TypeVar("StatusT", ComicJobStatus, AvatarJobStatus)
AnyStatus = Union[ComicJobStatus, AvatarJobStatus]


class StatusRegistry(Generic[StatusT]):
    """Thread-safe mapping from job id to its latest status snapshot.

    Snapshots are frozen dataclasses, so a reader can never observe a value
    mixing fields from two writes.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: Dict[str, StatusT] = {}

    def upsert(self, job_id: str, status: StatusT) -> None:
        with self._lock:
            self._records[job_id] = status

    def get(self, job_id: str) -> Optional[StatusT]:
        with self._lock:
            return self._records.get(job_id)

    def list(self) -> Dict[str, StatusT]:
        with self._lock:
            return dict(self._records)

    def prune(self, max_age_seconds: float, *, now: Optional[datetime] = None) -> int:
        """Drop terminal statuses not updated within ``max_age_seconds``.

        Returns the number of removed records.
        """

        cutoff = (now or utc_now()) - timedelta(seconds=max_age_seconds)
        with self._lock:
            expired = [
                job_id
                for job_id, status in self._records.items()
                if status.stage.is_terminal and status.updated_at < cutoff
            ]
            for job_id in expired:
                del self._records[job_id]
        if expired:
            logger.debug(
                "Pruned %d terminal job statuses",
                len(expired),
                extra={"event": "jobs.registry.pruned"},
            )
        return len(expired)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


@dataclass
class JobHandle:
    """Cancellable handle for one running job task."""

    job_id: str
    task: "asyncio.Task[None]"
    cancel_event: threading.Event
    on_cancel: Optional[Callable[[], None]] = None

    def cancel(self) -> None:
        """Signal the job to stop at its next suspension point."""

        self.cancel_event.set()
        if self.on_cancel is not None:
            self.on_cancel()
        if self.task.done():
            return
        loop = self.task.get_loop()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self.task.cancel()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(self.task.cancel)


class JobHandleTable:
    """Thread-safe mapping from job id to :class:`JobHandle`."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._handles: Dict[str, JobHandle] = {}

    def register(self, job_id: str, handle: JobHandle) -> None:
        with self._lock:
            self._handles[job_id] = handle

    def get(self, job_id: str) -> Optional[JobHandle]:
        with self._lock:
            return self._handles.get(job_id)

    def take_and_cancel(self, job_id: str) -> bool:
        """Remove and cancel the handle for ``job_id``; return whether one existed."""

        with self._lock:
            handle = self._handles.pop(job_id, None)
        if handle is None:
            return False
        handle.cancel()
        logger.info(
            "Job cancellation requested",
            extra={"event": "job.cancel_requested", "job_id": job_id},
        )
        return True

    def remove(self, job_id: str, handle: Optional[JobHandle] = None) -> None:
        """Forget ``job_id``; when ``handle`` is given only that exact handle is removed."""

        with self._lock:
            current = self._handles.get(job_id)
            if current is None:
                return
            if handle is not None and current is not handle:
                return
            del self._handles[job_id]

    def job_ids(self) -> List[str]:
        with self._lock:
            return list(self._handles)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)


__all__ = ["AnyStatus", "JobHandle", "JobHandleTable", "StatusRegistry"]
