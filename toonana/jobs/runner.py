"""Shared task wrapper for generation jobs: deadline, cancellation and failure capture."""

from __future__ import annotations

import asyncio
import threading
from typing import Generic, Optional

from .. import logging_manager as log_mgr
from ..errors import JobCancelledError, ToonanaError
from .publisher import StatusPublisher
from .registry import StatusT

logger = log_mgr.get_logger().getChild("jobs.runner")


class JobRunner(Generic[StatusT]):
    """Drive one job's stages and convert every outcome into a terminal status.

    Subclasses implement :meth:`_run_stages`. No exception other than
    :class:`asyncio.CancelledError` escapes :meth:`run`.
    """

    job_kind = "job"

    def __init__(
        self,
        publisher: StatusPublisher[StatusT],
        *,
        cancel_event: Optional[threading.Event] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._publisher = publisher
        self._cancel_event = cancel_event or threading.Event()
        self._timeout = timeout_seconds if timeout_seconds and timeout_seconds > 0 else None

    @property
    def job_id(self) -> str:
        return self._publisher.job_id

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def _checkpoint(self) -> None:
        if self._cancel_event.is_set():
            raise JobCancelledError(f"{self.job_kind} job cancelled")

    async def _run_stages(self) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def _record_cancelled(self) -> None:
        self._cancel_event.set()
        if self._publisher.cancel():
            logger.info("Job cancelled", extra={"event": "job.cancelled"})

    async def run(self) -> None:
        with log_mgr.log_context(job_id=self.job_id):
            logger.info(
                "Job started",
                extra={"event": "job.start", "attributes": {"kind": self.job_kind}},
            )
            try:
                await asyncio.wait_for(self._run_stages(), timeout=self._timeout)
            except asyncio.TimeoutError:
                self._cancel_event.set()
                message = f"job timed out after {self._timeout:g} seconds"
                logger.error(message, extra={"event": "job.failed", "status": "timeout"})
                self._publisher.fail(message)
            except JobCancelledError:
                self._record_cancelled()
            except asyncio.CancelledError:
                self._record_cancelled()
                raise
            except Exception as exc:
                message = str(exc) or type(exc).__name__
                logger.error(
                    "Job failed: %s",
                    message,
                    exc_info=not isinstance(exc, ToonanaError),
                    extra={"event": "job.failed", "status": "failed"},
                )
                self._publisher.fail(message)
            else:
                logger.info(
                    "Job finished",
                    extra={
                        "event": "job.complete",
                        "status": self._publisher.current.stage.kind.value,
                    },
                )


__all__ = ["JobRunner"]
