"""Structured stage instrumentation for generation jobs."""

from __future__ import annotations

import contextlib
import time
from typing import Iterator, Mapping, Optional

from . import logging_manager as log_mgr

logger = log_mgr.get_logger().getChild("observability")


@contextlib.contextmanager
def pipeline_stage(stage: str, attributes: Optional[Mapping[str, object]] = None) -> Iterator[None]:
    """Log the start, completion or failure of a pipeline stage with its duration."""

    attrs = dict(attributes or {})

    with log_mgr.log_context(stage=stage):
        start = time.perf_counter()
        logger.info(
            "Stage started",
            extra={
                "event": "pipeline.stage.start",
                "attributes": attrs,
            },
        )
        try:
            yield
        except BaseException as exc:
            duration_ms = (time.perf_counter() - start) * 1000.0
            logger.info(
                "Stage interrupted",
                extra={
                    "event": "pipeline.stage.interrupted",
                    "duration_ms": round(duration_ms, 2),
                    "attributes": {**attrs, "error": type(exc).__name__},
                },
            )
            raise
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "Stage completed",
            extra={
                "event": "pipeline.stage.complete",
                "duration_ms": round(duration_ms, 2),
                "attributes": attrs,
            },
        )


__all__ = ["pipeline_stage"]
