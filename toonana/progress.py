"""Render progress channel shared by image providers and job orchestrators."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

from . import logging_manager as log_mgr

logger = log_mgr.get_logger().getChild("progress")

PROGRESS_TOTAL = 100


@dataclass(frozen=True)
class ProgressEvent:
    """One progress observation emitted while an image is being generated."""

    completed: int
    total: int = PROGRESS_TOTAL
    heartbeat: bool = False


ProgressObserver = Callable[[ProgressEvent], None]


class RenderProgress:
    """Fan out :class:`ProgressEvent` notifications to registered observers.

    Providers call :meth:`report` from whichever thread performs the network
    I/O; observers are invoked synchronously on that thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: Sequence[ProgressObserver] = []

    def register_observer(self, callback: ProgressObserver) -> Callable[[], None]:
        """Register ``callback`` and return a function that removes it."""

        with self._lock:
            observers = list(self._observers)
            observers.append(callback)
            self._observers = observers

        def _unregister() -> None:
            with self._lock:
                observers_inner = list(self._observers)
                try:
                    observers_inner.remove(callback)
                except ValueError:
                    return
                self._observers = observers_inner

        return _unregister

    def report(self, completed: int, total: int = PROGRESS_TOTAL, *, heartbeat: bool = False) -> None:
        """Emit a progress event; ``completed`` is clamped to ``[0, total]``."""

        total = max(1, int(total))
        event = ProgressEvent(
            completed=min(max(0, int(completed)), total),
            total=total,
            heartbeat=heartbeat,
        )
        with self._lock:
            observers: Tuple[ProgressObserver, ...] = tuple(self._observers)
        for observer in observers:
            try:
                observer(event)
            except Exception:
                logger.debug("Progress observer raised", exc_info=True)


__all__ = ["PROGRESS_TOTAL", "ProgressEvent", "ProgressObserver", "RenderProgress"]
