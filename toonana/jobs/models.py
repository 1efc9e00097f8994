"""Status records for comic and avatar generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StageKind(str, Enum):
    """Enumeration of job stages in pipeline order."""

    QUEUED = "queued"
    PARSING = "parsing"
    STORYBOARDING = "storyboarding"
    PROMPTING = "prompting"
    RENDERING = "rendering"
    SAVING = "saving"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


_STAGE_RANK: Dict[StageKind, int] = {
    StageKind.QUEUED: 0,
    StageKind.PARSING: 1,
    StageKind.STORYBOARDING: 2,
    StageKind.PROMPTING: 3,
    StageKind.RENDERING: 4,
    StageKind.SAVING: 5,
    StageKind.DONE: 6,
    StageKind.FAILED: 6,
    StageKind.CANCELLED: 6,
}

TERMINAL_STAGES = frozenset({StageKind.DONE, StageKind.FAILED, StageKind.CANCELLED})


@dataclass(frozen=True)
class Stage:
    """Tagged stage value; ``completed``/``total`` apply to rendering, ``error`` to failures."""

    kind: StageKind
    completed: Optional[int] = None
    total: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def queued(cls) -> "Stage":
        return cls(StageKind.QUEUED)

    @classmethod
    def parsing(cls) -> "Stage":
        return cls(StageKind.PARSING)

    @classmethod
    def storyboarding(cls) -> "Stage":
        return cls(StageKind.STORYBOARDING)

    @classmethod
    def prompting(cls) -> "Stage":
        return cls(StageKind.PROMPTING)

    @classmethod
    def rendering(cls, completed: int, total: int) -> "Stage":
        total = max(1, int(total))
        return cls(StageKind.RENDERING, completed=min(max(0, int(completed)), total), total=total)

    @classmethod
    def saving(cls) -> "Stage":
        return cls(StageKind.SAVING)

    @classmethod
    def done(cls) -> "Stage":
        return cls(StageKind.DONE)

    @classmethod
    def failed(cls, error: str) -> "Stage":
        return cls(StageKind.FAILED, error=error)

    @classmethod
    def cancelled(cls) -> "Stage":
        return cls(StageKind.CANCELLED)

    @property
    def rank(self) -> int:
        return _STAGE_RANK[self.kind]

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_STAGES

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"stage": self.kind.value}
        if self.kind is StageKind.RENDERING:
            payload["completed"] = self.completed
            payload["total"] = self.total
        elif self.kind is StageKind.FAILED:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class ComicJobStatus:
    """Snapshot of a comic job; readers always receive a whole, immutable value."""

    job_id: str
    entry_id: str
    style: str
    stage: Stage = field(default_factory=Stage.queued)
    updated_at: datetime = field(default_factory=utc_now)
    result_image_path: Optional[str] = None
    storyboard_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "entry_id": self.entry_id,
            "style": self.style,
            "stage": self.stage.to_dict(),
            "updated_at": self.updated_at.isoformat(),
            "result_image_path": self.result_image_path,
            "storyboard_text": self.storyboard_text,
        }


@dataclass(frozen=True)
class AvatarJobStatus:
    """Snapshot of a render-only avatar job."""

    job_id: str
    stage: Stage = field(default_factory=Stage.queued)
    updated_at: datetime = field(default_factory=utc_now)
    image_base64: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "stage": self.stage.to_dict(),
            "updated_at": self.updated_at.isoformat(),
            "image_base64": self.image_base64,
        }


__all__ = [
    "AvatarJobStatus",
    "ComicJobStatus",
    "Stage",
    "StageKind",
    "TERMINAL_STAGES",
    "utc_now",
]
