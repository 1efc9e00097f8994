"""Generation job pipeline: status records, registries and orchestrators."""

from .avatar import AvatarJobRunner
from .comic import ComicJobRunner
from .manager import GenerationJobManager
from .models import AvatarJobStatus, ComicJobStatus, Stage, StageKind
from .publisher import StatusPublisher
from .registry import JobHandle, JobHandleTable, StatusRegistry

__all__ = [
    "AvatarJobRunner",
    "AvatarJobStatus",
    "ComicJobRunner",
    "ComicJobStatus",
    "GenerationJobManager",
    "JobHandle",
    "JobHandleTable",
    "Stage",
    "StageKind",
    "StatusPublisher",
    "StatusRegistry",
]
