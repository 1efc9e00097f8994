"""Pydantic request and response models for the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from ..jobs.models import AvatarJobStatus, ComicJobStatus, Stage
from ..llm_client import OllamaHealth
from ..storage.entries import Entry
from ..storage.files import ComicsByDay


# Entry ids double as image folder names, so no separators and no leading dot.
ENTRY_ID_PATTERN = r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$"


class ComicJobRequest(BaseModel):
    entry_id: str = Field(min_length=1, pattern=ENTRY_ID_PATTERN)
    style: str = "comic"


class AvatarJobRequest(BaseModel):
    description: str = Field(min_length=1)


class JobSubmissionResponse(BaseModel):
    job_id: str


class JobCancelResponse(BaseModel):
    """``cancelled`` is false when the job had already finished or never existed."""

    job_id: str
    cancelled: bool


class StagePayload(BaseModel):
    stage: str
    completed: Optional[int] = None
    total: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_stage(cls, stage: Stage) -> "StagePayload":
        return cls.model_validate(stage.to_dict())


class ComicJobStatusResponse(BaseModel):
    """Serializable payload for :class:`ComicJobStatus`."""

    job_id: str
    entry_id: str
    style: str
    stage: StagePayload
    updated_at: datetime
    result_image_path: Optional[str] = None
    storyboard_text: Optional[str] = None

    @classmethod
    def from_status(cls, status: ComicJobStatus) -> "ComicJobStatusResponse":
        return cls(
            job_id=status.job_id,
            entry_id=status.entry_id,
            style=status.style,
            stage=StagePayload.from_stage(status.stage),
            updated_at=status.updated_at,
            result_image_path=status.result_image_path,
            storyboard_text=status.storyboard_text,
        )


class AvatarJobStatusResponse(BaseModel):
    """Serializable payload for :class:`AvatarJobStatus`."""

    job_id: str
    stage: StagePayload
    updated_at: datetime
    image_base64: Optional[str] = None

    @classmethod
    def from_status(cls, status: AvatarJobStatus) -> "AvatarJobStatusResponse":
        return cls(
            job_id=status.job_id,
            stage=StagePayload.from_stage(status.stage),
            updated_at=status.updated_at,
            image_base64=status.image_base64,
        )


class HealthResponse(BaseModel):
    ok: bool
    data_dir: str
    db_path: str


class OllamaHealthResponse(BaseModel):
    ok: bool
    message: Optional[str] = None
    models: Optional[List[str]] = None

    @classmethod
    def from_health(cls, health: OllamaHealth) -> "OllamaHealthResponse":
        return cls(ok=health.ok, message=health.message, models=health.models)


class OllamaGenerateRequest(BaseModel):
    prompt: str = Field(min_length=1)
    model: Optional[str] = None


class OllamaGenerateResponse(BaseModel):
    text: str


class EntryUpsertRequest(BaseModel):
    body: str = ""
    mood: Optional[str] = None
    tags: Any = None


class EntryResponse(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    body: str
    mood: Optional[str] = None
    tags: Any = None

    @classmethod
    def from_entry(cls, entry: Entry) -> "EntryResponse":
        return cls(
            id=entry.id,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
            body=entry.body,
            mood=entry.mood,
            tags=entry.tags,
        )


class EntryListItem(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    body_preview: str
    mood: Optional[str] = None
    tags: Any = None

    @classmethod
    def from_entry(cls, entry: Entry) -> "EntryListItem":
        return cls(
            id=entry.id,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
            body_preview=entry.preview,
            mood=entry.mood,
            tags=entry.tags,
        )


class ComicItemPayload(BaseModel):
    entry_id: str
    image_path: str
    created_at: str


class ComicsByDayPayload(BaseModel):
    date: str
    comics: List[ComicItemPayload]

    @classmethod
    def from_group(cls, group: ComicsByDay) -> "ComicsByDayPayload":
        return cls.model_validate(group.to_dict())


class PanelImageRequest(BaseModel):
    image_base64: str = Field(min_length=1)
    entry_id: str = Field(min_length=1, pattern=ENTRY_ID_PATTERN)
    panel_id: str = Field(min_length=1, pattern=r"^[A-Za-z0-9_.-]+$")


class AvatarImageRequest(BaseModel):
    image_base64: str = Field(min_length=1)


class SavedPathResponse(BaseModel):
    path: str


__all__ = [
    "ENTRY_ID_PATTERN",
    "AvatarImageRequest",
    "AvatarJobRequest",
    "AvatarJobStatusResponse",
    "ComicItemPayload",
    "ComicJobRequest",
    "ComicJobStatusResponse",
    "ComicsByDayPayload",
    "EntryListItem",
    "EntryResponse",
    "EntryUpsertRequest",
    "HealthResponse",
    "JobCancelResponse",
    "JobSubmissionResponse",
    "OllamaGenerateRequest",
    "OllamaGenerateResponse",
    "OllamaHealthResponse",
    "PanelImageRequest",
    "SavedPathResponse",
    "StagePayload",
]
