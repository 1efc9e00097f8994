"""HTTP routes exposing jobs, entries, settings and gallery commands."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status
from pydantic import ValidationError

from .. import config_manager as cfg
from ..context import AppContext
from ..errors import EntryNotFoundError, ImageDecodeError, LLMClientError
from ..jobs.manager import GenerationJobManager
from ..llm_client import LLMClient
from ..storage.files import DEFAULT_GALLERY_DAYS
from .dependencies import get_app_context, get_job_manager, get_llm_client, get_settings_provider
from .schemas import (
    ENTRY_ID_PATTERN,
    AvatarImageRequest,
    AvatarJobRequest,
    AvatarJobStatusResponse,
    ComicJobRequest,
    ComicJobStatusResponse,
    ComicsByDayPayload,
    EntryListItem,
    EntryResponse,
    EntryUpsertRequest,
    HealthResponse,
    JobCancelResponse,
    JobSubmissionResponse,
    OllamaGenerateRequest,
    OllamaGenerateResponse,
    OllamaHealthResponse,
    PanelImageRequest,
    SavedPathResponse,
)

router = APIRouter()


def _job_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="job not found")


# ----------------------------------------------------------------------
# Comic jobs
# ----------------------------------------------------------------------
@router.post(
    "/comic-jobs",
    response_model=JobSubmissionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["jobs"],
)
async def create_comic_job(
    payload: ComicJobRequest,
    manager: GenerationJobManager = Depends(get_job_manager),
) -> JobSubmissionResponse:
    job_id = await manager.submit_comic_job(payload.entry_id, payload.style)
    return JobSubmissionResponse(job_id=job_id)


@router.get("/comic-jobs/{job_id}", response_model=ComicJobStatusResponse, tags=["jobs"])
async def get_comic_job_status(
    job_id: str,
    manager: GenerationJobManager = Depends(get_job_manager),
) -> ComicJobStatusResponse:
    job_status = manager.get_comic_status(job_id)
    if job_status is None:
        raise _job_not_found()
    return ComicJobStatusResponse.from_status(job_status)


@router.delete("/comic-jobs/{job_id}", response_model=JobCancelResponse, tags=["jobs"])
async def cancel_comic_job(
    job_id: str,
    manager: GenerationJobManager = Depends(get_job_manager),
) -> JobCancelResponse:
    return JobCancelResponse(job_id=job_id, cancelled=manager.cancel_job(job_id))


# ----------------------------------------------------------------------
# Avatar jobs
# ----------------------------------------------------------------------
@router.post(
    "/avatar-jobs",
    response_model=JobSubmissionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["jobs"],
)
async def create_avatar_job(
    payload: AvatarJobRequest,
    manager: GenerationJobManager = Depends(get_job_manager),
) -> JobSubmissionResponse:
    try:
        job_id = await manager.submit_avatar_job(payload.description)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return JobSubmissionResponse(job_id=job_id)


@router.get("/avatar-jobs/{job_id}", response_model=AvatarJobStatusResponse, tags=["jobs"])
async def get_avatar_job_status(
    job_id: str,
    manager: GenerationJobManager = Depends(get_job_manager),
) -> AvatarJobStatusResponse:
    job_status = manager.get_avatar_status(job_id)
    if job_status is None:
        raise _job_not_found()
    return AvatarJobStatusResponse.from_status(job_status)


@router.delete("/avatar-jobs/{job_id}", response_model=JobCancelResponse, tags=["jobs"])
async def cancel_avatar_job(
    job_id: str,
    manager: GenerationJobManager = Depends(get_job_manager),
) -> JobCancelResponse:
    return JobCancelResponse(job_id=job_id, cancelled=manager.cancel_job(job_id))


# ----------------------------------------------------------------------
# Images
# ----------------------------------------------------------------------
@router.post("/avatar-image", response_model=SavedPathResponse, tags=["images"])
def save_avatar_image(
    payload: AvatarImageRequest,
    context: AppContext = Depends(get_app_context),
) -> SavedPathResponse:
    try:
        path = context.save_avatar_image(payload.image_base64)
    except ImageDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return SavedPathResponse(path=str(path))


@router.post("/images", response_model=SavedPathResponse, tags=["images"])
def save_image_to_disk(
    payload: PanelImageRequest,
    context: AppContext = Depends(get_app_context),
) -> SavedPathResponse:
    try:
        path = context.save_image_to_disk(payload.image_base64, payload.entry_id, payload.panel_id)
    except ImageDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return SavedPathResponse(path=str(path))


@router.get("/gallery", response_model=List[ComicsByDayPayload], tags=["images"])
def list_comics_by_day(
    limit_days: int = Query(DEFAULT_GALLERY_DAYS, ge=1),
    context: AppContext = Depends(get_app_context),
) -> List[ComicsByDayPayload]:
    return [ComicsByDayPayload.from_group(group) for group in context.list_comics_by_day(limit_days)]


# ----------------------------------------------------------------------
# Health and Ollama
# ----------------------------------------------------------------------
@router.get("/health", response_model=HealthResponse, tags=["health"])
def health(context: AppContext = Depends(get_app_context)) -> HealthResponse:
    return HealthResponse(
        ok=True,
        data_dir=str(context.data_root),
        db_path=str(context.data_root / cfg.DATABASE_FILENAME),
    )


@router.get("/ollama/health", response_model=OllamaHealthResponse, tags=["health"])
def ollama_health(client: LLMClient = Depends(get_llm_client)) -> OllamaHealthResponse:
    return OllamaHealthResponse.from_health(client.check_health())


@router.get("/ollama/models", response_model=List[str], tags=["health"])
def ollama_list_models(client: LLMClient = Depends(get_llm_client)) -> List[str]:
    return client.list_models()


@router.post("/ollama/generate", response_model=OllamaGenerateResponse, tags=["health"])
def ollama_generate(
    payload: OllamaGenerateRequest,
    client: LLMClient = Depends(get_llm_client),
) -> OllamaGenerateResponse:
    try:
        text = client.generate(payload.prompt, model=payload.model)
    except LLMClientError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return OllamaGenerateResponse(text=text)


# ----------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------
@router.get("/settings", tags=["settings"])
def get_settings(
    provider: cfg.SettingsProvider = Depends(get_settings_provider),
) -> Dict[str, Any]:
    return cfg.serialize_settings(provider.load(include_environment=False))


@router.put("/settings", tags=["settings"])
def update_settings(
    payload: Dict[str, Any] = Body(...),
    provider: cfg.SettingsProvider = Depends(get_settings_provider),
) -> Dict[str, Any]:
    try:
        settings = cfg.ToonanaSettings.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False),
        ) from exc
    provider.save(settings)
    return cfg.serialize_settings(settings)


# ----------------------------------------------------------------------
# Entries
# ----------------------------------------------------------------------
@router.get("/entries", response_model=List[EntryListItem], tags=["entries"])
def list_entries(
    limit: int = Query(100, ge=1, le=2000),
    offset: int = Query(0, ge=0),
    context: AppContext = Depends(get_app_context),
) -> List[EntryListItem]:
    return [
        EntryListItem.from_entry(entry)
        for entry in context.entries.list_entries(limit=limit, offset=offset)
    ]


@router.post(
    "/entries",
    response_model=EntryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["entries"],
)
def create_entry(
    payload: EntryUpsertRequest,
    context: AppContext = Depends(get_app_context),
) -> EntryResponse:
    entry = context.entries.upsert_entry(payload.body, mood=payload.mood, tags=payload.tags)
    return EntryResponse.from_entry(entry)


@router.get("/entries/{entry_id}", response_model=EntryResponse, tags=["entries"])
def get_entry(entry_id: str, context: AppContext = Depends(get_app_context)) -> EntryResponse:
    try:
        entry = context.entries.get_entry(entry_id)
    except EntryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return EntryResponse.from_entry(entry)


@router.put("/entries/{entry_id}", response_model=EntryResponse, tags=["entries"])
def update_entry(
    payload: EntryUpsertRequest,
    entry_id: str = Path(pattern=ENTRY_ID_PATTERN),
    context: AppContext = Depends(get_app_context),
) -> EntryResponse:
    entry = context.entries.upsert_entry(
        payload.body, entry_id=entry_id, mood=payload.mood, tags=payload.tags
    )
    return EntryResponse.from_entry(entry)


@router.delete(
    "/entries/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["entries"],
)
def delete_entry(
    entry_id: str = Path(pattern=ENTRY_ID_PATTERN),
    context: AppContext = Depends(get_app_context),
) -> None:
    context.entries.delete_entry(entry_id)


__all__ = ["router"]
