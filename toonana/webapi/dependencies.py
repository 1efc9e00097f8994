"""Dependency wiring for the FastAPI application."""

from __future__ import annotations

from typing import Iterator

from fastapi import Depends, Request

from .. import config_manager as cfg
from ..context import AppContext
from ..jobs.manager import GenerationJobManager
from ..llm_client import LLMClient, create_client


def get_app_context(request: Request) -> AppContext:
    """Return the :class:`AppContext` attached to the running application."""

    return request.app.state.context


def get_job_manager(context: AppContext = Depends(get_app_context)) -> GenerationJobManager:
    return context.jobs


def get_settings_provider(context: AppContext = Depends(get_app_context)) -> cfg.SettingsProvider:
    return context.settings_provider


def get_llm_client(
    provider: cfg.SettingsProvider = Depends(get_settings_provider),
) -> Iterator[LLMClient]:
    client = create_client(provider.load())
    try:
        yield client
    finally:
        client.close()


__all__ = [
    "get_app_context",
    "get_job_manager",
    "get_llm_client",
    "get_settings_provider",
]
