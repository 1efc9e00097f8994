"""Application factory for the FastAPI backend."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import load_environment
from ..context import AppContext, build_app_context
from .routes import router

LOGGER = logging.getLogger(__name__)

# Default origins considered safe for local development convenience.
DEFAULT_LOCAL_ORIGINS = (
    "http://localhost",
    "http://127.0.0.1",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "tauri://localhost",
)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the API around ``context``, creating one from the environment if omitted."""

    load_environment()
    app = FastAPI(title="toonana")
    app.state.context = context or build_app_context()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(DEFAULT_LOCAL_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("shutdown")
    async def _cancel_running_jobs() -> None:
        LOGGER.info("Cancelling running generation jobs")
        await app.state.context.close()

    @app.get("/_health", tags=["health"])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(router, prefix="/api")
    return app


__all__ = ["create_app"]
