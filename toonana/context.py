"""Application context constructed once at process start."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from . import config_manager as cfg
from . import logging_manager as log_mgr
from .images.fallback import ImageFallbackChain
from .jobs.comic import ImageChainFactory, LLMClientFactory
from .jobs.manager import GenerationJobManager
from .llm_client import create_client
from .storage.database import Database
from .storage.entries import EntryStore
from .storage.files import DEFAULT_GALLERY_DAYS, ComicsByDay, FileStore

logger = log_mgr.get_logger().getChild("context")

GALLERY_ENTRY_LIMIT = 2000


@dataclass
class AppContext:
    """Everything an entry point needs, passed explicitly instead of kept in globals."""

    data_root: Path
    settings_provider: cfg.SettingsProvider
    database: Database
    entries: EntryStore
    files: FileStore
    jobs: GenerationJobManager

    def save_avatar_image(self, image_base64: str) -> Path:
        """Store a new avatar and point ``avatar_image_path`` at it."""

        path = self.files.save_avatar_image(image_base64)
        settings = self.settings_provider.load(include_environment=False)
        self.settings_provider.save(
            settings.model_copy(update={"avatar_image_path": str(path)})
        )
        logger.info(
            "Saved avatar image",
            extra={"event": "avatar.saved", "path": str(path)},
        )
        return path

    def save_image_to_disk(self, image_base64: str, entry_id: str, panel_id: str) -> Path:
        return self.files.save_panel_image(image_base64, entry_id, panel_id)

    def list_comics_by_day(self, limit_days: int = DEFAULT_GALLERY_DAYS) -> List[ComicsByDay]:
        entries = self.entries.list_entries(limit=GALLERY_ENTRY_LIMIT)
        return self.files.list_comics_by_day(entries, limit_days=limit_days)

    async def close(self) -> None:
        await self.jobs.shutdown()
        self.database.dispose()


def build_app_context(
    data_root: Optional[os.PathLike[str] | str] = None,
    *,
    llm_client_factory: LLMClientFactory = create_client,
    image_chain_factory: ImageChainFactory = ImageFallbackChain.from_settings,
) -> AppContext:
    """Resolve the data directory and wire storage, settings and job manager."""

    root = cfg.resolve_data_root(data_root)
    settings_provider = cfg.SettingsProvider(root)
    log_mgr.configure_logging_level(debug_enabled=settings_provider.load().debug)
    database = Database.for_path(root / cfg.DATABASE_FILENAME)
    files = FileStore(root)
    entries = EntryStore(database, images_root=files.images_root)
    jobs = GenerationJobManager(
        settings_provider=settings_provider,
        entries=entries,
        files=files,
        llm_client_factory=llm_client_factory,
        image_chain_factory=image_chain_factory,
    )
    logger.info(
        "Application context ready",
        extra={"event": "context.ready", "data_root": str(root)},
    )
    return AppContext(
        data_root=root,
        settings_provider=settings_provider,
        database=database,
        entries=entries,
        files=files,
        jobs=jobs,
    )


__all__ = ["AppContext", "GALLERY_ENTRY_LIMIT", "build_app_context"]
