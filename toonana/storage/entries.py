"""Journal entry store backed by SQLite through SQLAlchemy."""

from __future__ import annotations

import json
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from sqlalchemy import select

from .. import logging_manager as log_mgr
from ..errors import EntryNotFoundError, InvalidEntryIdError
from .database import Database, EntryModel

logger = log_mgr.get_logger().getChild("storage.entries")

PREVIEW_LENGTH = 50
DEFAULT_LIST_LIMIT = 100


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _preview(body: str) -> str:
    if len(body) > PREVIEW_LENGTH:
        return f"{body[:PREVIEW_LENGTH].strip()}..."
    return body.strip()


def entry_image_dir(images_root: Path, entry_id: str) -> Path:
    """Return ``images_root/<entry_id>``, refusing ids that resolve elsewhere."""

    directory = Path(images_root) / entry_id
    if not entry_id or directory.resolve().parent != Path(images_root).resolve():
        raise InvalidEntryIdError(entry_id)
    return directory


@dataclass(frozen=True)
class Entry:
    id: str
    created_at: datetime
    updated_at: datetime
    body: str
    mood: Optional[str] = None
    tags: Any = None

    @property
    def preview(self) -> str:
        return _preview(self.body)

    def to_dict(self, *, include_body: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "mood": self.mood,
            "tags": self.tags,
        }
        if include_body:
            payload["body"] = self.body
        else:
            payload["body_preview"] = self.preview
        return payload


class EntryStore:
    """CRUD access to journal entries.

    Deleting an entry also removes its generated images under
    ``images_root/<entry_id>``.
    """

    def __init__(self, database: Database, *, images_root: Optional[Path] = None) -> None:
        self._database = database
        self._images_root = images_root

    @staticmethod
    def _model_to_entry(model: EntryModel) -> Entry:
        tags: Any = None
        if model.tags:
            try:
                tags = json.loads(model.tags)
            except json.JSONDecodeError:
                tags = None
        return Entry(
            id=model.id,
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
            body=model.body or "",
            mood=model.mood,
            tags=tags,
        )

    def upsert_entry(
        self,
        body: str,
        *,
        entry_id: Optional[str] = None,
        mood: Optional[str] = None,
        tags: Any = None,
    ) -> Entry:
        """Create or replace an entry and return the stored record."""

        if entry_id and self._images_root is not None:
            entry_image_dir(self._images_root, entry_id)
        entry_id = entry_id or str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        tags_json = json.dumps(tags) if tags is not None else None
        with self._database.session() as session:
            model = session.get(EntryModel, entry_id)
            if model is None:
                model = EntryModel(id=entry_id, created_at=now, updated_at=now, body=body)
                session.add(model)
            model.updated_at = now
            model.body = body
            model.mood = mood
            model.tags = tags_json
            session.flush()
            return self._model_to_entry(model)

    def get_entry(self, entry_id: str) -> Entry:
        with self._database.session() as session:
            model = session.get(EntryModel, entry_id)
            if model is None:
                raise EntryNotFoundError(entry_id)
            return self._model_to_entry(model)

    def get_entry_text(self, entry_id: str) -> str:
        return self.get_entry(entry_id).body

    def list_entries(self, *, limit: int = DEFAULT_LIST_LIMIT, offset: int = 0) -> List[Entry]:
        """Return entries newest first."""

        with self._database.session() as session:
            models = (
                session.execute(
                    select(EntryModel)
                    .order_by(EntryModel.created_at.desc())
                    .limit(max(0, limit))
                    .offset(max(0, offset))
                )
                .scalars()
                .all()
            )
            return [self._model_to_entry(model) for model in models]

    def delete_entry(self, entry_id: str) -> bool:
        """Delete ``entry_id`` and its image directory; return whether a row existed.

        Raises :class:`InvalidEntryIdError` before touching the database when
        the id does not name a direct child of ``images_root``.
        """

        image_dir = None
        if self._images_root is not None:
            image_dir = entry_image_dir(self._images_root, entry_id)
        with self._database.session() as session:
            model = session.get(EntryModel, entry_id)
            if model is None:
                return False
            session.delete(model)
        if image_dir is not None and image_dir.is_dir():
            shutil.rmtree(image_dir, ignore_errors=True)
            logger.info(
                "Removed entry images",
                extra={"event": "storage.entry.images_removed", "entry_id": entry_id},
            )
        return True


__all__ = ["Entry", "EntryStore", "entry_image_dir"]
