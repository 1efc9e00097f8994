"""On-disk persistence for generated comics and avatar portraits."""

from __future__ import annotations

import os
import tempfile
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..images.formats import decode_base64_image, guess_image_extension
from .entries import Entry, entry_image_dir

logger = log_mgr.get_logger().getChild("storage.files")

GALLERY_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".webp"})
DEFAULT_GALLERY_DAYS = 120


@dataclass(frozen=True)
class ComicItem:
    entry_id: str
    image_path: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {"entry_id": self.entry_id, "image_path": self.image_path, "created_at": self.created_at}


@dataclass(frozen=True)
class ComicsByDay:
    date: str
    comics: List[ComicItem]

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "comics": [item.to_dict() for item in self.comics]}


def write_bytes(directory: Path, filename: str, data: bytes) -> Path:
    """Atomically write ``data`` to ``directory/filename`` and return the path."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / filename
    fd, temp_name = tempfile.mkstemp(dir=directory, prefix=f".{filename}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    return target


class FileStore:
    """Path layout and writes under the application data root."""

    def __init__(self, data_root: Path) -> None:
        self._data_root = Path(data_root)

    @property
    def data_root(self) -> Path:
        return self._data_root

    @property
    def images_root(self) -> Path:
        return self._data_root / cfg.IMAGES_DIRNAME

    @property
    def avatars_root(self) -> Path:
        return self._data_root / cfg.AVATARS_DIRNAME

    def entry_images_dir(self, entry_id: str, *, create: bool = True) -> Path:
        directory = entry_image_dir(self.images_root, entry_id)
        if create:
            directory.mkdir(parents=True, exist_ok=True)
        return directory

    def write_bytes(self, directory: Path, filename: str, data: bytes) -> Path:
        path = write_bytes(directory, filename, data)
        logger.info(
            "Wrote image file",
            extra={"event": "storage.file.written", "path": str(path), "bytes": len(data)},
        )
        return path

    def save_panel_image(self, image_base64: str, entry_id: str, panel_id: str) -> Path:
        """Decode ``image_base64`` and store it as ``<entry_id>/<panel_id>.png``."""

        data = decode_base64_image(image_base64)
        return self.write_bytes(self.entry_images_dir(entry_id), f"{panel_id}.png", data)

    def save_avatar_image(self, image_base64: str, *, timestamp: Optional[int] = None) -> Path:
        """Replace any stored avatar with ``image_base64`` and return the new path."""

        data = decode_base64_image(image_base64)
        extension = guess_image_extension(data)
        directory = self.avatars_root
        directory.mkdir(parents=True, exist_ok=True)
        for existing in directory.iterdir():
            if existing.is_file() and existing.name.startswith("avatar"):
                existing.unlink(missing_ok=True)
        stamp = int(time.time()) if timestamp is None else int(timestamp)
        return self.write_bytes(directory, f"avatar-{stamp}.{extension}", data)

    def newest_entry_image(self, entry_id: str) -> Optional[Path]:
        directory = self.entry_images_dir(entry_id, create=False)
        if not directory.is_dir():
            return None
        best: Optional[Path] = None
        best_mtime = float("-inf")
        for candidate in directory.iterdir():
            if not candidate.is_file() or candidate.suffix.lower() not in GALLERY_EXTENSIONS:
                continue
            mtime = candidate.stat().st_mtime
            if best is None or mtime > best_mtime:
                best, best_mtime = candidate, mtime
        return best

    def list_comics_by_day(
        self,
        entries: Iterable[Entry],
        *,
        limit_days: int = DEFAULT_GALLERY_DAYS,
    ) -> List[ComicsByDay]:
        """Group each entry's newest image by entry creation day, newest day first."""

        by_day: Dict[str, List[ComicItem]] = defaultdict(list)
        for entry in entries:
            image = self.newest_entry_image(entry.id)
            if image is None:
                continue
            created = entry.created_at.astimezone(timezone.utc)
            by_day[created.date().isoformat()].append(
                ComicItem(entry_id=entry.id, image_path=str(image), created_at=created.isoformat())
            )
        days = sorted(by_day, reverse=True)[: max(0, limit_days)]
        return [ComicsByDay(date=day, comics=by_day[day]) for day in days]


__all__ = [
    "ComicItem",
    "ComicsByDay",
    "DEFAULT_GALLERY_DAYS",
    "FileStore",
    "write_bytes",
]
