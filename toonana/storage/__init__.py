"""Local persistence for journal entries and generated images."""

from .database import Database
from .entries import Entry, EntryStore
from .files import ComicItem, ComicsByDay, FileStore, write_bytes

__all__ = [
    "ComicItem",
    "ComicsByDay",
    "Database",
    "Entry",
    "EntryStore",
    "FileStore",
    "write_bytes",
]
