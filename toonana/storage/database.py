"""SQLAlchemy engine, session helpers and models for the local entry database."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import DateTime, Engine, Index, String, Text, create_engine, text
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker


class Base(DeclarativeBase):
    """Shared declarative base for toonana models."""


class EntryModel(Base):
    """Journal entry used as source text for comic jobs."""

    __tablename__ = "entries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mood: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("idx_entries_created", text("created_at DESC")),)


def sqlite_url(path: Path) -> str:
    return f"sqlite:///{Path(path).expanduser()}"


class Database:
    """Engine plus session factory bound to one database URL."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self._engine: Engine = create_engine(url, echo=echo)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)

    @classmethod
    def for_path(cls, path: Path) -> "Database":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return cls(sqlite_url(path))

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()


__all__ = ["Base", "Database", "EntryModel", "sqlite_url"]
