from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from toonana.errors import EntryNotFoundError, InvalidEntryIdError
from toonana.storage.database import Database, EntryModel
from toonana.storage.entries import PREVIEW_LENGTH, EntryStore


@pytest.fixture
def database(tmp_path: Path):
    db = Database.for_path(tmp_path / "app.sqlite")
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
def store(database: Database, tmp_path: Path) -> EntryStore:
    return EntryStore(database, images_root=tmp_path / "images")


def test_upsert_creates_and_updates_entry(store: EntryStore) -> None:
    created = store.upsert_entry("first draft", mood="calm", tags=["walk", "dog"])

    updated = store.upsert_entry("second draft", entry_id=created.id, mood="happy")

    assert updated.id == created.id
    assert updated.created_at == created.created_at
    assert updated.updated_at >= created.updated_at
    fetched = store.get_entry(created.id)
    assert fetched.body == "second draft"
    assert fetched.mood == "happy"
    assert fetched.tags is None
    assert fetched.created_at.tzinfo is not None


def test_tags_round_trip_as_json(store: EntryStore) -> None:
    entry = store.upsert_entry("body", tags={"people": ["friend"]})

    assert store.get_entry(entry.id).tags == {"people": ["friend"]}


def test_get_entry_text_raises_for_missing_entry(store: EntryStore) -> None:
    with pytest.raises(EntryNotFoundError, match="entry not found: nope"):
        store.get_entry_text("nope")


def test_list_entries_newest_first_with_paging(store: EntryStore, database: Database) -> None:
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    with database.session() as session:
        for index in range(3):
            stamp = base + timedelta(days=index)
            session.add(
                EntryModel(id=f"e{index}", created_at=stamp, updated_at=stamp, body=f"body {index}")
            )

    assert [entry.id for entry in store.list_entries()] == ["e2", "e1", "e0"]
    assert [entry.id for entry in store.list_entries(limit=1, offset=1)] == ["e1"]


def test_preview_is_truncated(store: EntryStore) -> None:
    entry = store.upsert_entry("x" * (PREVIEW_LENGTH + 20))

    payload = entry.to_dict(include_body=False)

    assert "body" not in payload
    assert len(entry.preview) <= PREVIEW_LENGTH + 3
    assert payload["body_preview"] == entry.preview


def test_delete_entry_removes_row_and_images(store: EntryStore, tmp_path: Path) -> None:
    entry = store.upsert_entry("to delete")
    image_dir = tmp_path / "images" / entry.id
    image_dir.mkdir(parents=True)
    (image_dir / "panel.png").write_bytes(b"x")

    assert store.delete_entry(entry.id) is True
    assert not image_dir.exists()
    assert store.delete_entry(entry.id) is False
    with pytest.raises(EntryNotFoundError):
        store.get_entry(entry.id)


@pytest.mark.parametrize("entry_id", [".", "..", "../outside", "nested/id", ""])
def test_delete_entry_refuses_ids_outside_images_root(
    store: EntryStore, tmp_path: Path, entry_id: str
) -> None:
    kept = tmp_path / "images" / "kept"
    kept.mkdir(parents=True)
    (kept / "panel.png").write_bytes(b"x")
    settings_file = tmp_path / "settings.json"
    settings_file.write_text("{}", encoding="utf-8")

    with pytest.raises(InvalidEntryIdError):
        store.delete_entry(entry_id)

    assert (kept / "panel.png").exists()
    assert settings_file.exists()


def test_delete_missing_entry_keeps_its_folder(store: EntryStore, tmp_path: Path) -> None:
    orphan = tmp_path / "images" / "orphan"
    orphan.mkdir(parents=True)
    (orphan / "panel.png").write_bytes(b"x")

    assert store.delete_entry("orphan") is False
    assert (orphan / "panel.png").exists()


def test_upsert_rejects_traversing_entry_id(store: EntryStore) -> None:
    with pytest.raises(InvalidEntryIdError, match="invalid entry id"):
        store.upsert_entry("body", entry_id="..")

    assert store.list_entries() == []
