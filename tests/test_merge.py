from __future__ import annotations

from typing import Any

import pytest

from portaria.exceptions import StorageWriteError
from portaria.models import Meter
from portaria.storage import CollectionStore, MemoryBackend
from portaria.sync.merge import MergeResult, upsert_from_cloud


class _CountingBackend(MemoryBackend):
    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        super().__init__(initial)
        self.writes = 0

    def set(self, key: str, value: bytes) -> None:
        self.writes += 1
        super().set(key, value)


class _ReadOnlyBackend(MemoryBackend):
    def set(self, key: str, value: bytes) -> None:
        raise StorageWriteError("quota exceeded", key=key)


def _store(records: list[dict[str, Any]] | None = None) -> CollectionStore:
    store = CollectionStore(_CountingBackend())
    if records is not None:
        store.save("entries", records)
    return store


def test_merge_adds_new_and_overwrites_synced() -> None:
    store = _store([{"id": "1", "synced": True, "v": "old"}])

    result = upsert_from_cloud(store, "entries", [{"id": "1", "v": "new"}, {"id": "2", "v": "x"}])

    assert result == MergeResult(added=1, updated=1)
    assert store.load("entries") == [
        {"id": "1", "v": "new", "synced": True},
        {"id": "2", "v": "x", "synced": True},
    ]


def test_merge_never_overwrites_pending_local_edit() -> None:
    store = _store([{"id": "1", "synced": False, "v": "mine"}])

    result = upsert_from_cloud(store, "entries", [{"id": "1", "v": "theirs"}])

    assert result == MergeResult(added=0, updated=0)
    assert store.load("entries") == [{"id": "1", "synced": False, "v": "mine"}]


def test_merge_treats_missing_synced_flag_as_dirty() -> None:
    store = _store([{"id": "1", "v": "legacy"}])

    result = upsert_from_cloud(store, "entries", [{"id": "1", "v": "cloud"}])

    assert result.updated == 0
    assert store.load("entries")[0]["v"] == "legacy"


def test_merge_without_changes_does_not_write() -> None:
    store = _store([{"id": "1", "synced": False, "v": "mine"}])
    backend = store.backend
    assert isinstance(backend, _CountingBackend)
    writes_before = backend.writes

    assert upsert_from_cloud(store, "entries", [{"id": "1", "v": "theirs"}]) == MergeResult(0, 0)
    assert upsert_from_cloud(store, "entries", []) == MergeResult(0, 0)

    assert backend.writes == writes_before


def test_merge_into_missing_collection() -> None:
    store = _store()

    result = upsert_from_cloud(store, "entries", [{"id": "a"}, {"id": "b", "synced": False}])

    assert result == MergeResult(added=2, updated=0)
    assert all(record["synced"] is True for record in store.load("entries"))


def test_merge_into_corrupt_collection_starts_fresh() -> None:
    store = CollectionStore(MemoryBackend({"entries": b"<<garbage>>"}))

    result = upsert_from_cloud(store, "entries", [{"id": "a"}])

    assert result == MergeResult(added=1, updated=0)
    assert store.load("entries") == [{"id": "a", "synced": True}]


def test_duplicate_ids_in_one_batch_do_not_duplicate_records() -> None:
    store = _store([])

    result = upsert_from_cloud(store, "entries", [{"id": "a", "v": 1}, {"id": "a", "v": 2}])

    assert result == MergeResult(added=1, updated=1)
    assert store.load("entries") == [{"id": "a", "v": 2, "synced": True}]


def test_items_without_id_are_skipped() -> None:
    store = _store([])

    result = upsert_from_cloud(store, "entries", [{"v": "no id"}, {"id": ""}, "junk", {"id": "ok"}])

    assert result == MergeResult(added=1, updated=0)
    assert [record["id"] for record in store.load("entries")] == ["ok"]


def test_merge_accepts_models() -> None:
    store = _store([])

    result = upsert_from_cloud(store, "meters", [Meter(id="m1", name="Water", synced=False)])

    assert result.added == 1
    assert store.load("meters") == [{"id": "m1", "name": "Water", "synced": True}]


def test_write_failure_degrades_to_zero_counts(caplog: pytest.LogCaptureFixture) -> None:
    store = CollectionStore(_ReadOnlyBackend())

    result = upsert_from_cloud(store, "entries", [{"id": "a"}])

    assert result == MergeResult(0, 0)
    assert not result.changed
    assert "Cloud merge failed" in caplog.text
