from __future__ import annotations

import json
from pathlib import Path

import pytest

from portaria.exceptions import StorageWriteError
from portaria.storage import CollectionStore, FileBackend, MemoryBackend, ReadStatus, SqliteBackend


def test_missing_key_reads_as_empty() -> None:
    store = CollectionStore(MemoryBackend())

    result = store.read("entries")

    assert result.records == []
    assert result.status == ReadStatus.MISSING
    assert store.load("entries") == []


@pytest.mark.parametrize(
    "raw",
    [
        b"not json at all {",
        b"\xff\xfe\x00garbage",
        b'{"id": "1"}',
        b'"just a string"',
        b"42",
    ],
)
def test_corrupt_or_non_array_data_recovers_as_empty(raw: bytes) -> None:
    store = CollectionStore(MemoryBackend({"entries": raw}))

    result = store.read("entries")

    assert result.records == []
    assert result.status == ReadStatus.RECOVERED
    assert result.recovered
    assert store.load("entries") == []


def test_non_object_elements_are_dropped() -> None:
    store = CollectionStore(MemoryBackend({"entries": b'[{"id": "1"}, 7, null, "x", {"id": "2"}]'}))

    result = store.read("entries")

    assert [record["id"] for record in result.records] == ["1", "2"]
    assert result.status == ReadStatus.RECOVERED


def test_save_overwrites_previous_content() -> None:
    store = CollectionStore(MemoryBackend())
    store.save("meters", [{"id": "a"}, {"id": "b"}])
    store.save("meters", [{"id": "c"}])

    result = store.read("meters")
    assert result.status == ReadStatus.OK
    assert result.records == [{"id": "c"}]


def test_unserializable_value_raises_write_error() -> None:
    store = CollectionStore(MemoryBackend())

    with pytest.raises(StorageWriteError) as exc_info:
        store.save("meters", [{"id": "a", "when": object()}])

    assert exc_info.value.key == "meters"
    assert store.load("meters") == []


def test_single_value_slot_ignores_non_objects() -> None:
    backend = MemoryBackend({"settings": b"[1, 2]", "draft": b"{{{"})
    store = CollectionStore(backend)

    assert store.load_value("settings") is None
    assert store.load_value("draft") is None
    assert store.load_value("absent") is None

    store.save_value("settings", {"theme": "dark"})
    assert store.load_value("settings") == {"theme": "dark"}


def test_file_backend_persists_across_instances(tmp_path: Path) -> None:
    CollectionStore(FileBackend(tmp_path)).save("portaria_express_entries", [{"id": "1", "synced": False}])

    reopened = CollectionStore(FileBackend(tmp_path))

    assert reopened.load("portaria_express_entries") == [{"id": "1", "synced": False}]
    assert FileBackend(tmp_path).keys() == ["portaria_express_entries"]
    assert not [path for path in tmp_path.iterdir() if path.name.startswith(".tmp-")]


def test_file_backend_corrupt_file_reads_as_empty(tmp_path: Path) -> None:
    backend = FileBackend(tmp_path)
    backend.set("entries", b"[]")
    (tmp_path / "entries.json").write_bytes(b"\x00\x01 truncated [")

    assert CollectionStore(backend).read("entries").status == ReadStatus.RECOVERED


def test_file_backend_write_failure_keeps_old_value(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    backend = FileBackend(tmp_path)
    backend.set("entries", json.dumps([{"id": "old"}]).encode())

    def failing_replace(_src: str, _dst: str) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("portaria.storage.backends.os.replace", failing_replace)

    with pytest.raises(StorageWriteError):
        backend.set("entries", b'[{"id": "new"}]')

    assert json.loads(backend.get("entries") or b"") == [{"id": "old"}]
    assert not [path for path in tmp_path.iterdir() if path.name.startswith(".tmp-")]


def test_sqlite_backend_persists_and_batches(tmp_path: Path) -> None:
    path = tmp_path / "store.sqlite3"
    backend = SqliteBackend(path)
    store = CollectionStore(backend)
    store.save_many({"entries": [{"id": "1"}], "deleted": [{"id": "2", "table": "t", "timestamp": "x"}]})
    backend.close()

    reopened = SqliteBackend(path)
    assert CollectionStore(reopened).load("entries") == [{"id": "1"}]
    assert CollectionStore(reopened).load("deleted")[0]["id"] == "2"
    assert reopened.keys() == ["deleted", "entries"]
    reopened.delete("entries")
    assert reopened.get("entries") is None
    reopened.close()


def test_backend_atomicity_flags() -> None:
    assert MemoryBackend.atomic_batches is True
    assert SqliteBackend.atomic_batches is True
    assert FileBackend.atomic_batches is False
