from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from portaria.database import LocalDatabase
from portaria.exceptions import StorageWriteError
from portaria.models import ImportOrigin, Meter, VehicleEntry, WorkShift
from portaria.storage import FileBackend, MemoryBackend, SqliteBackend


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def db(clock: _Clock) -> LocalDatabase:
    return LocalDatabase(MemoryBackend(), clock=clock)


def test_add_assigns_id_and_marks_dirty(db: LocalDatabase) -> None:
    stored = db.meters.add({"name": "A"})

    assert stored.id
    assert stored.synced is False
    assert stored.updated_at == "2026-03-01T12:00:00.000000Z"
    assert stored.created_at == stored.updated_at

    raw = db.store.load(db.meters.key)
    assert raw == [
        {
            "id": stored.id,
            "name": "A",
            "synced": False,
            "createdAt": "2026-03-01T12:00:00.000000Z",
            "updated_at": "2026-03-01T12:00:00.000000Z",
        }
    ]


def test_add_keeps_given_id_creation_time_and_unknown_fields(db: LocalDatabase) -> None:
    stored = db.entries.add(
        {"id": "e1", "driverName": "Ana", "createdAt": "2026-01-01T00:00:00Z", "badgeColor": "blue"}
    )

    assert stored.id == "e1"
    assert stored.created_at == "2026-01-01T00:00:00Z"
    raw = db.store.load(db.entries.key)[0]
    assert raw["badgeColor"] == "blue"
    assert raw["driverName"] == "Ana"


def test_update_restamps_and_marks_dirty(db: LocalDatabase, clock: _Clock) -> None:
    stored = db.meters.add({"name": "Water"})
    db.meters.mark_as_synced([stored.id])
    clock.advance(5)

    updated = db.meters.update(stored.model_copy(update={"name": "Water (main)"}))

    assert updated is not None
    assert updated.synced is False
    assert updated.updated_at == "2026-03-01T12:00:05.000000Z"
    assert db.meters.get(stored.id) == updated
    assert [item["id"] for item in db.meters.unsynced()] == [stored.id]


def test_update_timestamp_strictly_increases_with_stalled_clock(db: LocalDatabase) -> None:
    stored = db.meters.add({"name": "Gas"})

    first = db.meters.update(stored)
    second = db.meters.update(stored)

    assert first is not None and second is not None
    assert stored.updated_at is not None and first.updated_at is not None and second.updated_at is not None
    assert stored.updated_at < first.updated_at < second.updated_at
    assert second.updated_at == "2026-03-01T12:00:00.000002Z"


def test_update_unknown_id_is_ignored(db: LocalDatabase) -> None:
    db.meters.add({"name": "A"})
    before = db.store.load(db.meters.key)

    assert db.meters.update(Meter(id="missing", name="ghost")) is None
    assert db.store.load(db.meters.key) == before


def test_delete_removes_record_and_queues_tombstone(db: LocalDatabase) -> None:
    keep = db.entries.add(VehicleEntry(driver_name="Ana"))
    doomed = db.entries.add(VehicleEntry(driver_name="Bruno"))

    db.entries.delete(doomed.id)

    assert [entry.id for entry in db.entries.all()] == [keep.id]
    queue = db.get_deleted_queue()
    assert [(t.id, t.table) for t in queue] == [(doomed.id, "vehicle_entries")]
    assert queue[0].timestamp == "2026-03-01T12:00:00.000000Z"


def test_delete_of_absent_id_still_queues_tombstone(db: LocalDatabase) -> None:
    assert db.packages.delete_many(["never-stored"]) == 0
    assert [t.id for t in db.get_deleted_queue()] == ["never-stored"]


def test_file_backend_writes_collection_before_tombstone(tmp_path: Path, clock: _Clock) -> None:
    class _QueueWriteFails(FileBackend):
        def set(self, key: str, value: bytes) -> None:
            if key.endswith("deleted_queue"):
                raise StorageWriteError("disk full", key=key)
            super().set(key, value)

    db = LocalDatabase(_QueueWriteFails(tmp_path), clock=clock)
    stored = db.meters.add({"name": "A"})

    with pytest.raises(StorageWriteError):
        db.meters.delete(stored.id)

    assert db.meters.all() == []
    assert db.get_deleted_queue() == []


def test_sqlite_delete_rolls_back_when_tombstone_write_fails(tmp_path: Path, clock: _Clock) -> None:
    path = tmp_path / "portaria.sqlite3"
    backend = SqliteBackend(path)
    db = LocalDatabase(backend, clock=clock)
    stored = db.meters.add({"name": "A"})

    conn = sqlite3.connect(path)
    with conn:
        conn.execute(
            "CREATE TRIGGER queue_full BEFORE INSERT ON kv WHEN NEW.key LIKE '%deleted_queue' "
            "BEGIN SELECT RAISE(ABORT, 'quota exceeded'); END"
        )
    conn.close()

    with pytest.raises(StorageWriteError):
        db.meters.delete(stored.id)

    assert [meter.id for meter in db.meters.all()] == [stored.id]
    assert db.get_deleted_queue() == []
    backend.close()


def test_import_is_additive(db: LocalDatabase) -> None:
    db.entries.add({"id": "e1", "driverName": "Local"})

    inserted = db.entries.import_entries(
        [
            {"id": "e1", "driverName": "Imported"},
            {"id": "e2", "driverName": "New"},
            {"id": "e2", "driverName": "Duplicate in batch"},
            {"driverName": "No id"},
        ],
        ImportOrigin.SPREADSHEET,
    )

    assert inserted == 2
    entries = {entry.id: entry for entry in db.entries.all()}
    assert entries["e1"].driver_name == "Local"
    assert entries["e1"].origin is None
    assert entries["e2"].driver_name == "New"
    assert entries["e2"].origin == "spreadsheet"
    assert len(entries) == 3
    assert all(not entry.synced for entry in entries.values())


def test_profile_helpers_match_case_insensitively(db: LocalDatabase, clock: _Clock) -> None:
    db.entries.add({"driverName": "Ana Souza", "vehiclePlate": "ABC1D23"})
    db.entries.add({"driverName": "ana souza", "vehiclePlate": "abc1d23"})
    other = db.entries.add({"driverName": "Ana Souza", "vehiclePlate": "XYZ9999"})
    clock.advance()

    changed = db.entries.update_profile_entries("ANA SOUZA", "Abc1d23", {"vehicle_plate": "NEW0A00", "company": "ACME"})

    assert changed == 2
    renamed = [entry for entry in db.entries.all() if entry.vehicle_plate == "NEW0A00"]
    assert len(renamed) == 2
    assert all(entry.company == "ACME" and entry.updated_at == "2026-03-01T12:00:01.000000Z" for entry in renamed)

    assert db.entries.delete_profile_entries("ana souza", "new0a00") == 2
    assert [entry.id for entry in db.entries.all()] == [other.id]
    assert len(db.get_deleted_queue()) == 2


def test_readings_for_meter_newest_first(db: LocalDatabase) -> None:
    db.readings.add({"meterId": "m1", "value": 10, "timestamp": "2026-01-01T08:00:00Z"})
    db.readings.add({"meterId": "m1", "value": 30, "timestamp": "2026-01-03T08:00:00Z"})
    db.readings.add({"meterId": "m2", "value": 99, "timestamp": "2026-01-05T08:00:00Z"})
    db.readings.add({"meterId": "m1", "value": 20, "timestamp": "2026-01-02T08:00:00Z"})

    assert [reading.value for reading in db.readings.for_meter("m1")] == [30, 20, 10]


def test_shift_record_upserts(db: LocalDatabase, clock: _Clock) -> None:
    opened = db.shifts.record(WorkShift(operator_name="joao", start_time="2026-03-01T12:00:00Z"))
    clock.advance(3600)

    closed = db.shifts.record(opened.model_copy(update={"end_time": "2026-03-01T13:00:00Z"}))

    assert closed.id == opened.id
    assert [(shift.start_time, shift.end_time) for shift in db.shifts.all()] == [
        ("2026-03-01T12:00:00Z", "2026-03-01T13:00:00Z")
    ]


def test_shift_without_start_time_is_stored_as_given(db: LocalDatabase) -> None:
    stored = db.shifts.record({"operatorName": "joao"})

    assert stored.start_time is None
    assert "startTime" not in db.store.load(db.shifts.key)[0]


def test_add_rejects_existing_id(db: LocalDatabase) -> None:
    db.meters.add({"id": "m1", "name": "Water"})

    with pytest.raises(ValueError, match="already exists"):
        db.meters.add({"id": "m1", "name": "Water again"})

    assert [(meter.id, meter.name) for meter in db.meters.all()] == [("m1", "Water")]


def test_breakfast_delivery_and_daily_clear(db: LocalDatabase, clock: _Clock) -> None:
    today = db.breakfast.add({"name": "Carla", "date": "2026-03-01"})
    db.breakfast.add({"name": "Davi", "date": "2026-03-01"})
    tomorrow = db.breakfast.add({"name": "Eva", "date": "2026-03-02"})
    clock.advance(60)

    delivered = db.breakfast.mark_delivered(today.id, "joao")

    assert delivered is not None
    assert delivered.status == "Entregue"
    assert delivered.operator_name == "joao"
    assert delivered.delivered_at == "2026-03-01T12:01:00.000000Z"
    assert db.breakfast.mark_delivered("missing", "joao") is None

    assert db.breakfast.clear_by_date("2026-03-01") == 2
    assert [record.id for record in db.breakfast.all()] == [tomorrow.id]
    assert {t.table for t in db.get_deleted_queue()} == {"breakfast_list"}


def test_malformed_stored_records_are_skipped(db: LocalDatabase) -> None:
    db.store.save(db.meters.key, [{"id": "ok", "name": "A"}, {"id": "bad", "name": ["not", "a", "string"]}])

    assert [meter.id for meter in db.meters.all()] == ["ok"]
