"""Per-entity lifecycle helpers built on the keyed collection store.

Every mutation marks the record dirty (``synced=False``) and stamps
``updated_at``; deletions also queue a tombstone so the next sync pass can
propagate them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from portaria._constants import BREAKFAST_DELIVERED
from portaria._ids import new_id
from portaria.models import (
    BreakfastRecord,
    Meter,
    MeterReading,
    PackageRecord,
    PatrolRecord,
    SyncRecord,
    VehicleEntry,
    WorkShift,
    iso_timestamp,
    parse_timestamp,
    utcnow,
)
from portaria.storage import CollectionStore
from portaria.sync.bookkeeping import get_unsynced_items, mark_as_synced
from portaria.sync.merge import MergeResult, upsert_from_cloud
from portaria.sync.tombstones import TombstoneQueue

_logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=SyncRecord)

_ONE_TICK = timedelta(microseconds=1)
_OLDEST = datetime.min.replace(tzinfo=UTC)


class EntityRepository(Generic[RecordT]):
    """Add/update/delete helpers for one collection of ``RecordT``."""

    def __init__(
        self,
        store: CollectionStore,
        *,
        key: str,
        table: str,
        model: type[RecordT],
        tombstones: TombstoneQueue,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._key = key
        self._table = table
        self._model = model
        self._tombstones = tombstones
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    @property
    def table(self) -> str:
        return self._table

    @property
    def model(self) -> type[RecordT]:
        return self._model

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _coerce(self, record: RecordT | Mapping[str, Any]) -> RecordT:
        if isinstance(record, self._model):
            return record
        if isinstance(record, SyncRecord):
            return self._model.model_validate(record.to_storage())
        return self._model.model_validate(dict(record))

    def _parse(self, raw: dict[str, Any]) -> RecordT | None:
        try:
            return self._model.model_validate(raw)
        except ValidationError:
            _logger.warning("Skipping malformed %s record id=%r", self._model.__name__, raw.get("id"))
            return None

    def _stamp(self, previous: str | None = None) -> str:
        """Current time, strictly later than *previous* when one is given."""
        now = self._clock()
        before = parse_timestamp(previous)
        if before is not None and now <= before:
            now = before + _ONE_TICK
        return iso_timestamp(now)

    def _dirty(self, record: RecordT, *, previous: str | None = None) -> RecordT:
        return record.model_copy(update={"synced": False, "updated_at": self._stamp(previous)})

    def _patched(self, record: RecordT, updates: Mapping[str, Any]) -> RecordT:
        data = record.to_storage()
        data.update({self._model.storage_key(name): value for name, value in updates.items()})
        return self._model.model_validate(data)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def all(self) -> list[RecordT]:
        return [record for raw in self._store.load(self._key) if (record := self._parse(raw)) is not None]

    def get(self, record_id: str) -> RecordT | None:
        for raw in self._store.load(self._key):
            if raw.get("id") == record_id:
                return self._parse(raw)
        return None

    def save_all(self, records: Sequence[RecordT | Mapping[str, Any]]) -> None:
        self._store.save(self._key, [self._coerce(record) for record in records])

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, record: RecordT | Mapping[str, Any]) -> RecordT:
        """Append *record* as a new dirty record and return what was stored.

        Raises
        ------
        ValueError
            *record* carries an id that is already stored; use :meth:`update`.
        """
        item = self._coerce(record)
        raw = self._store.load(self._key)
        if item.id and any(current.get("id") == item.id for current in raw):
            raise ValueError(f"{self._table} id {item.id!r} already exists")
        changes: dict[str, Any] = {}
        if not item.id:
            changes["id"] = new_id()
        created_field = self._model.CREATED_FIELD
        stamp = self._stamp()
        if created_field is not None and not getattr(item, created_field, None):
            changes[created_field] = stamp
        stored = item.model_copy(update={**changes, "synced": False, "updated_at": stamp})
        raw.append(stored.to_storage())
        self._store.save(self._key, raw)
        _logger.debug("Added %s id=%s", self._table, stored.id)
        return stored

    def update(self, record: RecordT | Mapping[str, Any]) -> RecordT | None:
        """Replace the stored record with the same id; unknown ids are ignored."""
        item = self._coerce(record)
        raw = self._store.load(self._key)
        for position, current in enumerate(raw):
            if current.get("id") == item.id:
                previous = current.get("updated_at")
                stored = self._dirty(item, previous=previous if isinstance(previous, str) else None)
                raw[position] = stored.to_storage()
                self._store.save(self._key, raw)
                _logger.debug("Updated %s id=%s", self._table, stored.id)
                return stored
        _logger.debug("Ignoring update for unknown %s id=%s", self._table, item.id)
        return None

    def delete(self, record_id: str) -> None:
        """Remove the record and queue a tombstone for it."""
        self.delete_many([record_id])

    def delete_many(self, record_ids: Iterable[str]) -> int:
        """Remove records by id, queueing one tombstone per id.

        The reduced collection and the grown tombstone queue are written with a
        single ``save_many`` call: atomic on transactional backends, two
        ordered writes (collection first) otherwise.
        """
        doomed = list(dict.fromkeys(record_ids))
        if not doomed:
            return 0
        targets = set(doomed)
        raw = self._store.load(self._key)
        remaining = [item for item in raw if item.get("id") not in targets]
        queue = self._tombstones.raw_queue()
        queue.extend(self._tombstones.entry_for(record_id, self._table).to_storage() for record_id in doomed)
        self._store.save_many({self._key: remaining, self._tombstones.key: queue})
        removed = len(raw) - len(remaining)
        _logger.debug("Deleted %d %s record(s); queued %d tombstone(s)", removed, self._table, len(doomed))
        return removed

    def import_batch(self, records: Iterable[RecordT | Mapping[str, Any]], origin: str | None = None) -> int:
        """Additive import: insert records whose id is not present yet.

        Existing ids are never overwritten. Returns the number inserted.
        """
        raw = self._store.load(self._key)
        known = {item.get("id") for item in raw}
        inserted = 0
        for record in records:
            item = self._coerce(record)
            if item.id and item.id in known:
                continue
            changes: dict[str, Any] = {"synced": False}
            if not item.id:
                changes["id"] = new_id()
            if origin is not None:
                changes["origin"] = str(origin)
            stored = item.model_copy(update=changes)
            known.add(stored.id)
            raw.append(stored.to_storage())
            inserted += 1
        if inserted:
            self._store.save(self._key, raw)
            _logger.debug("Imported %d %s record(s) origin=%s", inserted, self._table, origin)
        return inserted

    # ------------------------------------------------------------------
    # Sync pass-throughs
    # ------------------------------------------------------------------

    def upsert_from_cloud(self, records: Iterable[RecordT | Mapping[str, Any]]) -> MergeResult:
        return upsert_from_cloud(self._store, self._key, records)

    def unsynced(self) -> list[dict[str, Any]]:
        return get_unsynced_items(self._store, self._key)

    def mark_as_synced(self, ids: Iterable[str]) -> int:
        return mark_as_synced(self._store, self._key, ids)


class VehicleEntryRepository(EntityRepository[VehicleEntry]):
    def import_entries(self, entries: Iterable[VehicleEntry | Mapping[str, Any]], origin: str) -> int:
        return self.import_batch(entries, origin)

    def delete_profile_entries(self, name: str, plate: str) -> int:
        """Delete every entry for a driver/plate pair (case-insensitive)."""
        doomed = [entry.id for entry in self.all() if entry.matches_profile(name, plate)]
        return self.delete_many(doomed)

    def update_profile_entries(self, old_name: str, old_plate: str, updates: Mapping[str, Any]) -> int:
        """Apply *updates* to every entry of a driver/plate pair; returns how many changed."""
        raw = self._store.load(self._key)
        changed = 0
        for position, current in enumerate(raw):
            entry = self._parse(current)
            if entry is None or not entry.matches_profile(old_name, old_plate):
                continue
            raw[position] = self._dirty(self._patched(entry, updates), previous=entry.updated_at).to_storage()
            changed += 1
        if changed:
            self._store.save(self._key, raw)
        return changed


class MeterRepository(EntityRepository[Meter]):
    pass


class MeterReadingRepository(EntityRepository[MeterReading]):
    def for_meter(self, meter_id: str) -> list[MeterReading]:
        """Readings of one meter, newest first."""
        readings = [reading for reading in self.all() if reading.meter_id == meter_id]
        return sorted(readings, key=lambda r: parse_timestamp(r.timestamp) or _OLDEST, reverse=True)


class PackageRepository(EntityRepository[PackageRecord]):
    pass


class ShiftRepository(EntityRepository[WorkShift]):
    def record(self, shift: WorkShift | Mapping[str, Any]) -> WorkShift:
        """Upsert: update the shift if its id is stored, add it otherwise."""
        item = self._coerce(shift)
        if item.id:
            stored = self.update(item)
            if stored is not None:
                return stored
        return self.add(item)


class PatrolRepository(EntityRepository[PatrolRecord]):
    pass


class BreakfastRepository(EntityRepository[BreakfastRecord]):
    def mark_delivered(self, record_id: str, operator_name: str) -> BreakfastRecord | None:
        current = self.get(record_id)
        if current is None:
            return None
        return self.update(
            current.model_copy(
                update={
                    "status": BREAKFAST_DELIVERED,
                    "delivered_at": iso_timestamp(self._clock()),
                    "operator_name": operator_name,
                }
            )
        )

    def clear_by_date(self, date: str) -> int:
        """Remove the whole list for *date*, one tombstone per record."""
        return self.delete_many([record.id for record in self.all() if record.date == date])
