"""High-level facade over every collection of the local store."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from portaria import _constants as C
from portaria.app_data import DraftStore, LogBook, SettingsStore, UsersCache
from portaria.backup import export_backup, import_backup
from portaria.config import PortariaConfig
from portaria.models import (
    BreakfastRecord,
    Meter,
    MeterReading,
    PackageRecord,
    PatrolRecord,
    Tombstone,
    VehicleEntry,
    WorkShift,
    utcnow,
)
from portaria.repositories import (
    BreakfastRepository,
    EntityRepository,
    MeterReadingRepository,
    MeterRepository,
    PackageRepository,
    PatrolRepository,
    ShiftRepository,
    VehicleEntryRepository,
)
from portaria.storage import CollectionStore, KeyValueBackend, open_backend
from portaria.sync.bookkeeping import get_unsynced_items, mark_as_synced
from portaria.sync.merge import MergeResult, upsert_from_cloud
from portaria.sync.tombstones import TombstoneQueue

_logger = logging.getLogger(__name__)


class LocalDatabase:
    """Offline-first store for every entity type of the gate application.

    Usage::

        db = LocalDatabase.open(PortariaConfig.from_env())
        entry = db.entries.add({"driverName": "Ana", "vehiclePlate": "ABC1D23"})
        db.logs.add("portaria", "entry created", operator="joao", reference_id=entry.id)

    Sync drivers use :meth:`get_unsynced_items`, :meth:`mark_as_synced`,
    :meth:`upsert_from_cloud` and the tombstone helpers with the storage
    keys exposed by :attr:`syncable`.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        config: PortariaConfig | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config or PortariaConfig(backend="memory")
        self._store = CollectionStore(backend)
        key = self._config.key

        self.tombstones = TombstoneQueue(self._store, key(C.DELETED_QUEUE_SLOT), clock=clock)

        def repo(cls: type[Any], slot: str, table: str, model: type[Any]) -> Any:
            return cls(self._store, key=key(slot), table=table, model=model, tombstones=self.tombstones, clock=clock)

        self.entries: VehicleEntryRepository = repo(VehicleEntryRepository, C.ENTRIES_SLOT, C.ENTRIES_TABLE, VehicleEntry)
        self.meters: MeterRepository = repo(MeterRepository, C.METERS_SLOT, C.METERS_TABLE, Meter)
        self.readings: MeterReadingRepository = repo(
            MeterReadingRepository, C.READINGS_SLOT, C.READINGS_TABLE, MeterReading
        )
        self.packages: PackageRepository = repo(PackageRepository, C.PACKAGES_SLOT, C.PACKAGES_TABLE, PackageRecord)
        self.shifts: ShiftRepository = repo(ShiftRepository, C.SHIFTS_SLOT, C.SHIFTS_TABLE, WorkShift)
        self.breakfast: BreakfastRepository = repo(
            BreakfastRepository, C.BREAKFAST_SLOT, C.BREAKFAST_TABLE, BreakfastRecord
        )
        self.patrols: PatrolRepository = repo(PatrolRepository, C.PATROLS_SLOT, C.PATROLS_TABLE, PatrolRecord)

        self.logs = LogBook(self._store, key=key(C.LOGS_SLOT), table=C.LOGS_TABLE, cap=self._config.log_cap, clock=clock)
        self.settings = SettingsStore(self._store, key=key(C.SETTINGS_SLOT), clock=clock)
        self.users = UsersCache(self._store, key=key(C.USERS_CACHE_SLOT))
        self.drafts = DraftStore(self._store, key=key(C.DRAFT_SLOT))

    @classmethod
    def open(cls, config: PortariaConfig, **kwargs: Any) -> LocalDatabase:
        """Open the backend selected by *config*."""
        _logger.debug("Opening %s store in %s", config.backend, config.data_dir)
        return cls(open_backend(config), config, **kwargs)

    @property
    def config(self) -> PortariaConfig:
        return self._config

    @property
    def store(self) -> CollectionStore:
        return self._store

    @property
    def repositories(self) -> dict[str, EntityRepository[Any]]:
        """Entity repositories keyed by remote table name."""
        repos: list[EntityRepository[Any]] = [
            self.entries,
            self.meters,
            self.readings,
            self.packages,
            self.shifts,
            self.breakfast,
            self.patrols,
        ]
        return {repo.table: repo for repo in repos}

    @property
    def syncable(self) -> dict[str, str]:
        """Remote table name -> storage key, for every sync-tracked collection."""
        tables = {table: repo.key for table, repo in self.repositories.items()}
        tables[self.logs.table] = self.logs.key
        return tables

    # ------------------------------------------------------------------
    # Sync core, addressed by storage key
    # ------------------------------------------------------------------

    def upsert_from_cloud(self, key: str, cloud_items: Iterable[Any]) -> MergeResult:
        return upsert_from_cloud(self._store, key, cloud_items)

    def get_unsynced_items(self, key: str) -> list[dict[str, Any]]:
        return get_unsynced_items(self._store, key)

    def mark_as_synced(self, key: str, ids: Iterable[str]) -> int:
        return mark_as_synced(self._store, key, ids)

    def mark_for_deletion(self, record_id: str, table: str) -> Tombstone:
        return self.tombstones.enqueue(record_id, table)

    def get_deleted_queue(self) -> list[Tombstone]:
        return self.tombstones.peek_all()

    def clear_deleted_queue(self, ids: Iterable[str]) -> int:
        return self.tombstones.clear(ids)

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def export_backup(self) -> str:
        return export_backup(self)

    def import_backup(self, payload: str | bytes) -> list[str]:
        return import_backup(self, payload)
