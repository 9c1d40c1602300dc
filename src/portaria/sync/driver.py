"""Sync driver: one push/pull pass between the local store and the cloud.

A pass runs three phases, in order:

1. deletions - drain the tombstone queue (deduplicated per table) and clear
   the ids the cloud acknowledged;
2. push - send dirty records in batches and mark acknowledged ones synced;
3. pull - fetch each table and merge it with :func:`upsert_from_cloud`.

A :class:`~portaria.exceptions.CloudError` on one table is recorded in the
report and the pass moves on; the failed work is retried on the next pass.
No retry counters or backoff state are stored locally.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from portaria.exceptions import CloudError
from portaria.sync.merge import MergeResult

if TYPE_CHECKING:
    from portaria.database import LocalDatabase

_logger = logging.getLogger(__name__)


class CloudBackend(Protocol):
    """Remote source of truth, addressed by table name."""

    async def fetch(self, table: str) -> list[dict[str, Any]]: ...

    async def push(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[str]:
        """Upload records; returns the ids the remote accepted."""
        ...

    async def delete(self, table: str, ids: Sequence[str]) -> list[str]:
        """Delete ids remotely; returns the ids confirmed deleted."""
        ...


@dataclass(frozen=True)
class SyncFailure:
    phase: str
    table: str
    message: str


@dataclass
class SyncReport:
    deleted: dict[str, int] = field(default_factory=dict)
    pushed: dict[str, int] = field(default_factory=dict)
    pulled: dict[str, MergeResult] = field(default_factory=dict)
    failures: list[SyncFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def add_failure(self, phase: str, table: str, exc: Exception) -> None:
        self.failures.append(SyncFailure(phase=phase, table=table, message=str(exc)))


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class SyncDriver:
    """Runs sync passes for a :class:`~portaria.database.LocalDatabase`.

    Callers must not run two passes over the same store concurrently.
    """

    def __init__(
        self,
        db: LocalDatabase,
        cloud: CloudBackend,
        *,
        tables: Iterable[str] | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._db = db
        self._cloud = cloud
        syncable = db.syncable
        if tables is None:
            self._tables = dict(syncable)
        else:
            unknown = set(tables) - set(syncable)
            if unknown:
                raise ValueError(f"Unknown sync table(s): {sorted(unknown)}")
            self._tables = {table: syncable[table] for table in tables}
        self._batch_size = batch_size or db.config.sync_batch_size

    @property
    def tables(self) -> list[str]:
        return list(self._tables)

    async def sync(self) -> SyncReport:
        report = SyncReport()
        await self.propagate_deletions(report)
        await self.push(report)
        await self.pull(report)
        if report.ok:
            _logger.debug("Sync pass complete: %s", report)
        else:
            _logger.warning("Sync pass finished with %d failure(s)", len(report.failures))
        return report

    async def propagate_deletions(self, report: SyncReport | None = None) -> SyncReport:
        report = report if report is not None else SyncReport()
        pending: dict[str, list[str]] = {}
        for tombstone in self._db.tombstones.peek_all():
            if tombstone.table not in self._tables:
                continue
            ids = pending.setdefault(tombstone.table, [])
            if tombstone.id not in ids:
                ids.append(tombstone.id)

        for table, ids in pending.items():
            try:
                confirmed = await self._cloud.delete(table, ids)
            except CloudError as exc:
                _logger.warning("Remote delete failed for table=%s: %s", table, exc)
                report.add_failure("delete", table, exc)
                continue
            requested = set(ids)
            accepted = [record_id for record_id in confirmed if record_id in requested]
            self._db.tombstones.clear(accepted)
            report.deleted[table] = len(accepted)
        return report

    async def push(self, report: SyncReport | None = None) -> SyncReport:
        report = report if report is not None else SyncReport()
        for table, key in self._tables.items():
            dirty = self._db.get_unsynced_items(key)
            if not dirty:
                continue
            pushed = 0
            for batch in _chunks(dirty, self._batch_size):
                snapshot = {record.get("id"): record.get("updated_at") for record in batch}
                try:
                    acknowledged = await self._cloud.push(table, batch)
                except CloudError as exc:
                    _logger.warning("Push failed for table=%s: %s", table, exc)
                    report.add_failure("push", table, exc)
                    break
                # Records edited while the push was in flight stay dirty.
                current = {record.get("id"): record.get("updated_at") for record in self._db.get_unsynced_items(key)}
                unchanged = [
                    record_id
                    for record_id in acknowledged
                    if record_id in snapshot and record_id in current and current[record_id] == snapshot[record_id]
                ]
                pushed += self._db.mark_as_synced(key, unchanged)
            report.pushed[table] = pushed
        return report

    async def pull(self, report: SyncReport | None = None) -> SyncReport:
        """Merge each remote table, skipping ids whose local deletion is still pending."""
        report = report if report is not None else SyncReport()
        for table, key in self._tables.items():
            try:
                records = await self._cloud.fetch(table)
            except CloudError as exc:
                _logger.warning("Fetch failed for table=%s: %s", table, exc)
                report.add_failure("pull", table, exc)
                continue
            pending = {tombstone.id for tombstone in self._db.tombstones.peek_all() if tombstone.table == table}
            if pending:
                kept = [record for record in records if record.get("id") not in pending]
                if len(kept) != len(records):
                    skipped = len(records) - len(kept)
                    _logger.debug("Skipping %d pending-deletion record(s) for table=%s", skipped, table)
                records = kept
            report.pulled[table] = self._db.upsert_from_cloud(key, records)
        return report
