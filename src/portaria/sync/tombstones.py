"""Deletion tombstone queue.

A single queue spans every collection. A tombstone is pending while it sits
in the queue and confirmed once :meth:`TombstoneQueue.clear` removes it;
retry policy belongs to the sync driver, not to the queue.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from pydantic import ValidationError

from portaria.models import Tombstone, iso_timestamp, utcnow
from portaria.storage import CollectionStore

_logger = logging.getLogger(__name__)


class TombstoneQueue:
    def __init__(
        self,
        store: CollectionStore,
        key: str,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._key = key
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    def entry_for(self, record_id: str, table: str) -> Tombstone:
        return Tombstone(id=record_id, table=table, timestamp=iso_timestamp(self._clock()))

    def raw_queue(self) -> list[dict]:
        return self._store.load(self._key)

    def enqueue(self, record_id: str, table: str) -> Tombstone:
        """Append a tombstone; duplicates for the same id are kept."""
        entry = self.entry_for(record_id, table)
        queue = self.raw_queue()
        queue.append(entry.to_storage())
        self._store.save(self._key, queue)
        _logger.debug("Queued deletion id=%s table=%s", record_id, table)
        return entry

    def peek_all(self) -> list[Tombstone]:
        tombstones: list[Tombstone] = []
        for item in self.raw_queue():
            try:
                tombstones.append(Tombstone.model_validate(item))
            except ValidationError:
                _logger.warning("Skipping malformed tombstone under key=%s: %r", self._key, item)
        return tombstones

    def clear(self, ids: Iterable[str]) -> int:
        """Drop every tombstone whose id is in *ids*; returns how many were removed.

        Malformed entries are dropped from the rewritten queue as well; they
        are not counted.
        """
        confirmed = set(ids)
        if not confirmed:
            return 0
        queue = self.raw_queue()
        valid = [item for item in queue if self._is_valid(item)]
        remaining = [item for item in valid if item.get("id") not in confirmed]
        removed = len(valid) - len(remaining)
        if len(remaining) != len(queue):
            self._store.save(self._key, remaining)
            _logger.debug(
                "Cleared %d tombstone(s) and %d malformed entry(ies) from %s",
                removed,
                len(queue) - len(valid),
                self._key,
            )
        return removed

    @staticmethod
    def _is_valid(item: dict) -> bool:
        try:
            Tombstone.model_validate(item)
        except ValidationError:
            return False
        return True

    def __len__(self) -> int:
        return len(self.raw_queue())
