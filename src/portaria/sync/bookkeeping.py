"""Read side of sync: find dirty records and acknowledge pushed ones."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from portaria.storage import CollectionStore

_logger = logging.getLogger(__name__)


def get_unsynced_items(store: CollectionStore, key: str) -> list[dict[str, Any]]:
    """Records at *key* whose ``synced`` flag is not ``True``."""
    return [record for record in store.load(key) if record.get("synced") is not True]


def mark_as_synced(store: CollectionStore, key: str, ids: Iterable[str]) -> int:
    """Set ``synced=True`` on every record whose id is in *ids*.

    This is the only transition from dirty to clean. Writes once, and only
    when at least one record changed; returns the number of records changed.
    Calling it again with the same ids is a no-op.
    """
    acknowledged = set(ids)
    if not acknowledged:
        return 0

    records = store.load(key)
    changed = 0
    for position, record in enumerate(records):
        if record.get("id") in acknowledged and record.get("synced") is not True:
            records[position] = {**record, "synced": True}
            changed += 1

    if changed:
        store.save(key, records)
        _logger.debug("Marked %d record(s) synced in %s", changed, key)
    return changed
