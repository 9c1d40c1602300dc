"""Cloud merge: apply an authoritative remote batch to a local collection.

Merge policy:
- An id not seen locally is appended, stamped ``synced=True``.
- An id seen locally is overwritten only while the local record is
  ``synced=True``. A local record with a pending edit (``synced=False``) wins
  until the sync driver pushes it and acknowledges it with ``mark_as_synced``.

The merge never raises: any failure (corrupt local data, write failure) is
logged and reported as nothing merged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from pydantic import BaseModel

from portaria.storage import CollectionStore

_logger = logging.getLogger(__name__)


class MergeResult(NamedTuple):
    added: int = 0
    updated: int = 0

    @property
    def changed(self) -> bool:
        return self.added > 0 or self.updated > 0


def _as_record(item: Any) -> dict[str, Any] | None:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(item, Mapping):
        return dict(item)
    return None


def _merge(store: CollectionStore, key: str, cloud_items: Iterable[Any]) -> MergeResult:
    local = store.load(key)

    # First occurrence wins for ids that are (wrongly) duplicated locally.
    index: dict[str, int] = {}
    for position, record in enumerate(local):
        record_id = record.get("id")
        if isinstance(record_id, str):
            index.setdefault(record_id, position)

    added = 0
    updated = 0
    for item in cloud_items:
        incoming = _as_record(item)
        record_id = incoming.get("id") if incoming is not None else None
        if incoming is None or not isinstance(record_id, str) or not record_id:
            _logger.warning("Skipping cloud item without an id for key=%s", key)
            continue

        to_store = {**incoming, "synced": True}
        position = index.get(record_id)
        if position is None:
            index[record_id] = len(local)
            local.append(to_store)
            added += 1
        elif local[position].get("synced") is True:
            local[position] = to_store
            updated += 1

    result = MergeResult(added, updated)
    if result.changed:
        store.save(key, local)
    return result


def upsert_from_cloud(store: CollectionStore, key: str, cloud_items: Iterable[Any]) -> MergeResult:
    """Merge *cloud_items* into the collection at *key*; returns the counts."""
    try:
        result = _merge(store, key, cloud_items)
    except Exception:
        _logger.error("Cloud merge failed for key=%s", key, exc_info=True)
        return MergeResult()
    _logger.debug("Cloud merge key=%s added=%d updated=%d", key, result.added, result.updated)
    return result
