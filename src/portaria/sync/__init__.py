"""Sync layer.

This package owns how local records become dirty, how remote batches are
merged into local collections, and how local deletions are queued for
propagation.
"""

from portaria.sync.bookkeeping import get_unsynced_items, mark_as_synced
from portaria.sync.driver import CloudBackend, SyncDriver, SyncFailure, SyncReport
from portaria.sync.merge import MergeResult, upsert_from_cloud
from portaria.sync.tombstones import TombstoneQueue

__all__ = [
    "CloudBackend",
    "MergeResult",
    "SyncDriver",
    "SyncFailure",
    "SyncReport",
    "TombstoneQueue",
    "get_unsynced_items",
    "mark_as_synced",
    "upsert_from_cloud",
]
