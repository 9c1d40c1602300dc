"""Storage layer: byte backends and the keyed collection store."""

from portaria.storage.backends import FileBackend, KeyValueBackend, MemoryBackend, SqliteBackend, open_backend
from portaria.storage.collection import CollectionStore, LoadResult, ReadStatus

__all__ = [
    "CollectionStore",
    "FileBackend",
    "KeyValueBackend",
    "LoadResult",
    "MemoryBackend",
    "ReadStatus",
    "SqliteBackend",
    "open_backend",
]
