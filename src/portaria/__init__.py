"""portaria - Local-first record store with offline sync tracking for gate operations."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("portaria")
except PackageNotFoundError:
    __version__ = "0+local"
from portaria._ids import new_id
from portaria.cloud import HttpCloudClient
from portaria.config import PortariaConfig
from portaria.database import LocalDatabase
from portaria.exceptions import (
    BackupFormatError,
    CloudError,
    CloudTransportError,
    PortariaConfigError,
    PortariaError,
    StorageError,
    StorageWriteError,
)
from portaria.models import (
    AppLog,
    AppSettings,
    BreakfastRecord,
    Draft,
    ImportOrigin,
    InternalUser,
    Meter,
    MeterReading,
    PackageRecord,
    PatrolRecord,
    SyncRecord,
    Tombstone,
    VehicleEntry,
    WorkShift,
)
from portaria.storage import CollectionStore, FileBackend, MemoryBackend, SqliteBackend
from portaria.sync import MergeResult, SyncDriver, SyncReport, TombstoneQueue

__all__ = [
    "__version__",
    "AppLog",
    "AppSettings",
    "BackupFormatError",
    "BreakfastRecord",
    "CloudError",
    "CloudTransportError",
    "CollectionStore",
    "Draft",
    "FileBackend",
    "HttpCloudClient",
    "ImportOrigin",
    "InternalUser",
    "LocalDatabase",
    "MemoryBackend",
    "MergeResult",
    "Meter",
    "MeterReading",
    "PackageRecord",
    "PatrolRecord",
    "PortariaConfig",
    "PortariaConfigError",
    "PortariaError",
    "SqliteBackend",
    "StorageError",
    "StorageWriteError",
    "SyncDriver",
    "SyncRecord",
    "SyncReport",
    "Tombstone",
    "TombstoneQueue",
    "VehicleEntry",
    "WorkShift",
    "new_id",
]
