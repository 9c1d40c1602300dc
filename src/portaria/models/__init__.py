"""Persisted record models."""

from portaria.models._base import PortariaModel, SyncRecord, iso_timestamp, parse_timestamp, utcnow
from portaria.models.app import AppLog, AppSettings, Draft, InternalUser, Tombstone
from portaria.models.gate import ImportOrigin, VehicleEntry
from portaria.models.meters import Meter, MeterReading
from portaria.models.operations import BreakfastRecord, PackageRecord, PatrolRecord, WorkShift

__all__ = [
    "AppLog",
    "AppSettings",
    "BreakfastRecord",
    "Draft",
    "ImportOrigin",
    "InternalUser",
    "Meter",
    "MeterReading",
    "PackageRecord",
    "PatrolRecord",
    "PortariaModel",
    "SyncRecord",
    "Tombstone",
    "VehicleEntry",
    "WorkShift",
    "iso_timestamp",
    "parse_timestamp",
    "utcnow",
]
