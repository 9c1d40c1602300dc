"""Gate log (vehicle and visitor entries)."""

from __future__ import annotations

from enum import StrEnum

from portaria.models._base import SyncRecord


class ImportOrigin(StrEnum):
    """Provenance tag stamped on entries brought in by a bulk import."""

    MANUAL = "manual"
    SPREADSHEET = "spreadsheet"
    BACKUP = "backup"
    CLOUD = "cloud"


class VehicleEntry(SyncRecord):
    CREATED_FIELD = "created_at"

    driver_name: str = ""
    vehicle_plate: str | None = None
    company: str | None = None
    visit_reason: str | None = None
    entry_time: str | None = None
    exit_time: str | None = None
    created_at: str | None = None
    origin: str | None = None

    def matches_profile(self, name: str, plate: str) -> bool:
        """Case-insensitive match on driver name and plate (missing plate == "")."""
        return (
            self.driver_name.lower() == name.lower()
            and (self.vehicle_plate or "").lower() == plate.lower()
        )
