"""Utility meters and their readings."""

from __future__ import annotations

from portaria.models._base import SyncRecord


class Meter(SyncRecord):
    CREATED_FIELD = "created_at"

    name: str = ""
    unit: str | None = None
    location: str | None = None
    created_at: str | None = None


class MeterReading(SyncRecord):
    CREATED_FIELD = "timestamp"

    meter_id: str = ""
    value: float | None = None
    timestamp: str | None = None
    operator_name: str | None = None
    notes: str | None = None
