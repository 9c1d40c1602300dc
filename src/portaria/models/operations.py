"""Day-to-day operation records: packages, shifts, patrols, breakfast list."""

from __future__ import annotations

from portaria.models._base import SyncRecord


class PackageRecord(SyncRecord):
    CREATED_FIELD = "received_at"

    recipient_name: str = ""
    carrier: str | None = None
    tracking_code: str | None = None
    status: str | None = None
    received_at: str | None = None
    delivered_at: str | None = None


class WorkShift(SyncRecord):
    operator_name: str = ""
    start_time: str | None = None
    end_time: str | None = None


class PatrolRecord(SyncRecord):
    CREATED_FIELD = "criado_em"

    operator_name: str | None = None
    status: str | None = None
    notes: str | None = None
    criado_em: str | None = None


class BreakfastRecord(SyncRecord):
    name: str = ""
    date: str = ""
    status: str | None = None
    delivered_at: str | None = None
    operator_name: str | None = None
