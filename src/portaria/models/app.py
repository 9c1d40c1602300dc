"""Application-level records: logs, settings, users cache, form drafts, tombstones."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from portaria.models._base import PortariaModel, SyncRecord


class AppLog(SyncRecord):
    CREATED_FIELD = "created_at"

    timestamp: str | None = None
    user: str = ""
    module: str = ""
    action: str = ""
    reference_id: str | None = None
    details: str | None = None
    created_at: str | None = Field(default=None, alias="created_at")


class AppSettings(PortariaModel):
    """Single-record settings slot (not a collection)."""

    sector_contacts: list[Any] = Field(default_factory=list)
    company_name: str = "Portaria PX"
    device_name: str = "Estação Principal"
    theme: str = "light"
    font_size: str = "medium"
    synced: bool = True
    updated_at: str | None = Field(default=None, alias="updated_at")


class InternalUser(PortariaModel):
    id: str
    username: str = ""
    display_name: str | None = None
    role: str | None = None
    active: bool = True


class Draft(PortariaModel):
    """Half-filled form persisted between sessions."""

    form_data: dict[str, Any] = Field(default_factory=dict)
    step: int = 0


class Tombstone(PortariaModel):
    """A locally deleted id waiting for the remote delete to be confirmed."""

    id: str
    table: str
    timestamp: str
