"""Base models and timestamp helpers for persisted records.

Every persisted shape inherits from :class:`PortariaModel` which provides:

* ``alias_generator=to_camel`` so snake_case fields are stored under the
  camelCase keys the application has always written.
* ``extra="allow"`` so fields this library does not model (added by the
  cloud or by newer app versions) survive a load/save round-trip.
* ``frozen=True``; changes go through ``model_copy(update=...)``.

Records that take part in sync inherit from :class:`SyncRecord`, which adds
``id``, ``synced`` and ``updated_at``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


def iso_timestamp(value: datetime) -> str:
    """Format *value* as ISO-8601 UTC with microseconds and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Returns ``None`` for ``None``, empty strings and anything unparsable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class PortariaModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_storage(self) -> dict[str, Any]:
        """JSON-ready dict using the on-disk (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def storage_key(cls, name: str) -> str:
        """On-disk key for a field given either its attribute name or its alias."""
        info = cls.model_fields.get(name)
        if info is not None and info.alias:
            return info.alias
        return name


class SyncRecord(PortariaModel):
    """A record that is tracked for cloud sync.

    ``synced`` is ``False`` from any local create/update until the sync
    driver acknowledges the push; records merged from the cloud arrive with
    ``synced=True``.
    """

    CREATED_FIELD: ClassVar[str | None] = None
    """Attribute stamped with the creation time on add, when still empty."""

    id: str = ""
    synced: bool = False
    updated_at: str | None = Field(default=None, alias="updated_at")
