"""Application slots outside the entity collections: logs, settings, users cache, drafts."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from portaria._constants import DEFAULT_LOG_CAP, DEFAULT_OPERATOR
from portaria._ids import new_id
from portaria.models import AppLog, AppSettings, Draft, InternalUser, iso_timestamp, utcnow
from portaria.storage import CollectionStore
from portaria.sync.bookkeeping import get_unsynced_items, mark_as_synced
from portaria.sync.merge import MergeResult, upsert_from_cloud

_logger = logging.getLogger(__name__)


class LogBook:
    """Operational log capped to the most recent ``cap`` entries.

    The operator is passed explicitly on every :meth:`add`; there is no
    process-wide "current user".
    """

    def __init__(
        self,
        store: CollectionStore,
        *,
        key: str,
        table: str,
        cap: int = DEFAULT_LOG_CAP,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._key = key
        self._table = table
        self._cap = cap
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    @property
    def table(self) -> str:
        return self._table

    def all(self) -> list[AppLog]:
        logs: list[AppLog] = []
        for raw in self._store.load(self._key):
            try:
                logs.append(AppLog.model_validate(raw))
            except ValidationError:
                _logger.warning("Skipping malformed log entry id=%r", raw.get("id"))
        return logs

    def save_all(self, logs: Sequence[AppLog | Mapping[str, Any]]) -> None:
        """Overwrite the log, keeping only the newest ``cap`` entries."""
        self._store.save(self._key, list(logs)[-self._cap :])

    def add(
        self,
        module: str,
        action: str,
        *,
        operator: str | None = None,
        reference_id: str | None = None,
        details: str | None = None,
    ) -> AppLog:
        now = iso_timestamp(self._clock())
        entry = AppLog(
            id=new_id(),
            timestamp=now,
            user=operator or DEFAULT_OPERATOR,
            module=module,
            action=action,
            reference_id=reference_id,
            details=details,
            synced=False,
            created_at=now,
            updated_at=now,
        )
        logs: list[Any] = self._store.load(self._key)
        logs.append(entry.to_storage())
        self.save_all(logs)
        return entry

    def upsert_from_cloud(self, records: Sequence[Any]) -> MergeResult:
        return upsert_from_cloud(self._store, self._key, records)

    def unsynced(self) -> list[dict[str, Any]]:
        return get_unsynced_items(self._store, self._key)

    def mark_as_synced(self, ids: Sequence[str]) -> int:
        return mark_as_synced(self._store, self._key, ids)


class SettingsStore:
    """Single-record settings slot with defaults merged under stored overrides."""

    def __init__(
        self,
        store: CollectionStore,
        *,
        key: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._key = key
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    def get(self) -> AppSettings:
        defaults = AppSettings()
        stored = self._store.load_value(self._key)
        if stored is None:
            return defaults
        merged = {**defaults.to_storage(), **stored}
        if not isinstance(merged.get("sectorContacts"), list):
            merged["sectorContacts"] = []
        try:
            return AppSettings.model_validate(merged)
        except ValidationError:
            _logger.warning("Stored settings are invalid; using defaults")
            return defaults

    def save(self, settings: AppSettings | Mapping[str, Any]) -> AppSettings:
        """Persist *settings* as a local change (``synced=False``)."""
        if not isinstance(settings, AppSettings):
            settings = AppSettings.model_validate(dict(settings))
        stored = settings.model_copy(update={"synced": False, "updated_at": iso_timestamp(self._clock())})
        self._store.save_value(self._key, stored)
        return stored

    def replace(self, settings: AppSettings | Mapping[str, Any]) -> None:
        """Overwrite the slot as given, without touching the sync flags (backup restore)."""
        if isinstance(settings, AppSettings):
            settings = settings.to_storage()
        self._store.save_value(self._key, dict(settings))


class UsersCache:
    """Local copy of the internal users list; not sync-tracked."""

    def __init__(self, store: CollectionStore, *, key: str) -> None:
        self._store = store
        self._key = key

    def all(self) -> list[InternalUser]:
        users: list[InternalUser] = []
        for raw in self._store.load(self._key):
            try:
                users.append(InternalUser.model_validate(raw))
            except ValidationError:
                _logger.warning("Skipping malformed cached user id=%r", raw.get("id"))
        return users

    def save_all(self, users: Sequence[InternalUser | Mapping[str, Any]]) -> None:
        self._store.save(self._key, list(users))

    def upsert(self, user: InternalUser | Mapping[str, Any]) -> None:
        if not isinstance(user, InternalUser):
            user = InternalUser.model_validate(dict(user))
        cached = self._store.load(self._key)
        for position, current in enumerate(cached):
            if current.get("id") == user.id:
                cached[position] = user.to_storage()
                break
        else:
            cached.append(user.to_storage())
        self._store.save(self._key, cached)


class DraftStore:
    def __init__(self, store: CollectionStore, *, key: str) -> None:
        self._store = store
        self._key = key

    def get(self) -> Draft | None:
        stored = self._store.load_value(self._key)
        if stored is None:
            return None
        try:
            return Draft.model_validate(stored)
        except ValidationError:
            return None

    def save(self, form_data: Mapping[str, Any], step: int) -> None:
        self._store.save_value(self._key, Draft(form_data=dict(form_data), step=step))

    def clear(self) -> None:
        self._store.remove(self._key)
