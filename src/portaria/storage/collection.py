"""Keyed collection store: JSON arrays of records on top of a byte backend.

Reads are tolerant: a missing key, undecodable bytes or a value that is not
a JSON array all come back as an empty collection. :meth:`CollectionStore.read`
reports which of those happened so callers can observe recoveries; the
plain :meth:`CollectionStore.load` only returns the records.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from portaria.exceptions import StorageWriteError
from portaria.storage.backends import KeyValueBackend

_logger = logging.getLogger(__name__)

Record = dict[str, Any]


class ReadStatus(StrEnum):
    MISSING = "missing"
    OK = "ok"
    RECOVERED = "recovered"


@dataclass(frozen=True)
class LoadResult:
    records: list[Record] = field(default_factory=list)
    status: ReadStatus = ReadStatus.MISSING

    @property
    def recovered(self) -> bool:
        return self.status == ReadStatus.RECOVERED


def _to_plain(item: Any) -> Any:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json", by_alias=True, exclude_none=True)
    return item


def encode(value: Any) -> bytes:
    """Serialize a collection or single object to JSON bytes."""
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        value = [_to_plain(item) for item in value]
    else:
        value = _to_plain(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def _decode(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8"))


class CollectionStore:
    """Get/save primitive for named collections of records."""

    def __init__(self, backend: KeyValueBackend) -> None:
        self._backend = backend

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def read(self, key: str) -> LoadResult:
        raw = self._backend.get(key)
        if raw is None:
            return LoadResult()
        try:
            parsed = _decode(raw)
        except (UnicodeDecodeError, ValueError):
            _logger.warning("Corrupt data under key=%s; treating collection as empty", key)
            return LoadResult(status=ReadStatus.RECOVERED)
        if not isinstance(parsed, list):
            _logger.warning("Non-array data under key=%s; treating collection as empty", key)
            return LoadResult(status=ReadStatus.RECOVERED)

        records = [item for item in parsed if isinstance(item, dict)]
        if len(records) != len(parsed):
            _logger.warning("Dropped %d non-object element(s) under key=%s", len(parsed) - len(records), key)
            return LoadResult(records=records, status=ReadStatus.RECOVERED)
        return LoadResult(records=records, status=ReadStatus.OK)

    def load(self, key: str) -> list[Record]:
        return self.read(key).records

    def save(self, key: str, records: Sequence[Any]) -> None:
        self._backend.set(key, self._encode(key, records))

    def save_many(self, collections: Mapping[str, Sequence[Any]]) -> None:
        """Write several collections with one backend call.

        Atomic across keys only when ``backend.atomic_batches`` is true.
        """
        self._backend.set_many({key: self._encode(key, records) for key, records in collections.items()})

    # ------------------------------------------------------------------
    # Single-object slots
    # ------------------------------------------------------------------

    def load_value(self, key: str) -> dict[str, Any] | None:
        raw = self._backend.get(key)
        if raw is None:
            return None
        try:
            parsed = _decode(raw)
        except (UnicodeDecodeError, ValueError):
            _logger.warning("Corrupt data under key=%s; ignoring stored value", key)
            return None
        return parsed if isinstance(parsed, dict) else None

    def save_value(self, key: str, value: Any) -> None:
        self._backend.set(key, self._encode(key, value))

    def remove(self, key: str) -> None:
        self._backend.delete(key)

    @staticmethod
    def _encode(key: str, value: Any) -> bytes:
        try:
            return encode(value)
        except (TypeError, ValueError) as exc:
            raise StorageWriteError(f"Cannot serialize data for {key}: {exc}", key=key) from exc
