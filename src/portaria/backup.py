"""Full-state backup export/import.

The backup is one JSON object with one array per collection plus the
settings object. Import overwrites each collection that is present and
array-typed; absent or non-array fields are left alone. There is no
atomicity across fields.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from portaria.exceptions import BackupFormatError

if TYPE_CHECKING:
    from portaria.database import LocalDatabase

_logger = logging.getLogger(__name__)

INVALID_FORMAT_MESSAGE = "Invalid backup file format."


def _collections(db: LocalDatabase) -> dict[str, tuple[Callable[[], list[Any]], Callable[[list[Any]], None]]]:
    """Backup field -> (raw reader, raw writer)."""
    store = db.store

    def slot(key: str) -> tuple[Callable[[], list[Any]], Callable[[list[Any]], None]]:
        return (lambda: store.load(key)), (lambda records: store.save(key, records))

    fields = {
        "entries": slot(db.entries.key),
        "breakfast": slot(db.breakfast.key),
        "packages": slot(db.packages.key),
        "meters": slot(db.meters.key),
        "readings": slot(db.readings.key),
        "shifts": slot(db.shifts.key),
        "patrols": slot(db.patrols.key),
    }
    fields["logs"] = (lambda: store.load(db.logs.key)), db.logs.save_all
    return fields


def export_backup(db: LocalDatabase) -> str:
    payload: dict[str, Any] = {name: read() for name, (read, _write) in _collections(db).items()}
    payload["settings"] = db.settings.get().to_storage()
    return json.dumps(payload, ensure_ascii=False)


def import_backup(db: LocalDatabase, payload: str | bytes) -> list[str]:
    """Restore a backup produced by :func:`export_backup`.

    Returns the names of the fields that were written.

    Raises
    ------
    BackupFormatError
        The payload is not JSON or not a JSON object. Nothing is written.
    """
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as exc:
        _logger.error("Backup import failed: payload is not JSON")
        raise BackupFormatError(INVALID_FORMAT_MESSAGE) from exc
    if not isinstance(data, dict):
        raise BackupFormatError(INVALID_FORMAT_MESSAGE)

    written: list[str] = []
    for name, (_read, write) in _collections(db).items():
        value = data.get(name)
        if isinstance(value, list):
            write([item for item in value if isinstance(item, dict)])
            written.append(name)
        elif value is not None:
            _logger.warning("Backup field %s is not an array; skipped", name)

    settings = data.get("settings")
    if isinstance(settings, dict):
        db.settings.replace(settings)
        written.append("settings")

    _logger.debug("Backup restored fields=%s", written)
    return written
