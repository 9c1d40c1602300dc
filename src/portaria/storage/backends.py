"""Key-value byte stores backing the collection layer.

Every backend maps a string key to an opaque byte value. Writes of a
single key are atomic from the caller's point of view. ``set_many`` writes
several keys; whether that is atomic depends on the backend.
"""

from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
import tempfile
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

from portaria.config import PortariaConfig
from portaria.exceptions import StorageWriteError

_logger = logging.getLogger(__name__)


class KeyValueBackend(Protocol):
    """Structural interface for persistent byte stores.

    Having a protocol here makes it easy to pass test doubles (e.g. a
    backend that fails on write) while keeping the shipped backends concrete.
    """

    #: ``True`` when :meth:`set_many` commits all keys or none.
    atomic_batches: bool

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def set_many(self, items: Mapping[str, bytes]) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryBackend:
    """Process-local dict store."""

    atomic_batches = True

    def __init__(self, initial: Mapping[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def set_many(self, items: Mapping[str, bytes]) -> None:
        self._data.update({key: bytes(value) for key, value in items.items()})

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class FileBackend:
    """One file per key inside a directory.

    A write goes to a temp file in the same directory and is moved into place
    with :func:`os.replace`, so readers see either the old or the new value.
    ``set_many`` writes keys one after another; a crash in between leaves the
    earlier keys written and the later ones untouched.
    """

    atomic_batches = False
    _SUFFIX = ".json"

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        return self._dir / f"{quote(key, safe='')}{self._SUFFIX}"

    def get(self, key: str) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None
        except OSError:
            _logger.warning("Unreadable storage file for key=%s", key, exc_info=True)
            return None

    def set(self, key: str, value: bytes) -> None:
        target = self._path(key)
        tmp_name: str | None = None
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", suffix=self._SUFFIX, dir=self._dir)
            with os.fdopen(fd, "wb") as fh:
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as exc:
            raise StorageWriteError(f"Failed to write {key}: {exc}", key=key) from exc
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
        _logger.debug("Wrote %d bytes to %s", len(value), target)

    def set_many(self, items: Mapping[str, bytes]) -> None:
        for key, value in items.items():
            self.set(key, value)

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageWriteError(f"Failed to delete {key}: {exc}", key=key) from exc

    def keys(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(
            unquote(path.name[: -len(self._SUFFIX)])
            for path in self._dir.iterdir()
            if path.name.endswith(self._SUFFIX) and not path.name.startswith(".tmp-")
        )


class SqliteBackend:
    """Single-table sqlite store; ``set_many`` commits in one transaction."""

    atomic_batches = True

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path)
        with self._conn:
            self._conn.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value BLOB NOT NULL)")

    @contextlib.contextmanager
    def _write(self, key: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as exc:
            raise StorageWriteError(f"Failed to write {key}: {exc}", key=key) from exc

    def get(self, key: str) -> bytes | None:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error:
            _logger.warning("Unreadable sqlite row for key=%s", key, exc_info=True)
            return None
        if row is None:
            return None
        value = row[0]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def set(self, key: str, value: bytes) -> None:
        self.set_many({key: value})

    def set_many(self, items: Mapping[str, bytes]) -> None:
        if not items:
            return
        with self._write(",".join(items)) as conn:
            conn.executemany(
                "INSERT INTO kv (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                [(key, sqlite3.Binary(value)) for key, value in items.items()],
            )
        _logger.debug("Committed %d key(s) to %s", len(items), self._path)

    def delete(self, key: str) -> None:
        with self._write(key) as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> list[str]:
        return [row[0] for row in self._conn.execute("SELECT key FROM kv ORDER BY key")]

    def close(self) -> None:
        self._conn.close()


def open_backend(config: PortariaConfig) -> KeyValueBackend:
    """Build the backend selected by ``config.backend``."""
    if config.backend == "memory":
        return MemoryBackend()
    if config.backend == "sqlite":
        return SqliteBackend(config.data_dir / "portaria.sqlite3")
    return FileBackend(config.data_dir)
