"""Custom exception hierarchy for portaria."""

from __future__ import annotations


class PortariaError(Exception):
    """Base exception for all portaria errors."""


class PortariaConfigError(PortariaError):
    """Invalid or missing configuration."""


class StorageError(PortariaError):
    """Key-value backend failure."""


class StorageWriteError(StorageError):
    """A write to the backing store failed (disk, quota, sqlite, serialization).

    Reads never raise: corrupt or missing data is recovered as an empty
    collection. Writes do, and the caller decides what to do about it
    (e.g. prune old logs and retry).
    """

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class BackupFormatError(PortariaError):
    """A backup payload could not be parsed."""


class CloudError(PortariaError):
    """Base for failures talking to the remote source of truth."""


class CloudTransportError(CloudError):
    """HTTP-level failure (network, non-2xx, invalid JSON, unexpected shape)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)
