"""Store configuration for portaria."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from portaria._constants import DEFAULT_KEY_PREFIX, DEFAULT_LOG_CAP
from portaria.exceptions import PortariaConfigError

BACKENDS: frozenset[str] = frozenset({"file", "sqlite", "memory"})


def _default_data_dir() -> Path:
    return Path.home() / ".portaria"


def _env_number(env: Mapping[str, str], name: str, kind: type) -> Any:
    raw = env.get(name)
    if raw is None:
        return None
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise PortariaConfigError(f"{name} must be a {kind.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class PortariaConfig:
    """Local store configuration.

    Parameters
    ----------
    data_dir : Path
        Directory holding the file or sqlite backend.
    backend : str
        ``"file"`` (one JSON file per key), ``"sqlite"`` (single database,
        transactional multi-key writes) or ``"memory"`` (tests, scratch use).
    key_prefix : str
        Prefix prepended to every storage slot name.
    log_cap : int
        Maximum number of log entries kept; older entries are dropped on save.
    cloud_url : str or None
        Base URL of the remote source of truth. ``None`` disables the
        HTTP cloud client.
    cloud_token : str or None
        Bearer token sent to ``cloud_url``.
    request_timeout : float
        Total timeout in seconds for a single cloud request.
    sync_batch_size : int
        Maximum number of dirty records pushed per request.
    """

    data_dir: Path = dataclasses.field(default_factory=_default_data_dir)
    backend: str = "file"
    key_prefix: str = DEFAULT_KEY_PREFIX
    log_cap: int = DEFAULT_LOG_CAP
    cloud_url: str | None = None
    cloud_token: str | None = None
    request_timeout: float = 30.0
    sync_batch_size: int = 200

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise PortariaConfigError(f"Unknown backend {self.backend!r}; expected one of {sorted(BACKENDS)}")
        if self.log_cap <= 0:
            raise PortariaConfigError("log_cap must be positive")
        if self.sync_batch_size <= 0:
            raise PortariaConfigError("sync_batch_size must be positive")
        if not isinstance(self.data_dir, Path):
            object.__setattr__(self, "data_dir", Path(self.data_dir).expanduser())

    def key(self, slot: str) -> str:
        """Full storage key for a slot name."""
        return f"{self.key_prefix}{slot}"

    @classmethod
    def from_env(cls, **overrides: Any) -> PortariaConfig:
        """Create configuration from ``PORTARIA_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "PORTARIA_BACKEND": "backend",
            "PORTARIA_KEY_PREFIX": "key_prefix",
            "PORTARIA_CLOUD_URL": "cloud_url",
            "PORTARIA_CLOUD_TOKEN": "cloud_token",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        data_dir = env.get("PORTARIA_DATA_DIR")
        if data_dir is not None:
            config_kwargs["data_dir"] = Path(data_dir).expanduser()

        _ENV_NUMBER_MAP: dict[str, tuple[str, type]] = {
            "PORTARIA_LOG_CAP": ("log_cap", int),
            "PORTARIA_REQUEST_TIMEOUT": ("request_timeout", float),
            "PORTARIA_SYNC_BATCH_SIZE": ("sync_batch_size", int),
        }
        for env_key, (field_name, kind) in _ENV_NUMBER_MAP.items():
            if field_name in overrides:
                continue
            value = _env_number(env, env_key, kind)
            if value is not None:
                config_kwargs[field_name] = value

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
