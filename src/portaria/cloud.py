"""HTTP implementation of :class:`~portaria.sync.driver.CloudBackend`."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import aiohttp

from portaria._constants import USER_AGENT
from portaria._redact import redact_for_log
from portaria.config import PortariaConfig
from portaria.exceptions import CloudTransportError, PortariaConfigError

_logger = logging.getLogger(__name__)


def _string_ids(value: Any, endpoint: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise CloudTransportError(f"Expected a list of ids from {endpoint}", endpoint=endpoint)
    return list(value)


class HttpCloudClient:
    """Async JSON client for the remote record store.

    Usage::

        async with HttpCloudClient(config) as cloud:
            report = await SyncDriver(db, cloud).sync()
    """

    def __init__(
        self,
        config: PortariaConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        if not config.cloud_url:
            raise PortariaConfigError("cloud_url is required for HttpCloudClient")
        self._config = config
        self._base_url = config.cloud_url.rstrip("/")
        self._external_session = session is not None
        self._http_session = session

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> HttpCloudClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
            )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        if self._config.cloud_token:
            headers["authorization"] = f"Bearer {self._config.cloud_token}"
        return headers

    async def _request(self, method: str, endpoint: str, payload: Mapping[str, Any] | None = None) -> dict[str, Any]:
        if self._http_session is None:
            raise RuntimeError("HttpCloudClient must be used as an async context manager")

        url = f"{self._base_url}{endpoint}"
        body = json.dumps(payload, ensure_ascii=False) if payload is not None else None
        if payload is not None:
            _logger.debug("%s %s payload=%s", method, url, redact_for_log(payload))
        else:
            _logger.debug("%s %s", method, url)

        try:
            async with self._http_session.request(method, url, data=body, headers=self._headers()) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise CloudTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except CloudTransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise CloudTransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CloudTransportError(f"Invalid JSON from {endpoint}: {text[:200]}", endpoint=endpoint) from exc
        if not isinstance(result, dict):
            raise CloudTransportError(f"Expected a JSON object from {endpoint}", endpoint=endpoint)
        return result

    # ------------------------------------------------------------------
    # CloudBackend
    # ------------------------------------------------------------------

    async def fetch(self, table: str) -> list[dict[str, Any]]:
        endpoint = f"/tables/{table}/records"
        result = await self._request("GET", endpoint)
        records = result.get("records")
        if not isinstance(records, list):
            raise CloudTransportError(f"Missing 'records' array from {endpoint}", endpoint=endpoint)
        return [record for record in records if isinstance(record, dict)]

    async def push(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[str]:
        endpoint = f"/tables/{table}/records"
        result = await self._request("POST", endpoint, {"records": [dict(record) for record in records]})
        return _string_ids(result.get("acknowledged"), endpoint)

    async def delete(self, table: str, ids: Sequence[str]) -> list[str]:
        endpoint = f"/tables/{table}/deletions"
        result = await self._request("POST", endpoint, {"ids": list(ids)})
        return _string_ids(result.get("acknowledged"), endpoint)
