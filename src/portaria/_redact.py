"""Helpers for safe debug logging.

Records pushed to the cloud carry personal data (visitor documents, phone
numbers) and the client carries a bearer token. This module redacts those
fields before they reach DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "refreshtoken",
        "authorization",
        "cookie",
        # Personal data on gate records
        "document",
        "documentnumber",
        "cpf",
        "rg",
        "phone",
        "telefone",
    }
)


def redact_for_log(value: Any, *, max_string: int = 256, max_items: int = 20, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Long lists are cut to *max_items* elements plus a marker; sync batches can
    hold hundreds of records.
    """
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        items = [redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1) for v in value[:max_items]]
        if len(value) > max_items:
            items.append(f"<+{len(value) - max_items} more>")
        return items

    return repr(value)
