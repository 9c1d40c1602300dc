"""Record identifier generation."""

from __future__ import annotations

import random
import string
import time
import uuid

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _weak_id() -> str:
    """Pseudo-random digits followed by the millisecond clock, both base-36."""
    head = "".join(random.choices(_BASE36, k=11))
    return head + _to_base36(int(time.time() * 1000))


def new_id() -> str:
    """Return a new globally unique record id.

    Uses UUID4 from the OS CSPRNG. Platforms without an entropy source get a
    weaker random + timestamp id instead; this never raises.
    """
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        return _weak_id()
