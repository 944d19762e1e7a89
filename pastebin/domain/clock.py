from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone


# A clock returns the current time as epoch milliseconds.
Clock = Callable[[], int]


def system_clock() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def fixed_clock(now_ms: int) -> Clock:
    """Return a clock frozen at ``now_ms``."""

    def _now() -> int:
        return now_ms

    return _now
