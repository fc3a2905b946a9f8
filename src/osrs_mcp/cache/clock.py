"""
Clock abstraction shared by every cache.

Caches never call ``time.time()`` directly; they receive a clock so tests can
move time forward deterministically.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Anything that returns the current time in seconds since the epoch."""

    def now(self) -> float:
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> float:
        return time.time()


__all__ = ["Clock", "SystemClock"]
