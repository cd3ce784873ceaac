"""
Clock abstraction.

Every timestamp written on a proof comes from an injected clock so that
certification and batch generation can run against a fixed instant.
Timestamps are naive UTC, like the rest of the persisted dates.
"""

from datetime import datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock (naive UTC)."""

    def now(self) -> datetime:
        return datetime.utcnow()


class FixedClock:
    """Clock frozen at a given instant. Use ``advance`` to move it."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, delta: timedelta) -> None:
        self.instant = self.instant + delta


system_clock = SystemClock()
