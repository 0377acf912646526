"""Clock abstraction so delays and retry backoff can run on virtual time."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Time source used by the runner and by time-aware steps."""

    def monotonic(self) -> float:
        """Seconds from an arbitrary origin, never going backwards."""
        ...

    def now(self) -> datetime:
        """Current wall-clock time (UTC)."""
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Real time, backed by asyncio."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))


class VirtualClock:
    """
    Deterministic clock for tests.

    ``sleep`` advances virtual time instantly and records the requested
    duration; it still yields to the event loop once so other tasks run.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self._elapsed

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def advance(self, seconds: float) -> None:
        self._elapsed += seconds

    async def sleep(self, seconds: float) -> None:
        seconds = max(seconds, 0)
        self.sleeps.append(seconds)
        self._elapsed += seconds
        await asyncio.sleep(0)


system_clock = SystemClock()
