"""Time source used by every time-dependent component.

Cache TTLs, debounce windows, counter windows, alert cooldowns and retry
sleeps all read time through a Clock so tests can drive them without
waiting.
"""

import asyncio
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of the current time and of cooperative sleeps.

    Methods:
        now: Current time as a timezone-aware UTC datetime
        sleep: Suspend the calling coroutine for ``seconds``
    """

    def now(self) -> datetime:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall-clock implementation backed by ``datetime`` and ``asyncio``."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
