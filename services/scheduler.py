"""
Once-a-day trigger on the running event loop.
Owns the next fire time; ticks missed while the process was down are not replayed.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, time, timedelta, tzinfo
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

Job = Callable[[datetime], Awaitable[None]]


class DailyScheduler:
    def __init__(
        self,
        callback: Job,
        hour: int,
        minute: int,
        tz: tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"Invalid fire time {hour:02d}:{minute:02d}")
        self.callback = callback
        self.at = time(hour, minute)
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def now(self) -> datetime:
        return self._clock().astimezone(self.tz)

    def next_fire_time(self, after: Optional[datetime] = None) -> datetime:
        """First wall-clock occurrence of the fire time strictly after `after`."""
        after = (after or self.now()).astimezone(self.tz)
        candidate = datetime.combine(after.date(), self.at, tzinfo=self.tz)
        if candidate <= after:
            candidate = datetime.combine(after.date() + timedelta(days=1), self.at, tzinfo=self.tz)
        return candidate

    async def tick(self, now: Optional[datetime] = None) -> bool:
        """Run the callback once. Returns False if it raised; the error is logged, never propagated."""
        now = now or self.now()
        logger.info("scheduler_tick", fire_time=now.isoformat())
        try:
            await self.callback(now)
        except Exception:
            logger.exception("scheduler_tick_failed", fire_time=now.isoformat())
            return False
        return True

    async def _loop(self) -> None:
        last: Optional[datetime] = None
        while True:
            now = self.now()
            # A sleep that wakes a little early must not fire the same slot twice.
            fire_at = self.next_fire_time(max(now, last) if last else now)
            await asyncio.sleep(max((fire_at - now).total_seconds(), 0))
            await self.tick()
            last = fire_at

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("scheduler_started", next_fire_time=self.next_fire_time().isoformat(), tz=str(self.tz))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("scheduler_stopped")
