import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Set

import pytz
from croniter import croniter

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
TimerCallback = Callable[[], Awaitable[Any]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_cron(expression: Any) -> bool:
    """Five whitespace-separated fields that croniter accepts."""
    if not isinstance(expression, str):
        return False
    expr = expression.strip()
    if len(expr.split()) != 5:
        return False
    return croniter.is_valid(expr)


def resolve_timezone(name: str, fallback: str = "UTC"):
    try:
        return pytz.timezone(str(name or "").strip() or fallback)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown time zone %r, using %s", name, fallback)
        return pytz.timezone(fallback)


class CronTimer:
    """A cron expression bound to a callback, evaluated in a fixed time zone."""

    def __init__(self, expression: str, callback: TimerCallback, tz, name: str, now: datetime):
        self.expression = expression
        self.callback = callback
        self.tz = tz
        self.name = name
        self.active = True
        self.fire_count = 0
        self.next_fire_at = self._next_after(now)

    def _next_after(self, now: datetime) -> datetime:
        local_now = now.astimezone(self.tz)
        return croniter(self.expression, local_now).get_next(datetime)

    def is_due(self, now: datetime) -> bool:
        return self.active and now >= self.next_fire_at

    def advance(self, now: datetime) -> None:
        # missed instants collapse into a single firing
        self.next_fire_at = self._next_after(now)

    def stop(self) -> None:
        self.active = False

    def __repr__(self) -> str:
        return f"CronTimer({self.name!r}, {self.expression!r}, next={self.next_fire_at.isoformat()})"


class TimerRegistry:
    """Owns every active cron timer.

    Nothing fires on its own: ``run_pending()`` fires the timers that are due at
    the clock's current time, and ``start()`` runs it from a background tick loop.
    Tests drive it with a fake clock and explicit ``run_pending()`` calls.
    """

    def __init__(self, clock: Clock = utc_now, *, tick_seconds: float = 1.0):
        self._clock = clock
        self.tick_seconds = float(tick_seconds)
        self._timers: List[CronTimer] = []
        self._loop_task: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Future] = set()

    def __len__(self) -> int:
        return len(self._timers)

    @property
    def timers(self) -> List[CronTimer]:
        return list(self._timers)

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def add(self, expression: str, callback: TimerCallback, *, tz=pytz.utc, name: str = "") -> CronTimer:
        timer = CronTimer(expression, callback, tz, name, self._clock())
        self._timers.append(timer)
        logger.debug("Timer %s registered, next run %s", name or expression, timer.next_fire_at.isoformat())
        return timer

    def clear(self) -> None:
        """Stop and drop every timer. Executions already running are left alone."""
        for timer in self._timers:
            timer.stop()
        self._timers = []

    def run_pending(self, now: Optional[datetime] = None) -> List[asyncio.Future]:
        now = now or self._clock()
        fired = []
        for timer in list(self._timers):
            if not timer.is_due(now):
                continue
            timer.advance(now)
            timer.fire_count += 1
            task = asyncio.ensure_future(timer.callback())
            self._running.add(task)
            task.add_done_callback(self._running.discard)
            fired.append(task)
        return fired

    async def _tick_loop(self) -> None:
        while True:
            self.run_pending()
            await asyncio.sleep(self.tick_seconds)

    def start(self) -> None:
        if self.is_running:
            return
        self._loop_task = asyncio.ensure_future(self._tick_loop())
        logger.info("Scheduler started (tick %.1fs, %d timers)", self.tick_seconds, len(self._timers))

    async def shutdown(self) -> None:
        self.clear()
        task, self._loop_task = self._loop_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Scheduler stopped")
