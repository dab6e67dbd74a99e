"""Periodic refresher — one run at start, then one per interval."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from basket_index.logging import get_logger
from basket_index.models import Status
from basket_index.refresh.cycle import RefreshCycle

log = get_logger(__name__)


class PeriodicRefresher:
    """Drives a RefreshCycle from a background task.

    Runs are scheduled at a fixed rate from the first run, so a slow
    refresh does not push later ones back. Ticks that a refresh overran
    are skipped. ``sleep`` and ``monotonic`` are injectable so tests can
    step through intervals without waiting on the wall clock.
    """

    def __init__(
        self,
        cycle: RefreshCycle,
        interval_s: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._cycle = cycle
        self._interval_s = interval_s
        self._sleep = sleep
        self._monotonic = monotonic
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Begin refreshing in the background (first run is immediate)."""
        if self.running:
            log.warning("refresher_already_running")
            return
        self._task = asyncio.create_task(self._loop())
        log.info("refresher_started", interval_s=self._interval_s)

    async def stop(self) -> None:
        """Cancel the timer. A run already in flight still completes."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("refresher_stopped")

    async def trigger(self) -> Status:
        """Manual "refresh now"; same run as the timer's."""
        return await self._cycle.refresh()

    def _delay_until_next(self, next_run: float) -> tuple[float, float]:
        """Return (delay, next_run), skipping ticks already in the past."""
        now = self._monotonic()
        if next_run <= now:
            missed = int((now - next_run) // self._interval_s) + 1
            next_run += missed * self._interval_s
            log.warning("refresh_ticks_skipped", missed=missed)
        return next_run - now, next_run

    async def _loop(self) -> None:
        next_run = self._monotonic()
        while True:
            try:
                await self._cycle.refresh()
            except Exception:
                log.exception("refresh_tick_error")
            delay, next_run = self._delay_until_next(next_run + self._interval_s)
            await self._sleep(delay)
