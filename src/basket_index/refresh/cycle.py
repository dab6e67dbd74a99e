"""One refresh run: fetch prices, value the basket, merge into the series.

Status moves idle -> loading -> ok | error on every run. A failed run
leaves the series and the last price mapping as they were.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Protocol

from basket_index.config.schema import AppConfig
from basket_index.exceptions import BasketIndexError
from basket_index.logging import get_logger
from basket_index.models import AssetBreakdown, Sample, Status
from basket_index.series.store import SeriesStore, minute_bucket
from basket_index.valuation import asset_breakdown, compute_basket_value

log = get_logger(__name__)


class PriceFetcher(Protocol):
    async def fetch_prices(self, ids: Sequence[str], vs_currency: str) -> dict[str, float]: ...


class RefreshCycle:
    """Runs refreshes against one basket and one series store.

    Overlapping triggers share the run already in flight instead of
    issuing another network call.
    """

    def __init__(
        self,
        config: AppConfig,
        fetcher: PriceFetcher,
        store: SeriesStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._store = store
        self._clock = clock
        self._status = Status()
        self._last_prices: dict[str, float] | None = None
        self._inflight: asyncio.Future[Status] | None = None

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def status(self) -> Status:
        return self._status

    @property
    def series(self) -> list[Sample]:
        return self._store.series

    @property
    def latest_value(self) -> float | None:
        return self._store.latest

    @property
    def last_prices(self) -> dict[str, float] | None:
        return dict(self._last_prices) if self._last_prices is not None else None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def breakdown(self) -> list[AssetBreakdown]:
        return asset_breakdown(self._last_prices, self._config.basket)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def refresh(self) -> Status:
        """Run one refresh, or join the one already running."""
        if self.in_flight:
            log.info("refresh_skipped_in_flight")
        else:
            self._inflight = asyncio.ensure_future(self._run())
        # Cancelling the caller must not abort the run itself.
        return await asyncio.shield(self._inflight)

    async def _run(self) -> Status:
        self._status = self._status.model_copy(
            update={"state": "loading", "message": "Updating…"},
        )
        log.info("refresh_started", assets=len(self._config.basket))
        started = time.monotonic()

        try:
            prices = await self._fetcher.fetch_prices(
                self._config.asset_ids, self._config.vs_currency,
            )
            value = compute_basket_value(prices, self._config.basket)
        except BasketIndexError as exc:
            return self._fail(str(exc))
        except Exception as exc:
            log.exception("refresh_error")
            return self._fail(str(exc))

        ts = minute_bucket(self._now_ms())
        self._last_prices = dict(prices)
        series = self._store.apply(Sample(ts=ts, value=value))

        self._status = Status(state="ok", message="Up to date", updated_at=self._now_ms())
        log.info(
            "refresh_succeeded",
            value=value,
            ts=ts,
            points=len(series),
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return self._status

    def _fail(self, message: str) -> Status:
        message = message or "Failed to update"
        self._status = Status(state="error", message=message, updated_at=self._now_ms())
        log.warning("refresh_failed", error=message)
        return self._status
