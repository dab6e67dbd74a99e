"""Tests for the refresh cycle and the periodic refresher."""

from __future__ import annotations

import asyncio

import pytest

from basket_index.exceptions import DataShapeError, FetchError
from basket_index.models import Sample, Status
from basket_index.refresh import PeriodicRefresher, RefreshCycle

from conftest import FakeClock, FakeFetcher, GatedFetcher, wait_until

MINUTE = 60_000


class TestRefreshCycle:
    def test_initial_status_is_idle(self, config, store, clock):
        cycle = RefreshCycle(config, FakeFetcher({"a": 10, "b": 5}), store, clock=clock)
        assert cycle.status == Status(state="idle", message="", updated_at=None)
        assert cycle.last_prices is None
        assert cycle.latest_value is None

    @pytest.mark.asyncio
    async def test_successful_run(self, config, store, clock):
        fetcher = FakeFetcher({"a": 10, "b": 5})
        cycle = RefreshCycle(config, fetcher, store, clock=clock)

        status = await cycle.refresh()

        assert status.state == "ok"
        assert status.message == "Up to date"
        assert status.updated_at == 100 * MINUTE
        assert fetcher.calls == [(["a", "b"], "usd")]
        assert cycle.series == [Sample(ts=100 * MINUTE, value=35.0)]
        assert cycle.last_prices == {"a": 10, "b": 5}
        assert cycle.latest_value == 35.0

    @pytest.mark.asyncio
    async def test_same_minute_refreshes_overwrite(self, config, store, clock):
        fetcher = FakeFetcher({"a": 35, "b": 10}, {"a": 40, "b": 10})
        cycle = RefreshCycle(config, fetcher, store, clock=clock)

        clock.at_minute(100, 5)
        await cycle.refresh()
        clock.at_minute(100, 50)
        await cycle.refresh()

        assert cycle.series == [Sample(ts=100 * MINUTE, value=110.0)]

    @pytest.mark.asyncio
    async def test_new_minute_appends(self, config, store, clock):
        cycle = RefreshCycle(config, FakeFetcher({"a": 10, "b": 5}), store, clock=clock)

        clock.at_minute(100)
        await cycle.refresh()
        clock.at_minute(115)
        await cycle.refresh()

        assert [s.ts for s in cycle.series] == [100 * MINUTE, 115 * MINUTE]

    @pytest.mark.asyncio
    async def test_shape_error_leaves_state_untouched(self, config, store, clock):
        fetcher = FakeFetcher(
            {"a": 10, "b": 5},
            DataShapeError("Missing price for b in response."),
        )
        cycle = RefreshCycle(config, fetcher, store, clock=clock)
        await cycle.refresh()
        before_series = cycle.series
        before_prices = cycle.last_prices

        clock.at_minute(101)
        status = await cycle.refresh()

        assert status.state == "error"
        assert status.message == "Missing price for b in response."
        assert status.updated_at == 101 * MINUTE
        assert cycle.series == before_series
        assert cycle.last_prices == before_prices

    @pytest.mark.asyncio
    async def test_missing_price_at_valuation(self, config, store, clock):
        cycle = RefreshCycle(config, FakeFetcher({"a": 10}), store, clock=clock)
        status = await cycle.refresh()
        assert status.state == "error"
        assert status.message == "No price for b"
        assert cycle.series == []
        assert cycle.last_prices is None

    @pytest.mark.asyncio
    async def test_fetch_error_message(self, config, store, clock):
        cycle = RefreshCycle(config, FakeFetcher(FetchError(429, "slow down")), store, clock=clock)
        status = await cycle.refresh()
        assert status.state == "error"
        assert status.message == "Price fetch failed (429). slow down"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, config, store, clock):
        cycle = RefreshCycle(config, FakeFetcher(RuntimeError()), store, clock=clock)
        status = await cycle.refresh()
        assert status.state == "error"
        assert status.message == "Failed to update"

    @pytest.mark.asyncio
    async def test_recovers_on_next_run(self, config, store, clock):
        fetcher = FakeFetcher(FetchError(500, ""), {"a": 1, "b": 1})
        cycle = RefreshCycle(config, fetcher, store, clock=clock)
        assert (await cycle.refresh()).state == "error"
        assert (await cycle.refresh()).state == "ok"
        assert cycle.latest_value == 5.0

    @pytest.mark.asyncio
    async def test_loading_keeps_previous_timestamp(self, config, store, clock):
        fetcher = GatedFetcher({"a": 10, "b": 5})
        fetcher.gate.set()
        cycle = RefreshCycle(config, fetcher, store, clock=clock)
        await cycle.refresh()
        first_updated = cycle.status.updated_at

        fetcher.gate.clear()
        task = asyncio.create_task(cycle.refresh())
        await wait_until(lambda: fetcher.calls == 2)
        assert cycle.status.state == "loading"
        assert cycle.status.message == "Updating…"
        assert cycle.status.updated_at == first_updated

        fetcher.gate.set()
        assert (await task).state == "ok"

    @pytest.mark.asyncio
    async def test_overlapping_triggers_share_one_fetch(self, config, store, clock):
        fetcher = GatedFetcher({"a": 10, "b": 5})
        cycle = RefreshCycle(config, fetcher, store, clock=clock)

        first = asyncio.create_task(cycle.refresh())
        second = asyncio.create_task(cycle.refresh())
        await wait_until(lambda: fetcher.calls == 1)
        assert cycle.in_flight

        fetcher.gate.set()
        results = await asyncio.gather(first, second)

        assert fetcher.calls == 1
        assert [r.state for r in results] == ["ok", "ok"]
        assert len(cycle.series) == 1
        assert not cycle.in_flight

    @pytest.mark.asyncio
    async def test_persists_after_success(self, config, kv, store, clock):
        cycle = RefreshCycle(config, FakeFetcher({"a": 10, "b": 5}), store, clock=clock)
        await cycle.refresh()
        assert kv.get("test_series") is not None

    @pytest.mark.asyncio
    async def test_breakdown_follows_last_prices(self, config, store, clock):
        cycle = RefreshCycle(config, FakeFetcher({"a": 10, "b": 5}), store, clock=clock)
        assert [r.price for r in cycle.breakdown()] == [None, None]
        await cycle.refresh()
        assert [r.value for r in cycle.breakdown()] == [20.0, 15.0]


class AdvancingFetcher(FakeFetcher):
    """Moves a monotonic clock forward on every fetch, like a slow endpoint."""

    def __init__(self, mono: FakeClock, seconds: float):
        super().__init__({"a": 10, "b": 5})
        self._mono = mono
        self._seconds = seconds

    async def fetch_prices(self, ids, vs_currency):
        self._mono.now += self._seconds
        return await super().fetch_prices(ids, vs_currency)


class ExplodingCycle:
    """Cycle stand-in whose refresh always raises."""

    def __init__(self):
        self.calls = 0

    async def refresh(self):
        self.calls += 1
        raise RuntimeError("boom")


class StepSleep:
    """Sleep stand-in that only returns when ``tick`` is called."""

    def __init__(self):
        self.calls: list[float] = []
        self._ticks: asyncio.Queue = asyncio.Queue()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self._ticks.get()

    def tick(self) -> None:
        self._ticks.put_nowait(None)


class TestPeriodicRefresher:
    def test_rejects_non_positive_interval(self, config, store):
        cycle = RefreshCycle(config, FakeFetcher({"a": 1, "b": 1}), store)
        with pytest.raises(ValueError):
            PeriodicRefresher(cycle, 0)

    @pytest.mark.asyncio
    async def test_runs_immediately_then_each_interval(self, config, store, clock):
        fetcher = FakeFetcher({"a": 10, "b": 5})
        cycle = RefreshCycle(config, fetcher, store, clock=clock)
        sleep = StepSleep()
        mono = FakeClock(0.0)
        refresher = PeriodicRefresher(
            cycle, config.refresh_interval_s, sleep=sleep, monotonic=mono,
        )

        await refresher.start()
        assert refresher.running
        await wait_until(lambda: len(sleep.calls) == 1)
        assert len(fetcher.calls) == 1
        assert sleep.calls == [60.0]

        clock.at_minute(101)
        mono.now = 60.0
        sleep.tick()
        await wait_until(lambda: len(sleep.calls) == 2)
        assert len(fetcher.calls) == 2
        assert sleep.calls == [60.0, 60.0]
        assert len(cycle.series) == 2

        await refresher.stop()
        assert not refresher.running
        sleep.tick()
        await asyncio.sleep(0)
        assert len(fetcher.calls) == 2

    @pytest.mark.asyncio
    async def test_fixed_rate_absorbs_slow_refresh(self, config, store, clock):
        mono = FakeClock(0.0)
        cycle = RefreshCycle(config, AdvancingFetcher(mono, 5.0), store, clock=clock)
        sleep = StepSleep()
        refresher = PeriodicRefresher(cycle, 60, sleep=sleep, monotonic=mono)

        await refresher.start()
        await wait_until(lambda: len(sleep.calls) == 1)
        mono.now = 60.0
        sleep.tick()
        await wait_until(lambda: len(sleep.calls) == 2)
        await refresher.stop()

        assert sleep.calls == [55.0, 55.0]

    @pytest.mark.asyncio
    async def test_overrun_skips_missed_ticks(self, config, store, clock):
        mono = FakeClock(0.0)
        cycle = RefreshCycle(config, AdvancingFetcher(mono, 130.0), store, clock=clock)
        sleep = StepSleep()
        refresher = PeriodicRefresher(cycle, 60, sleep=sleep, monotonic=mono)

        await refresher.start()
        await wait_until(lambda: len(sleep.calls) == 1)
        await refresher.stop()

        assert sleep.calls == [50.0]

    @pytest.mark.asyncio
    async def test_unexpected_error_keeps_timer_alive(self):
        cycle = ExplodingCycle()
        sleep = StepSleep()
        refresher = PeriodicRefresher(cycle, 60, sleep=sleep, monotonic=FakeClock(0.0))

        await refresher.start()
        await wait_until(lambda: len(sleep.calls) == 1)
        sleep.tick()
        await wait_until(lambda: len(sleep.calls) == 2)

        assert refresher.running
        assert cycle.calls == 2
        await refresher.stop()

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, config, store, clock):
        fetcher = FakeFetcher({"a": 10, "b": 5})
        refresher = PeriodicRefresher(
            RefreshCycle(config, fetcher, store, clock=clock), 60, sleep=StepSleep(),
        )
        await refresher.start()
        await refresher.start()
        await wait_until(lambda: len(fetcher.calls) >= 1)
        await asyncio.sleep(0)
        assert len(fetcher.calls) == 1
        await refresher.stop()

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_run_finish(self, config, store, clock):
        fetcher = GatedFetcher({"a": 10, "b": 5})
        cycle = RefreshCycle(config, fetcher, store, clock=clock)
        refresher = PeriodicRefresher(cycle, 60, sleep=StepSleep())

        await refresher.start()
        await wait_until(lambda: fetcher.calls == 1)
        await refresher.stop()

        fetcher.gate.set()
        await wait_until(lambda: cycle.status.state == "ok")
        assert cycle.series == [Sample(ts=100 * MINUTE, value=35.0)]

    @pytest.mark.asyncio
    async def test_manual_trigger(self, config, store, clock):
        fetcher = FakeFetcher({"a": 10, "b": 5})
        cycle = RefreshCycle(config, fetcher, store, clock=clock)
        refresher = PeriodicRefresher(cycle, 60, sleep=StepSleep())

        status = await refresher.trigger()

        assert status.state == "ok"
        assert not refresher.running
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_stop_without_start(self, config, store):
        refresher = PeriodicRefresher(
            RefreshCycle(config, FakeFetcher({"a": 1, "b": 1}), store), 60,
        )
        await refresher.stop()
        assert not refresher.running
