"""Shared test fixtures."""

from __future__ import annotations

import asyncio

import pytest

from basket_index.config.schema import AppConfig
from basket_index.series.kv import MemoryKeyValueStore
from basket_index.series.store import SeriesStore


class FakeFetcher:
    """Returns queued price mappings (or raises queued exceptions) in order.

    The last queued response repeats once the queue is down to one.
    """

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls: list[tuple[list[str], str]] = []

    async def fetch_prices(self, ids, vs_currency):
        self.calls.append((list(ids), vs_currency))
        resp = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(resp, Exception):
            raise resp
        return dict(resp)


class GatedFetcher:
    """Blocks every fetch until ``gate`` is set."""

    def __init__(self, prices):
        self._prices = prices
        self.gate = asyncio.Event()
        self.calls = 0

    async def fetch_prices(self, ids, vs_currency):
        self.calls += 1
        await self.gate.wait()
        return dict(self._prices)


class FakeClock:
    """Callable clock in epoch seconds."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def at_minute(self, minute: int, second: int = 0) -> None:
        self.now = minute * 60 + second


async def wait_until(predicate, attempts: int = 200) -> None:
    """Yield to the event loop until *predicate* holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def config() -> AppConfig:
    """Two-asset basket: 2 x a + 3 x b, quoted in usd."""
    return AppConfig(
        index_name="Test Index",
        basket=[{"id": "a", "amount": 2}, {"id": "b", "amount": 3}],
        vs_currency="usd",
        refresh_interval_ms=60_000,
    )


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv) -> SeriesStore:
    return SeriesStore(kv, key="test_series")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(100 * 60)
