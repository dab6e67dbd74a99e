"""Refresher runner — wires config, client and store, then loops until stopped."""

from __future__ import annotations

import argparse
import asyncio
import json

from basket_index.config.loader import lint_basket, load_config
from basket_index.config.schema import AppConfig
from basket_index.logging import get_logger, setup_logging
from basket_index.prices.client import PriceClient
from basket_index.refresh.cycle import PriceFetcher, RefreshCycle
from basket_index.refresh.scheduler import PeriodicRefresher
from basket_index.series.kv import FileKeyValueStore
from basket_index.series.store import SeriesStore

log = get_logger("refresher")


def build_cycle(config: AppConfig, fetcher: PriceFetcher | None = None) -> RefreshCycle:
    """Create the refresh cycle for *config*, loading any stored series."""
    for warning in lint_basket(config.basket):
        log.warning("basket_amount_invalid", detail=warning)

    store = SeriesStore(
        FileKeyValueStore(config.storage.directory),
        key=config.storage.key,
        max_points=config.max_points,
    )
    loaded = store.load()
    log.info("series_loaded", points=len(loaded), key=config.storage.key)

    if fetcher is None:
        fetcher = PriceClient.from_config(config.provider)
    return RefreshCycle(config, fetcher, store)


async def run_once(config: AppConfig) -> dict:
    """Run a single refresh and return a summary."""
    client = PriceClient.from_config(config.provider)
    try:
        cycle = build_cycle(config, client)
        status = await cycle.refresh()
    finally:
        await client.close()
    return {
        "index": config.index_name,
        "currency": config.vs_currency,
        "status": status.model_dump(),
        "latest": cycle.latest_value,
        "points": len(cycle.series),
    }


async def run_loop(config: AppConfig) -> None:
    """Refresh immediately and then every configured interval, forever."""
    client = PriceClient.from_config(config.provider)
    cycle = build_cycle(config, client)
    refresher = PeriodicRefresher(cycle, config.refresh_interval_s)

    log.info(
        "index_started",
        index=config.index_name,
        assets=config.asset_ids,
        interval_s=config.refresh_interval_s,
    )
    await refresher.start()
    try:
        await asyncio.Event().wait()
    finally:
        await refresher.stop()
        await client.close()


def main(config_path: str | None = None, once: bool = False) -> None:
    """Entry point — load config, set up logging, run the async loop."""
    config = load_config(config_path)
    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        index_name=config.index_name,
    )
    if once:
        summary = asyncio.run(run_once(config))
        print(json.dumps(summary, indent=2, ensure_ascii=False))
        return
    try:
        asyncio.run(run_loop(config))
    except KeyboardInterrupt:
        log.info("index_stopped")


def cli() -> None:
    parser = argparse.ArgumentParser(description="Crypto basket index refresher")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--once", action="store_true", help="Refresh once, print a summary and exit")
    args = parser.parse_args()
    main(config_path=args.config, once=args.once)
