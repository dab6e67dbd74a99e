"""FastAPI application exposing index status, series and basket detail."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from basket_index.config.schema import AppConfig
from basket_index.prices.client import PriceClient
from basket_index.refresh.cycle import RefreshCycle
from basket_index.refresh.runner import build_cycle
from basket_index.refresh.scheduler import PeriodicRefresher

logger = structlog.get_logger()


def create_app(
    config: AppConfig | None = None,
    cycle: RefreshCycle | None = None,
    autostart: bool = True,
) -> FastAPI:
    """Build the app.

    When *cycle* is omitted one is built from *config* on startup, with its
    own price client. With ``autostart`` the periodic refresher runs for the
    lifetime of the app.
    """
    config = config or (cycle.config if cycle is not None else AppConfig())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client: PriceClient | None = None
        active = cycle
        if active is None:
            client = PriceClient.from_config(config.provider)
            active = build_cycle(config, client)
        refresher = PeriodicRefresher(active, config.refresh_interval_s)
        app.state.cycle = active
        app.state.refresher = refresher
        if autostart:
            await refresher.start()
        logger.info("api_started", index=config.index_name, autostart=autostart)
        try:
            yield
        finally:
            await refresher.stop()
            if client is not None:
                await client.close()

    app = FastAPI(
        title="Crypto Basket Index API",
        description="Market value of a fixed-quantity crypto basket over time",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    def _cycle(request: Request) -> RefreshCycle:
        return request.app.state.cycle

    def _status_payload(active: RefreshCycle) -> dict:
        status = active.status
        return {
            "index": config.index_name,
            "currency": config.vs_currency,
            "state": status.state,
            "message": status.message,
            "updatedAt": status.updated_at,
            "latest": active.latest_value,
        }

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/status")
    async def get_status(request: Request):
        """Outcome of the most recent refresh and the latest basket value."""
        return _status_payload(_cycle(request))

    @app.get("/api/series")
    async def get_series(request: Request):
        """Stored samples, oldest first."""
        active = _cycle(request)
        return {
            "currency": config.vs_currency,
            "maxPoints": config.max_points,
            "points": [s.model_dump() for s in active.series],
        }

    @app.get("/api/basket")
    async def get_basket(request: Request):
        """Per-asset amount, last fetched price and position value."""
        active = _cycle(request)
        return {
            "currency": config.vs_currency,
            "assets": [row.model_dump() for row in active.breakdown()],
        }

    @app.post("/api/refresh")
    async def refresh_now(request: Request):
        """Run a refresh now and report the resulting status."""
        await request.app.state.refresher.trigger()
        return _status_payload(_cycle(request))

    return app
