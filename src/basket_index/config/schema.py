"""Configuration schema — Pydantic models for config.yaml."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from basket_index.models import BasketEntry

DEFAULT_BASKET: list[dict[str, float | str]] = [
    {"id": "bitcoin", "amount": 0.0001},
    {"id": "ethereum", "amount": 0.003},
    {"id": "solana", "amount": 0.1},
    {"id": "monero", "amount": 0.03},
    {"id": "meteora", "amount": 50},
    {"id": "dogecoin", "amount": 50},
    {"id": "cardano", "amount": 20},
    {"id": "cosmos", "amount": 4},
    {"id": "floki", "amount": 150000},
    {"id": "jupiter-perpetuals-liquidity-provider-token", "amount": 3},
    {"id": "digibyte", "amount": 1000},
    {"id": "avalanche-2", "amount": 1},
]


class ProviderConfig(BaseModel):
    base_url: str = "https://robertindexserver-production.up.railway.app"
    prices_path: str = "/api/prices"
    # "prices": {"prices": {id: price}}; "simple": {id: {vs: price}}
    response_shape: Literal["prices", "simple"] = "prices"
    api_key: str | None = None
    api_key_header: str = "x-cg-demo-api-key"
    timeout_s: float = 15.0


class StorageConfig(BaseModel):
    directory: str = "data"
    key: str = "crypto_basket_timeseries_v2"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"


class ApiConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    index_name: str = "Crypto Basket Index"
    basket: list[BasketEntry] = Field(
        default_factory=lambda: [BasketEntry(**e) for e in DEFAULT_BASKET]
    )
    vs_currency: str = "usd"
    refresh_interval_ms: int = Field(default=15 * 60 * 1000, gt=0)
    max_points: int = Field(default=500, gt=0)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @field_validator("basket")
    @classmethod
    def _basket_ids_unique(cls, basket: list[BasketEntry]) -> list[BasketEntry]:
        if not basket:
            raise ValueError("basket must contain at least one asset")
        seen: set[str] = set()
        for entry in basket:
            if entry.id in seen:
                raise ValueError(f"duplicate basket asset: {entry.id}")
            seen.add(entry.id)
        return basket

    @field_validator("vs_currency")
    @classmethod
    def _lower_currency(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("vs_currency must not be empty")
        return v

    @property
    def asset_ids(self) -> list[str]:
        return [e.id for e in self.basket]

    @property
    def refresh_interval_s(self) -> float:
        return self.refresh_interval_ms / 1000
