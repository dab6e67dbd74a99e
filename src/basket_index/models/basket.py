"""Basket models — fixed asset quantities and their priced breakdown."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Asset id -> price in the quote currency. Rebuilt on every fetch.
PriceMapping = dict[str, float]


class BasketEntry(BaseModel):
    """One asset in the basket with an absolute quantity (not a weight)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    amount: float


class AssetBreakdown(BaseModel):
    """Per-asset detail for display: quantity, last price and position value."""

    id: str
    amount: float
    price: float | None = None
    value: float | None = None
