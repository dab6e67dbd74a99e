"""Basket valuation — IndexValue = sum(amount_i * price_i)."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from basket_index.exceptions import MissingPriceError
from basket_index.models import AssetBreakdown, BasketEntry


def _amount(entry: BasketEntry) -> float:
    """Amounts that are not finite numbers count as zero."""
    amount = entry.amount
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return 0.0
    if not math.isfinite(amount):
        return 0.0
    return float(amount)


def _price(prices: Mapping[str, float], asset_id: str) -> float | None:
    price = prices.get(asset_id)
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return None
    return float(price)


def compute_basket_value(
    prices: Mapping[str, float],
    basket: Sequence[BasketEntry],
) -> float:
    """Return the market value of *basket* at *prices*.

    Raises MissingPriceError if any basket asset is unpriced; a partial sum
    would understate the index.
    """
    total = 0.0
    for entry in basket:
        price = _price(prices, entry.id)
        if price is None:
            raise MissingPriceError(f"No price for {entry.id}")
        total += price * _amount(entry)
    return total


def asset_breakdown(
    prices: Mapping[str, float] | None,
    basket: Sequence[BasketEntry],
) -> list[AssetBreakdown]:
    """Per-asset price and position value; unknown prices are left as None.

    Amounts are reported as valued, so rows add up to the basket value.
    """
    rows: list[AssetBreakdown] = []
    for entry in basket:
        price = _price(prices, entry.id) if prices is not None else None
        amount = _amount(entry)
        rows.append(AssetBreakdown(
            id=entry.id,
            amount=amount,
            price=price,
            value=price * amount if price is not None else None,
        ))
    return rows
