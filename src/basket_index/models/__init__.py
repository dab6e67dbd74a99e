"""Pydantic domain models."""

from basket_index.models.basket import AssetBreakdown, BasketEntry, PriceMapping
from basket_index.models.series import Sample, Status, StatusState

__all__ = [
    "AssetBreakdown",
    "BasketEntry",
    "PriceMapping",
    "Sample",
    "Status",
    "StatusState",
]
