"""Price provider client."""

from basket_index.prices.client import PriceClient

__all__ = ["PriceClient"]
