"""Refresh cycle — fetch, value, merge, persist on a timer."""

from basket_index.refresh.cycle import PriceFetcher, RefreshCycle
from basket_index.refresh.scheduler import PeriodicRefresher

__all__ = ["PeriodicRefresher", "PriceFetcher", "RefreshCycle"]
