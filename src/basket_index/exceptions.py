"""Errors raised by the basket index.

Fetch and valuation errors abort a refresh run and surface only as the
status message. Persistence errors are absorbed by the series store.
"""

from __future__ import annotations


class BasketIndexError(Exception):
    """Base exception for all basket index errors."""


class FetchError(BasketIndexError):
    """Raised when the price endpoint call does not succeed."""

    def __init__(self, status: int | None, body: str = "") -> None:
        self.status = status
        self.body = body
        if status is None:
            message = f"Price fetch failed. {body}".strip()
        else:
            message = f"Price fetch failed ({status}). {body}".strip()
        super().__init__(message)


class DataShapeError(BasketIndexError):
    """Raised when the price response is malformed or incomplete."""


class MissingPriceError(BasketIndexError):
    """Raised when a basket asset has no price at valuation time."""


class PersistenceError(BasketIndexError):
    """Raised by a key-value store when a read or write fails."""
