"""Read-only JSON API plus the manual refresh action."""

from basket_index.api.app import create_app

__all__ = ["create_app"]
