"""Crypto basket index — fixed-quantity basket valuation over time."""

__version__ = "0.1.0"
