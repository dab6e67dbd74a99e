"""Configuration system."""

from basket_index.config.loader import lint_basket, load_config
from basket_index.config.schema import AppConfig

__all__ = ["AppConfig", "lint_basket", "load_config"]
