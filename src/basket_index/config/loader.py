"""Config loader — reads YAML, applies BASKET_* env var overrides."""

from __future__ import annotations

import math
import os
from pathlib import Path

import yaml

from basket_index.config.schema import AppConfig
from basket_index.models import BasketEntry


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    If *path* is None or the file doesn't exist, returns defaults.

    Environment variable overrides:
        BASKET_API_KEY        -> provider.api_key
        BASKET_PROVIDER_URL   -> provider.base_url
        BASKET_STORAGE_DIR    -> storage.directory
        BASKET_LOG_LEVEL      -> logging.level
        BASKET_LOG_FORMAT     -> logging.format
    """
    data: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}

    overrides = [
        ("BASKET_API_KEY", "provider", "api_key"),
        ("BASKET_PROVIDER_URL", "provider", "base_url"),
        ("BASKET_STORAGE_DIR", "storage", "directory"),
        ("BASKET_LOG_LEVEL", "logging", "level"),
        ("BASKET_LOG_FORMAT", "logging", "format"),
    ]
    for env_name, section, field in overrides:
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})[field] = value

    return AppConfig.model_validate(data)


def lint_basket(basket: list[BasketEntry]) -> list[str]:
    """Return a warning per basket entry whose amount will not value cleanly.

    Non-finite amounts are valued as zero rather than failing the refresh,
    so they are reported here, once, when the config is loaded.
    """
    warnings: list[str] = []
    for entry in basket:
        amount = entry.amount
        if not math.isfinite(amount):
            warnings.append(f"{entry.id}: amount {amount!r} is not a finite number and counts as zero")
        elif amount < 0:
            warnings.append(f"{entry.id}: amount {amount!r} is negative")
    return warnings
