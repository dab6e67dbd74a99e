"""Allow running the refresher as: python -m basket_index [--config path] [--once]."""

from basket_index.refresh.runner import cli

cli()
