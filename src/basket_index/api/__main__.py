"""FastAPI server runner: python -m basket_index.api [--config path]."""

import argparse

import structlog
import uvicorn

from basket_index.api.app import create_app
from basket_index.config.loader import load_config
from basket_index.logging.setup import setup_logging

logger = structlog.get_logger()


def main() -> None:
    """Run the FastAPI server with the periodic refresher attached."""
    parser = argparse.ArgumentParser(description="Crypto basket index API")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        index_name=config.index_name,
    )

    logger.info("Starting FastAPI server", host=config.api.host, port=config.api.port)

    try:
        uvicorn.run(
            create_app(config),
            host=config.api.host,
            port=config.api.port,
            log_config=None,  # Use our structlog setup
        )
    except Exception as e:
        logger.error("Failed to start server", error=str(e))
        raise


if __name__ == "__main__":
    main()
