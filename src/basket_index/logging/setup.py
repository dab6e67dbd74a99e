"""Structured logging setup with structlog.

Every event carries the index name (when given) so logs from several
baskets on one host can be told apart.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Third-party loggers that log each request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore")

_PRE_CHAIN: tuple[structlog.types.Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
)


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def _stderr_handler(log_format: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_format),
        ],
    ))
    return handler


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    index_name: str | None = None,
) -> None:
    """Route structlog through a single stderr handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: "json" for production, "console" for a terminal.
        index_name: Bound as ``index`` on every event when set.
    """
    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers[:] = [_stderr_handler(log_format)]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Request-level chatter only when debugging.
    chatty_level = logging.NOTSET if root.level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)

    structlog.contextvars.unbind_contextvars("index")
    if index_name:
        structlog.contextvars.bind_contextvars(index=index_name)


def get_logger(name: str | None = None, **initial_context) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger with *initial_context* bound."""
    return structlog.get_logger(name).bind(**initial_context)
