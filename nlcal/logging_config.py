"""
Logging for nlcal: structlog on top of stdlib logging.

Every record goes to stderr so the CLI can keep stdout for its JSON. Records
emitted while a request is being handled carry that request's id (and the
user, when known) through ``request_context``.

Environment:
    NLCAL_LOG_LEVEL   DEBUG, INFO, WARNING, ... (default: INFO; the CLI uses WARNING)
    NLCAL_LOG_FORMAT  "json" for one JSON object per line, else console output

Usage:
    from nlcal.logging_config import get_logger, request_context, setup_logging

    setup_logging()
    logger = get_logger(__name__)

    with request_context(user_id="u-42"):
        logger.info("command_parsed", action="create")
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

# SDK loggers that are chatty at INFO
_QUIET_LOGGERS = ("anthropic", "httpx", "httpcore")


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
    default_level: str = "INFO",
) -> None:
    """Route stdlib and structlog output through one stderr handler.

    Args:
        level: Explicit level; beats ``NLCAL_LOG_LEVEL``
        json_output: Force JSON (True) or console (False) rendering
        default_level: Used when neither ``level`` nor the env var is set
    """
    level = level or os.environ.get("NLCAL_LOG_LEVEL") or default_level
    if json_output is None:
        json_output = os.environ.get("NLCAL_LOG_FORMAT", "").lower() == "json"

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def request_context(request_id: str | None = None, **values: Any) -> Iterator[str]:
    """Bind a request id (and any extra values) to every log line in the block.

    Yields the request id. ``None`` values are dropped.
    """
    request_id = request_id or uuid.uuid4().hex[:12]
    bound = {k: v for k, v in values.items() if v is not None}
    with structlog.contextvars.bound_contextvars(request_id=request_id, **bound):
        yield request_id


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["get_logger", "request_context", "setup_logging"]
