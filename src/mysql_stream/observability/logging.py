"""structlog setup."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from mysql_stream.config.models import LoggingConfig


def configure_logging(config: LoggingConfig) -> None:
    """Route structlog through stdlib logging with the configured renderer."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=config.level.upper(),
        force=True,
    )

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if config.renderer == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )
