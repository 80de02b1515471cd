"""structlog setup shared by the API and the services.

Usage::

    from eventdesk.logs import configure_logging, get_logger

    configure_logging(log_level="DEBUG", json_format=False)
    logger = get_logger(__name__)
    logger.info("booking_rejected", location_id=loc_id, outcome="overlap")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def _add_service_name(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict.setdefault("service", "eventdesk")
    return event_dict


def configure_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """Configure structlog once for the process.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        json_format: True renders JSON lines, False a human-readable console format.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False, sort_keys=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)
