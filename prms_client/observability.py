"""Logging configuration and request metrics for the PRMS client."""

from __future__ import annotations

import logging
from typing import Optional

import structlog
from prometheus_client import Counter, Histogram

from prms_client.config import get_client_settings


REQUEST_FAILURES = Counter(
    "prms_client_request_failures_total",
    "Gateway calls that ended in a classified failure",
    ("kind",),
)

REQUEST_LATENCY = Histogram(
    "prms_client_request_seconds",
    "Duration of gateway HTTP exchanges",
    ("method",),
)


def configure_logging(level: Optional[str] = None) -> None:
    """Route structlog through stdlib logging with JSON output.

    ``level`` defaults to the ``LOG_LEVEL`` resolved in the client settings.
    """

    level_name = (level or get_client_settings().log_level).upper()
    numeric = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=numeric, format="%(message)s")
    logging.getLogger().setLevel(numeric)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


__all__ = ["REQUEST_FAILURES", "REQUEST_LATENCY", "configure_logging"]
