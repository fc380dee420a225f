"""
Logging setup for the API server and the CLI.

Production (APP_ENV=production) writes one JSON object per line to stdout,
tagged with level, logger and service so search degradations (translation or
cache failures, logged at WARNING) can be filtered downstream. Everywhere else
a readable single-line format is used.
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter

from placefinder.config import get_settings

SERVICE_NAME = "placefinder"

# Chatty below WARNING: per-request client logs, pool churn, access lines
QUIET_LOGGERS = ("httpx", "httpcore", "asyncpg", "uvicorn.access")


class PlacefinderJSONFormatter(json_log_formatter.JSONFormatter):
    def json_record(self, message: str, extra: dict, record: logging.LogRecord) -> dict:
        extra = super().json_record(message, extra, record)
        extra["level"] = record.levelname
        extra["logger"] = record.name
        extra.setdefault("service", SERVICE_NAME)
        return extra


def setup_logging() -> None:
    """Configure the root logger from LOG_LEVEL / APP_ENV."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if settings.env == "production":
        handler.setFormatter(PlacefinderJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
