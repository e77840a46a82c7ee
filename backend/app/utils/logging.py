# backend/app/utils/logging.py
"""
Root logger setup for the API, scripts and tests.

Every record gets a `correlation_id` attribute (the request's ID, or
"-" outside a request). Output goes to stdout as either

    2024-03-08 12:00:01 | WARNING  | 5f0c... | app.services.market_data.price_oracle | Serving stale price for AAPL

or, with LOG_FORMAT=json, one JSON object per line including any `extra=`
fields passed by the caller.

Call setup_logging() once at process start (main.py, init_db.py and the
scripts do).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from app.config import settings
from app.utils.context import get_correlation_id

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "-"

# yfinance logs every HTTP retry at INFO; pandas/urllib3 are similar
QUIET_LOGGERS = ("yfinance", "peewee", "urllib3", "requests", "httpx", "httpcore", "multipart")

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "correlation_id"}


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """Single-line JSON records for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra

        # default=str covers Decimal amounts and dates passed as extras
        return json.dumps(entry, default=str)


def parse_level(name: str) -> int:
    """
    Map a level name to its numeric value.

    Raises:
        ValueError: Unknown level name
    """
    normalized = name.strip().upper()
    if normalized == "WARN":
        normalized = "WARNING"
    if normalized not in VALID_LEVELS:
        raise ValueError(f"Invalid log level: '{name}'. Valid levels are: {', '.join(VALID_LEVELS)}")
    return getattr(logging, normalized)


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Replace the root handlers with one stdout handler.

    Args:
        level: Level name, defaults to LOG_LEVEL
        log_format: "text" or "json", defaults to LOG_FORMAT
        suppress_noisy_loggers: Raise chatty third-party loggers to WARNING
    """
    level_name = level or settings.log_level
    output = (log_format or settings.log_format).lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        JsonFormatter() if output == "json" else logging.Formatter(TEXT_FORMAT, DATE_FORMAT)
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(parse_level(level_name))

    if suppress_noisy_loggers:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging ready (level={level_name}, format={output})")
