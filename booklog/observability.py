# booklog/observability.py
"""
Logging setup.

``setup_logging()`` is called once from the application lifespan. It
installs a single handler on the root logger, either human-readable text
or one JSON object per line. Calling it again replaces the handler rather
than stacking a second one.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone


# Extra attributes surfaced in JSON output when a log call passes them.
EXTRA_FIELDS = ("book_id", "path", "method", "status", "duration_ms", "error_code", "count")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


_handler: logging.Handler | None = None


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure the root logger for the application."""
    global _handler

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
        ))
    if _handler is not None:
        logging.root.removeHandler(_handler)
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _handler = handler
