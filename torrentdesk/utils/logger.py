"""Logging configuration with structured JSON output."""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from .config import settings


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Torrent identity attached via extra={"identity": ...}
        identity = getattr(record, "identity", None)
        if identity:
            log_data["identity"] = identity

        return json.dumps(log_data)


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    logger = logging.getLogger("torrentdesk")
    logger.setLevel(getattr(logging, settings.log_level))

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    # Keep session logs out of uvicorn's root handlers
    logger.propagate = False

    return logger


# Global logger instance
logger = setup_logging()
