"""Logging setup for the API process and scripts."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from app.config import settings

_CONTEXT_FIELDS = (
    "request_id",
    "subnet_id",
    "address_id",
    "cidr",
    "customer_id",
    "method",
    "path",
    "status_code",
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        for attr in _CONTEXT_FIELDS:
            if hasattr(record, attr):
                entry[attr] = str(getattr(record, attr))
        return json.dumps(entry)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    log_level = (level or settings.log_level).upper()
    log_format = (fmt or settings.log_format).lower()

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, log_level, logging.INFO))

    # SQL echo is controlled separately
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
