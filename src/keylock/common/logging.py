"""Structured JSON logging for Keylock.

Verification and admin events pass their context through ``extra``::

    logger.info("License verified", extra={"license_key": key, "code": "ok"})

License keys are bearer secrets, so the formatter masks every group but
the prefix and the last one before the line is written.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

CONTEXT_FIELDS = ("license_key", "environment_id", "sub_resource_id", "code", "owner")


def mask_key(key: str | None) -> str | None:
    """``MUSIC-1A2B3C4D-5E6F7A8B-9C0D1E2F`` -> ``MUSIC-********-********-9C0D1E2F``."""
    if not key:
        return key
    parts = key.split("-")
    if len(parts) < 3:
        return "*" * len(key)
    hidden = ["*" * len(p) for p in parts[1:-1]]
    return "-".join([parts[0], *hidden, parts[-1]])


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = mask_key(value) if field == "license_key" else value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Attach a single JSON handler to the ``keylock`` logger tree.

    Logs go to stdout unless ``stream`` is given. Repeated calls reuse the
    handler and point it at the current stream.
    """
    root = logging.getLogger("keylock")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    stream = stream or sys.stdout
    handler = next(
        (h for h in root.handlers if isinstance(h.formatter, JSONFormatter)), None
    )
    if handler is None:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    else:
        handler.stream = stream
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"keylock.{name}")
