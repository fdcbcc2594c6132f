"""
Structured JSON logging for Canon.

Modules log through ``logging.getLogger(__name__)``, which puts them under
the ``canon`` namespace. setup_logging() attaches a single-line JSON
formatter to that namespace::

    logger.warning("effect failed", extra={"path": path, "op": "add"})
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

NAMESPACE = "canon"

# Extra record attributes copied into the JSON line when present.
EXTRA_FIELDS = ("provenance_id", "path", "op", "document")


class JSONFormatter(logging.Formatter):
    """Emits each record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_CONFIGURED = False


def setup_logging(level: int | str = logging.INFO, log_file: str | None = None) -> None:
    """Configure the ``canon`` logger with JSON handlers.

    Safe to call multiple times; only the first call has effect.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return
    _CONFIGURED = True

    root = logging.getLogger(NAMESPACE)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.propagate = False

    formatter = JSONFormatter()

    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(formatter)
    root.addHandler(sh)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)


def get_logger(name: str = NAMESPACE) -> logging.Logger:
    """Return a logger under the ``canon`` namespace."""
    if name == NAMESPACE or name.startswith(f"{NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{NAMESPACE}.{name}")
