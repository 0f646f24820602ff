"""Structured logging configuration.

Uses standard library logging. Engine modules attach the run they are talking
about through ``extra={"kit_id": ..., "session_id": ..., "stage": ...}``; both
output formats surface those fields so one session's lines can be picked out
of an interleaved stream.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

# Correlation keys promoted to the top level of each JSON line, in this order.
KIT_CONTEXT_FIELDS: tuple[str, ...] = ("session_id", "kit_id", "stage", "event_type")

_RESERVED_LOG_RECORD_ATTRS: set[str] = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "kit_context"}

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s%(kit_context)s"


class KitContextFilter(logging.Filter):
    """Render the kit correlation fields into ``record.kit_context`` for text output."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (record)
        parts = [
            f"{key}={getattr(record, key)}"
            for key in KIT_CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        ]
        record.kit_context = f" [{' '.join(parts)}]" if parts else ""
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Kit correlation fields sit next to ``message``; any other ``extra=`` field is
    nested under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_ATTRS or key.startswith("_"):
                continue
            if key in KIT_CONTEXT_FIELDS:
                if value is not None:
                    payload[key] = value
            else:
                extra[key] = value
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str, fmt: str = "json") -> None:
    """Configure root logging (JSON by default, plain text on request)."""

    root = logging.getLogger()

    # Remove any existing handlers to avoid duplicate logs when re-configuring.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stderr)
    if fmt == "text":
        handler.addFilter(KitContextFilter())
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    else:
        handler.setFormatter(JsonFormatter())

    root.addHandler(handler)
    root.setLevel(level.upper())
