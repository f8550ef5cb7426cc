"""Single-line JSON log formatter.

Activated with ``API_STRUCTURED_LOGGING=true``; the application then replaces
the root handlers with one ``StreamHandler`` using :class:`JSONFormatter`.

Output schema per line::

    {
        "timestamp": "2026-03-01T12:00:00.000000+00:00",
        "level": "INFO",
        "logger": "robot_core.usage.ingestion",
        "message": "Usage logs ingested: robot=7 received=3 inserted=3 skipped=0",
        "service": "whizrobot-api",
        "request": { ... },          // RequestLoggingMiddleware records only
        "exc_type": "IntegrityError", // with exc_info
        "exc_info": "Traceback ..."
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def __init__(self, service: str = "whizrobot-api") -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service,
        }

        request_data = getattr(record, "request", None)
        if request_data is not None:
            payload["request"] = request_data

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_type"] = record.exc_info[0].__name__
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def install_json_logging(level: int = logging.INFO, *, service: str = "whizrobot-api") -> logging.Handler:
    """Route every logger through one JSON ``StreamHandler``.

    Existing root handlers are removed so each record is written once.
    Returns the installed handler.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter(service=service))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    return handler
