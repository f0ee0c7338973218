"""JSON log formatter for the agent.

One JSON object per line, shaped for log aggregation:

    {
        "timestamp": "2026-10-19T10:30:00.000Z",
        "level": "INFO",
        "service": "tokend",
        "lease": "secret/database/password",
        "message": "Lease renewed",
        "context": {"provider": "GenericProvider", "lease_duration": 3600},
        "source": {"file": ".../lease_manager.py", "line": 395, "function": "_renew"}
    }

``lease`` is filled by ``LeaseContextFilter``; ``context`` holds whatever the
call site passed through ``extra=``. Call sites attach paths, provider names,
durations and statuses, never secret values.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord carries; anything else on a record came from extra=.
_STANDARD_ATTRS = frozenset(logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "taskName",
    "lease",
    "context",
}


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON.

    Args:
        service_name: Value of the ``service`` field
        include_context: Emit the ``context`` object for records that have one
    """

    def __init__(self, service_name: str, include_context: bool = True, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self._timestamp(record),
            "level": record.levelname,
            "service": self.service_name,
            "lease": getattr(record, "lease", None),
            "message": record.getMessage(),
        }

        context = self._context(record) if self.include_context else None
        if context:
            entry["context"] = context

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        entry["source"] = {"file": record.pathname, "line": record.lineno, "function": record.funcName}
        return json.dumps(entry, default=str)

    @staticmethod
    def _timestamp(record: logging.LogRecord) -> str:
        """UTC ISO 8601 with millisecond precision and a ``Z`` suffix."""
        stamp = datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds")
        return stamp.replace("+00:00", "Z")

    @staticmethod
    def _context(record: logging.LogRecord) -> dict[str, Any] | None:
        # An explicit context dict (log_with_context) replaces extra= fields.
        explicit = getattr(record, "context", None)
        if isinstance(explicit, dict) and explicit:
            return dict(explicit)

        extra = {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS}
        return extra or None
