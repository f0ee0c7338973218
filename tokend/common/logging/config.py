"""Logging setup for the agent process.

``configure_logging`` is called once by the entry point. Library modules
never touch handlers; they use ``logging.getLogger(__name__)`` and pass
structured fields through ``extra=``.
"""

import logging
import sys

from tokend.common.logging.context import get_lease_path
from tokend.common.logging.formatter import JSONFormatter


class LeaseContextFilter(logging.Filter):
    """Stamp each record with the lease path of the surrounding ``LeaseLogContext``.

    A record that already names a lease keeps it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "lease", None) is None:
            record.lease = get_lease_path()
        return True


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {name}")
    return level


def configure_logging(
    service_name: str = "tokend",
    log_level: str = "INFO",
    include_context: bool = True,
) -> logging.Logger:
    """Send every record to stdout as JSON, tagged with its lease path.

    Replaces any handlers already installed on the root logger, so calling
    it twice leaves exactly one handler.

    Raises:
        ValueError: ``log_level`` is not a logging level name
    """
    level = _resolve_level(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter(service_name, include_context=include_context))
    handler.addFilter(LeaseContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    return root


def log_with_context(logger: logging.Logger, level: str, message: str, **fields: object) -> None:
    """Log ``message`` at ``level`` with ``fields`` as the record's context object.

    Example:
        >>> log_with_context(logger, "INFO", "Lease renewed", lease_duration=60)
    """
    logger.log(_resolve_level(level), message, extra={"context": fields})
