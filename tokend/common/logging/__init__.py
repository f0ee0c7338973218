"""Structured logging for the secrets agent.

Usage:
    # At agent startup
    from tokend.common.logging import configure_logging
    configure_logging(service_name="tokend", log_level="INFO")

    # Around work for a single lease
    from tokend.common.logging import LeaseLogContext
    with LeaseLogContext("secret/database/password"):
        logger.info("Renewing lease")
"""

from tokend.common.logging.config import (
    LeaseContextFilter,
    configure_logging,
    log_with_context,
)
from tokend.common.logging.context import (
    LeaseLogContext,
    clear_lease_path,
    get_lease_path,
    set_lease_path,
)
from tokend.common.logging.formatter import JSONFormatter

__all__ = [
    # Configuration
    "configure_logging",
    "log_with_context",
    "LeaseContextFilter",
    # Lease path management
    "LeaseLogContext",
    "get_lease_path",
    "set_lease_path",
    "clear_lease_path",
    # Formatter (for advanced usage)
    "JSONFormatter",
]
