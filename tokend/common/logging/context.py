"""Lease path context propagation for log correlation.

Every log record emitted while a lease manager is talking to its provider
carries the secret path of that lease, so records from many independent
managers running on one event loop can be told apart.

The path lives in a context variable, which asyncio copies into each task,
so concurrently running managers never see each other's value.

Example:
    >>> from tokend.common.logging.context import LeaseLogContext, get_lease_path
    >>> with LeaseLogContext("secret/database/password"):
    ...     get_lease_path()
    'secret/database/password'
    >>> get_lease_path() is None
    True
"""

import contextvars
from types import TracebackType

_lease_path_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "lease_path", default=None
)


def get_lease_path() -> str | None:
    """Get the lease path for the current context.

    Returns:
        Current lease path if set, None otherwise
    """
    return _lease_path_var.get()


def set_lease_path(path: str) -> None:
    """Set the lease path for the current context.

    Args:
        path: Secret path of the lease being managed

    Raises:
        ValueError: If path is empty or None
    """
    if not path:
        raise ValueError("Lease path cannot be empty")
    _lease_path_var.set(path)


def clear_lease_path() -> None:
    """Clear the lease path from the current context."""
    _lease_path_var.set(None)


class LeaseLogContext:
    """Context manager for scoped lease path management.

    Sets the lease path for a block of code and restores the previous value
    on exit. An empty path leaves the current context untouched, which lets
    anonymous managers (used heavily in tests) share the same code path.

    Args:
        path: Secret path to attach to log records inside the block

    Example:
        >>> with LeaseLogContext("secret/alpaca/api_key_id"):
        ...     logger.info("Renewing lease")  # record.lease == "secret/alpaca/api_key_id"
    """

    def __init__(self, path: str | None) -> None:
        self.path = path
        self._token: contextvars.Token[str | None] | None = None

    def __enter__(self) -> str | None:
        if self.path:
            self._token = _lease_path_var.set(self.path)
        return get_lease_path()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _lease_path_var.reset(self._token)
            self._token = None
