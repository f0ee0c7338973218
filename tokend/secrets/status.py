"""Lease lifecycle status values."""

from enum import Enum


class LeaseStatus(str, Enum):
    """Closed set of states a lease manager moves through.

    PENDING: no valid value held (initial state, and after invalidation)
    READY: valid value held, auto-renewing when renewable
    ERROR: renewal failed; last good value retained, no further renewals
    """

    PENDING = "PENDING"
    READY = "READY"
    ERROR = "ERROR"
