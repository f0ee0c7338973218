"""
Provider capability contract.

A provider answers two questions for exactly one lease manager: "give me a
value" (``initialize``) and "refresh my value" (``renew``). It knows nothing
about scheduling. Concrete providers are independent classes that satisfy
the ``Provider`` protocol; no base class is required.

Capabilities:
    renewable: default renewability when ``initialize`` does not say
    expires: the credential carries an absolute expiration ceiling, exposed
             through the ``expiration_time`` attribute
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ProviderLease:
    """Value produced by ``Provider.initialize``.

    Attributes:
        data: The secret value (opaque to the lease manager)
        lease_duration: Seconds the value is valid without renewal
        renewable: Whether the lease can be extended; None means "yes"
        lease_id: Store-side lease identifier, when the store issues one
        creation_time: When the credential was issued (expiring providers)
        expiration_time: Absolute ceiling (expiring providers)
    """

    data: Any
    lease_duration: int
    renewable: bool | None = None
    lease_id: str | None = None
    creation_time: datetime | None = None
    expiration_time: datetime | None = None


@dataclass(frozen=True)
class ProviderRenewal:
    """Value produced by ``Provider.renew``.

    ``data`` is None when the store only extended the lease.
    """

    lease_duration: int
    data: Any = None


@runtime_checkable
class Provider(Protocol):
    """Interface every secret provider satisfies."""

    renewable: bool
    expires: bool

    async def initialize(self) -> ProviderLease: ...

    async def renew(self) -> ProviderRenewal: ...

    def invalidate(self) -> None: ...


def provider_name(provider: object) -> str:
    return type(provider).__name__
