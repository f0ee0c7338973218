"""
Generic Vault secret provider.

Reads an arbitrary Vault path (KV v1 static secrets, dynamic database or
cloud credentials) through the hvac client and renews the resulting lease.

Architecture:
    - hvac is synchronous; every call runs in a worker thread via
      asyncio.to_thread so the event loop never blocks
    - VaultDown (sealed or unavailable) is retried 3 times with exponential
      backoff before surfacing
    - The first successful read is cached; initialize() returns the cache
      until invalidate() clears it

Renewal:
    - Reads that return a renewable lease_id are extended with
      sys/leases/renew, which only moves the lease (no new data)
    - Anything else is renewed by reading the path again
    - Store rejections (hvac.exceptions.VaultError, including an empty read)
      fail the renewal
    - Transport errors (connection resets, malformed bodies) are logged and
      answered with the previous value

Example:
    >>> provider = GenericProvider("database/creds/readonly", token="s.abc123")
    >>> lease = await provider.initialize()
    >>> lease.data["username"]
"""

import asyncio
import logging
from typing import Any

import hvac
import requests
from hvac.exceptions import InvalidPath, VaultDown
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tokend.secrets.config import LeaseSettings, TokendSettings, VaultSettings, get_settings
from tokend.secrets.exceptions import NotInitializedError, TransportSoftError
from tokend.secrets.metrics import tokend_provider_soft_failures_total
from tokend.secrets.providers.base import ProviderLease, ProviderRenewal

logger = logging.getLogger(__name__)

# Errors that say nothing about whether the store accepted the renewal.
SOFT_FAILURES: tuple[type[BaseException], ...] = (
    requests.exceptions.RequestException,
    ValueError,
    KeyError,
    TypeError,
)


def build_vault_client(vault: VaultSettings, token: str) -> hvac.Client:
    """Create an hvac client for the configured Vault endpoint."""
    return hvac.Client(
        url=vault.endpoint,
        token=token,
        verify=vault.verify,
        timeout=vault.timeout,
    )


class GenericProvider:
    """
    Provider for any Vault path that returns a leased secret.

    Args:
        path: Vault path to read (e.g., "secret/database/password")
        token: Vault token used for the read and the renewals
        settings: Agent settings; defaults to get_settings()
        client: Preconfigured hvac client (tests, custom adapters)
        vault: Override of settings.vault for this provider only

    Raises:
        ValueError: If path or token is empty
    """

    renewable = True
    expires = False

    def __init__(
        self,
        path: str,
        token: str,
        settings: TokendSettings | None = None,
        client: hvac.Client | None = None,
        vault: VaultSettings | None = None,
    ) -> None:
        if not path:
            raise ValueError("path argument is required")
        if not token:
            raise ValueError("token argument is required")

        settings = settings or get_settings()
        self.path = path
        self._lease_settings: LeaseSettings = settings.lease
        self._client = client if client is not None else build_vault_client(vault or settings.vault, token)
        self._lease: ProviderLease | None = None

    async def initialize(self) -> ProviderLease:
        """Read the secret, or return the cached read if one is held."""
        if self._lease is not None:
            return self._lease

        response = await asyncio.to_thread(self._read_with_retry)
        self._lease = self._parse_read(response)

        logger.info(
            "Secret read from Vault",
            extra={
                "secret_path": self.path,
                "lease_duration": self._lease.lease_duration,
                "renewable": self._lease.renewable,
            },
        )
        return self._lease

    async def renew(self) -> ProviderRenewal:
        """Extend the current lease, re-reading the path when it has no lease id."""
        if self._lease is None:
            raise NotInitializedError(provider=type(self).__name__, secret_path=self.path)

        previous = self._lease
        try:
            if previous.lease_id and previous.renewable is not False:
                response = await asyncio.to_thread(
                    self._client.sys.renew_lease,
                    lease_id=previous.lease_id,
                    increment=self._lease_settings.renew_increment,
                )
                lease_duration = int(response["lease_duration"])
                self._lease = ProviderLease(
                    data=previous.data,
                    lease_duration=lease_duration,
                    renewable=response.get("renewable", previous.renewable),
                    lease_id=response.get("lease_id", previous.lease_id),
                )
                return ProviderRenewal(lease_duration=lease_duration)

            response = await asyncio.to_thread(self._read_with_retry)
            self._lease = self._parse_read(response)
            return ProviderRenewal(lease_duration=self._lease.lease_duration, data=self._lease.data)
        except SOFT_FAILURES as exc:
            soft = TransportSoftError(
                f"Renewal transport error ignored: {type(exc).__name__}",
                secret_path=self.path,
                provider=type(self).__name__,
            )
            tokend_provider_soft_failures_total.labels(provider=type(self).__name__).inc()
            logger.info(
                "An error was thrown but was ignored",
                extra={"secret_path": self.path, "error": str(soft), "error_type": type(exc).__name__},
            )
            return ProviderRenewal(lease_duration=previous.lease_duration, data=previous.data)

    def invalidate(self) -> None:
        """Drop the cached read so the next initialize() hits Vault."""
        self._lease = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(VaultDown),
        reraise=True,
    )
    def _read_with_retry(self) -> dict[str, Any]:
        response = self._client.read(self.path)
        if response is None:
            # hvac returns None for 204/404 reads of an empty path
            raise InvalidPath(f"Vault returned no data for '{self.path}'", method="GET", url=self.path)
        return response

    def _parse_read(self, response: dict[str, Any]) -> ProviderLease:
        return ProviderLease(
            data=response.get("data"),
            lease_duration=int(response.get("lease_duration") or 0),
            renewable=response.get("renewable"),
            lease_id=response.get("lease_id") or None,
        )


def create_secret_provider(
    path: str,
    token: str,
    settings: TokendSettings | None = None,
    **kwargs: Any,
) -> GenericProvider:
    """
    Create a provider for a static secret in the ``secret/`` KV mount.

    Static secrets differ from generic ones only in where they live, so this
    is a GenericProvider located at ``secret/{path}``.

    Example:
        >>> provider = create_secret_provider("database/password", token="s.abc123")
        >>> provider.path
        'secret/database/password'
    """
    if not path:
        raise ValueError("path argument is required")
    return GenericProvider(f"secret/{path}", token, settings=settings, **kwargs)
