"""
Vault token provider backed by the Warden attestation service.

This provider coordinates tokend, Warden and Vault: it proves the host's
identity to Warden with the instance identity documents, receives a Vault
token in exchange, and keeps that token alive with Vault's token renewal API.

Handshake:
    1. GET document, signature and pkcs7 from the instance metadata service
    2. POST {"document": ..., "signature": <PKCS7 envelope>} to Warden with a
       Content-Length matching the serialized body
    3. Warden answers 200 with client_token, lease_duration, creation_time
       and expiration_time; any other status is a hard failure

Tokens issued by Warden carry a hard expiration_time that renewal cannot
move, so this provider declares ``expires = True`` and the lease manager
re-runs the handshake once the ceiling is close.
"""

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Any

import hvac
import httpx
from hvac.exceptions import VaultError

from tokend.secrets.config import TokendSettings, VaultSettings, WardenSettings, get_settings
from tokend.secrets.exceptions import AttestationError, NotInitializedError, TransportSoftError
from tokend.secrets.metrics import tokend_provider_soft_failures_total
from tokend.secrets.providers.base import ProviderLease, ProviderRenewal
from tokend.secrets.providers.generic import SOFT_FAILURES, build_vault_client
from tokend.secrets.providers.metadata import InstanceIdentity, InstanceMetadataClient

logger = logging.getLogger(__name__)

WARDEN_RESPONSE_FIELDS = ("client_token", "lease_duration", "creation_time", "expiration_time")


def pkcs7_envelope(pkcs7: str) -> str:
    return f"-----BEGIN PKCS7-----\n{pkcs7}\n-----END PKCS7-----\n"


def _parse_timestamp(value: Any) -> datetime:
    """Parse a Warden timestamp; values without an offset are taken as UTC."""
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class TokenProvider:
    """
    Provider type for Vault tokens obtained through Warden.

    Args:
        secret: Secret path this token is managed under (used for logging)
        token: Bootstrap token; required so every provider is built the same way
        settings: Agent settings; defaults to get_settings()
        metadata: Instance metadata client override
        vault: Vault connection override (replaces settings.vault)
        warden: Warden connection override (replaces settings.warden)
        vault_client: Preconfigured hvac client
        http_client: httpx client used for the Warden POST

    Raises:
        ValueError: If secret or token is empty
    """

    renewable = True
    expires = True

    def __init__(
        self,
        secret: str,
        token: str,
        settings: TokendSettings | None = None,
        metadata: InstanceMetadataClient | None = None,
        vault: VaultSettings | None = None,
        warden: WardenSettings | None = None,
        vault_client: hvac.Client | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not secret:
            raise ValueError("secret argument is required")
        if not token:
            raise ValueError("token argument is required")

        settings = settings or get_settings()
        self.secret = secret
        self._metadata = metadata or InstanceMetadataClient(settings.metadata)
        self._warden = warden or settings.warden
        self._renew_increment = settings.lease.renew_increment
        self._client = (
            vault_client if vault_client is not None else build_vault_client(vault or settings.vault, token)
        )
        self._http_client = http_client

        self.token: str | None = None
        self.data: ProviderLease | None = None
        self.creation_time: datetime | None = None
        self.expiration_time: datetime | None = None

    async def initialize(self) -> ProviderLease:
        """Exchange the instance identity for a Vault token.

        Returns the cached lease when one is held.

        Raises:
            httpx.HTTPError: Metadata or Warden unreachable
            AttestationError: Warden rejected the identity or answered garbage
        """
        if self.data is not None:
            return self.data

        identity = await self._metadata.fetch_identity()
        response = await self._send_document(identity)

        token = str(response["client_token"])
        self.creation_time = _parse_timestamp(response["creation_time"])
        self.expiration_time = _parse_timestamp(response["expiration_time"])
        self.token = token
        self.data = ProviderLease(
            data={"token": token},
            lease_duration=int(response["lease_duration"]),
            lease_id=token,
            creation_time=self.creation_time,
            expiration_time=self.expiration_time,
        )

        self._client.token = token

        logger.info(
            "Received Vault token from Warden",
            extra={
                "secret_path": self.secret,
                "lease_duration": self.data.lease_duration,
                "expiration_time": self.expiration_time.isoformat(),
            },
        )
        return self.data

    async def renew(self) -> ProviderRenewal:
        """Renew the Vault token by ``renew_increment`` seconds.

        Only an explicit Vault status error fails the renewal; anything else
        could be a network blip worth riding out, so the previous value is
        returned instead.
        """
        if not self.token:
            raise NotInitializedError(provider=type(self).__name__, secret_path=self.secret)

        try:
            response = await asyncio.to_thread(
                self._client.auth.token.renew,
                token=self.token,
                increment=self._renew_increment,
            )
            auth = response["auth"]
            lease_duration = int(auth["lease_duration"])
            client_token = str(auth["client_token"])
        except VaultError:
            raise
        except SOFT_FAILURES as exc:
            soft = TransportSoftError(
                f"Token renewal transport error ignored: {type(exc).__name__}",
                secret_path=self.secret,
                provider=type(self).__name__,
            )
            tokend_provider_soft_failures_total.labels(provider=type(self).__name__).inc()
            logger.info(
                "An error was thrown but was ignored",
                extra={"secret_path": self.secret, "error": str(soft), "error_type": type(exc).__name__},
            )
            return self._previous_value()

        self.data = ProviderLease(
            data={"token": client_token},
            lease_duration=lease_duration,
            lease_id=client_token,
            creation_time=self.creation_time,
            expiration_time=self.expiration_time,
        )
        return ProviderRenewal(lease_duration=lease_duration, data={"token": client_token})

    def invalidate(self) -> None:
        """Remove cached data so the next initialize() repeats the handshake."""
        self.data = None

    def _previous_value(self) -> ProviderRenewal:
        if self.data is None:
            # Invalidated mid-renewal; nothing better to offer than the token itself.
            return ProviderRenewal(lease_duration=0, data={"token": self.token})
        return ProviderRenewal(lease_duration=self.data.lease_duration, data=self.data.data)

    async def _send_document(self, identity: InstanceIdentity) -> dict[str, Any]:
        return await self._post(
            {
                "document": identity.document,
                "signature": pkcs7_envelope(identity.pkcs7),
            }
        )

    async def _post(self, payload: dict[str, str]) -> dict[str, Any]:
        body = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Content-Length": str(len(body)),
        }

        if self._http_client is not None:
            response = await self._http_client.post(self._warden.url, content=body, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self._warden.timeout) as client:
                response = await client.post(self._warden.url, content=body, headers=headers)

        if response.status_code != httpx.codes.OK:
            raise AttestationError(response.status_code, response.text, secret_path=self.secret)

        try:
            parsed = response.json()
        except ValueError as exc:
            raise AttestationError(
                None, f"Malformed Warden response: {exc}", secret_path=self.secret
            ) from exc

        if not isinstance(parsed, dict):
            raise AttestationError(None, "Malformed Warden response: expected a JSON object", secret_path=self.secret)

        missing = [field for field in WARDEN_RESPONSE_FIELDS if field not in parsed]
        if missing:
            raise AttestationError(
                None,
                f"Warden response missing fields: {', '.join(missing)}",
                secret_path=self.secret,
            )
        return parsed
