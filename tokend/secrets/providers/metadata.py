"""Instance identity metadata client.

Fetches the three instance-identity documents Warden needs to vouch for
this host: the JSON identity document, its signature, and the PKCS7-wrapped
certificate chain.
"""

import asyncio
import logging

import httpx

from tokend.secrets.config import MetadataSettings

logger = logging.getLogger(__name__)

IDENTITY_DOCUMENT_PATH = "/latest/dynamic/instance-identity/document"
IDENTITY_SIGNATURE_PATH = "/latest/dynamic/instance-identity/signature"
IDENTITY_PKCS7_PATH = "/latest/dynamic/instance-identity/pkcs7"

METADATA_ENDPOINTS = (
    IDENTITY_DOCUMENT_PATH,
    IDENTITY_SIGNATURE_PATH,
    IDENTITY_PKCS7_PATH,
)


class InstanceIdentity:
    """The three identity documents, exactly as the metadata service served them."""

    __slots__ = ("document", "signature", "pkcs7")

    def __init__(self, document: str, signature: str, pkcs7: str) -> None:
        self.document = document
        self.signature = signature
        self.pkcs7 = pkcs7

    def __repr__(self) -> str:
        # Documents identify the host; keep them out of reprs and logs.
        return "InstanceIdentity(document=..., signature=..., pkcs7=...)"


class InstanceMetadataClient:
    """Reads instance identity documents from the local metadata endpoint.

    Args:
        settings: Metadata endpoint options
        http_client: Shared client to use instead of one client per fetch
    """

    def __init__(
        self,
        settings: MetadataSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or MetadataSettings()
        self._http_client = http_client

    async def fetch_identity(self) -> InstanceIdentity:
        """Fetch all three documents concurrently.

        Raises:
            httpx.HTTPError: If any document cannot be retrieved
        """
        if self._http_client is not None:
            document, signature, pkcs7 = await self._fetch_all(self._http_client)
        else:
            async with httpx.AsyncClient(timeout=self._settings.timeout) as client:
                document, signature, pkcs7 = await self._fetch_all(client)

        logger.debug("Fetched instance identity documents", extra={"host": self._settings.host})
        return InstanceIdentity(document=document, signature=signature, pkcs7=pkcs7)

    async def _fetch_all(self, client: httpx.AsyncClient) -> list[str]:
        return list(await asyncio.gather(*(self._get(client, path) for path in METADATA_ENDPOINTS)))

    async def _get(self, client: httpx.AsyncClient, path: str) -> str:
        response = await client.get(f"{self._settings.base_url}{path}")
        response.raise_for_status()
        return response.text
