"""
Factory for creating providers by kind.

Kinds:
    - "generic" → GenericProvider reading the path as given
    - "secret" → GenericProvider reading secret/{path} (static KV secrets)
    - "token" → TokenProvider (Warden attestation handshake)

Example:
    >>> provider = create_provider("secret", "database/password", token="s.abc123")
    >>> manager = LeaseManager(provider, path="secret/database/password")
"""

import logging
from collections.abc import Callable
from typing import Any, Final

from tokend.secrets.config import TokendSettings
from tokend.secrets.exceptions import LeaseManagerError
from tokend.secrets.providers.base import Provider
from tokend.secrets.providers.generic import GenericProvider, create_secret_provider
from tokend.secrets.providers.token import TokenProvider

logger = logging.getLogger(__name__)

PROVIDERS: Final[dict[str, Callable[..., Provider]]] = {
    "generic": GenericProvider,
    "secret": create_secret_provider,
    "token": TokenProvider,
}


def create_provider(
    kind: str,
    path: str,
    token: str,
    settings: TokendSettings | None = None,
    **kwargs: Any,
) -> Provider:
    """
    Create a provider for ``path`` of the requested kind.

    Args:
        kind: Provider kind ("generic", "secret", "token"), case-insensitive
        path: Secret path handed to the provider
        token: Vault token handed to the provider
        settings: Agent settings; providers default to get_settings()
        **kwargs: Provider-specific overrides (client, vault, warden, ...)

    Raises:
        LeaseManagerError: If kind is not a known provider
    """
    selected = (kind or "").lower().strip()
    factory = PROVIDERS.get(selected)
    if factory is None:
        raise LeaseManagerError(
            f"Invalid provider kind: '{kind}'. Valid options: {', '.join(sorted(PROVIDERS))}",
            secret_path=path,
        )

    logger.debug("Creating provider", extra={"kind": selected, "secret_path": path})
    return factory(path, token, settings=settings, **kwargs)
