"""Secret providers: the I/O side of a lease."""

from tokend.secrets.providers.base import Provider, ProviderLease, ProviderRenewal
from tokend.secrets.providers.factory import PROVIDERS, create_provider
from tokend.secrets.providers.generic import GenericProvider, create_secret_provider
from tokend.secrets.providers.metadata import InstanceIdentity, InstanceMetadataClient
from tokend.secrets.providers.token import TokenProvider

__all__ = [
    "Provider",
    "ProviderLease",
    "ProviderRenewal",
    "GenericProvider",
    "TokenProvider",
    "InstanceIdentity",
    "InstanceMetadataClient",
    "PROVIDERS",
    "create_provider",
    "create_secret_provider",
]
