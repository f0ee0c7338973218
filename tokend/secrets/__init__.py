"""
Lease lifecycle management for Vault secrets.

Architecture:
    - LeaseManager: per-secret state machine (lease_manager.py)
    - Providers: GenericProvider, static secrets, TokenProvider (providers/)
    - Factory: create_provider() selects a provider by kind
    - Scheduler: injectable single-shot timers (scheduler.py)
    - ExpirationPolicy: when a ceiling-bound lease must be re-acquired

Quick Start:
    >>> from tokend.secrets import LeaseManager, create_provider
    >>> provider = create_provider("secret", "database/password", token="s.abc123")
    >>> manager = LeaseManager(provider, path="secret/database/password")
    >>> password = await manager.initialize()

Security Requirements:
    - Secret values are never logged (only paths, durations, statuses)
    - Secrets are held in memory only
"""

from tokend.secrets.config import TokendSettings, get_settings
from tokend.secrets.events import EventEmitter, LeaseEvent
from tokend.secrets.exceptions import (
    AttestationError,
    InitializationError,
    LeaseManagerError,
    NotInitializedError,
    RenewalError,
    TransportSoftError,
)
from tokend.secrets.expiration import ExpirationPolicy
from tokend.secrets.lease_manager import LeaseManager, LeaseOptions, compute_renewal_delay
from tokend.secrets.providers import (
    GenericProvider,
    Provider,
    ProviderLease,
    ProviderRenewal,
    TokenProvider,
    create_provider,
    create_secret_provider,
)
from tokend.secrets.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from tokend.secrets.status import LeaseStatus

__all__ = [
    # Core
    "LeaseManager",
    "LeaseOptions",
    "LeaseStatus",
    "LeaseEvent",
    "EventEmitter",
    "ExpirationPolicy",
    "compute_renewal_delay",
    # Scheduling
    "Scheduler",
    "TimerHandle",
    "AsyncioScheduler",
    # Providers
    "Provider",
    "ProviderLease",
    "ProviderRenewal",
    "GenericProvider",
    "TokenProvider",
    "create_provider",
    "create_secret_provider",
    # Configuration
    "TokendSettings",
    "get_settings",
    # Exceptions (callers should catch these)
    "LeaseManagerError",
    "InitializationError",
    "RenewalError",
    "NotInitializedError",
    "AttestationError",
    "TransportSoftError",
]
