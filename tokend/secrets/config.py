"""
Agent settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation. Every
value can be overridden via ``TOKEND_``-prefixed environment variables (nested
sections use ``__``, e.g. ``TOKEND_VAULT__HOST``) or a ``.env`` file.

Settings are passed explicitly into providers and lease managers; nothing in
the library reads configuration at import time.

Example:
    >>> settings = get_settings()
    >>> settings.vault.endpoint
    'http://127.0.0.1:8200'
    >>> settings.lease.renew_increment
    60
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VaultSettings(BaseModel):
    """Connection options for the Vault secret store."""

    host: str = Field(default="127.0.0.1", description="Vault server host")
    port: int = Field(default=8200, ge=1, le=65535, description="Vault server port")
    tls: bool = Field(default=False, description="Use https when talking to Vault")
    verify: bool = Field(default=True, description="Verify Vault TLS certificates")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")

    @property
    def endpoint(self) -> str:
        scheme = "https" if self.tls else "http"
        return f"{scheme}://{self.host}:{self.port}"


class WardenSettings(BaseModel):
    """Connection options for the Warden attestation service."""

    host: str = Field(default="127.0.0.1", description="Warden host")
    port: int = Field(default=3000, ge=1, le=65535, description="Warden port")
    path: str = Field(default="/v1/authenticate", description="Authentication request path")
    tls: bool = Field(default=False, description="Use https when talking to Warden")
    timeout: float = Field(default=10.0, gt=0, description="Handshake timeout in seconds")

    @property
    def url(self) -> str:
        scheme = "https" if self.tls else "http"
        return f"{scheme}://{self.host}:{self.port}{self.path}"


class MetadataSettings(BaseModel):
    """Options for the local instance metadata endpoint."""

    host: str = Field(default="169.254.169.254", description="Instance metadata host")
    timeout: float = Field(default=2.0, gt=0, description="Per-document timeout in seconds")

    @property
    def base_url(self) -> str:
        return f"http://{self.host}"


class LeaseSettings(BaseModel):
    """Renewal scheduling options shared by every lease manager."""

    renew_increment: int = Field(
        default=60,
        ge=0,
        description="Seconds requested per token renewal; also the expiration-ceiling window",
    )
    renewal_delay: float | None = Field(
        default=None,
        ge=0,
        description="Fixed renewal delay in seconds, bypassing the half-lease computation",
    )
    max_renewal_delay: float | None = Field(
        default=None,
        ge=0,
        description="Upper bound on the computed renewal delay in seconds",
    )
    min_extension: float = Field(
        default=0,
        ge=0,
        description="Extra headroom required beyond renew_increment before the ceiling",
    )
    initialize_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts the agent makes at initialize() before giving up",
    )
    initialize_backoff_min: float = Field(
        default=1.0,
        ge=0,
        description="Minimum seconds between initialize() attempts",
    )
    initialize_backoff_max: float = Field(
        default=30.0,
        gt=0,
        description="Maximum seconds between initialize() attempts",
    )


class TokendSettings(BaseSettings):
    """
    Agent configuration.

    All settings are loaded from environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TOKEND_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    vault: VaultSettings = Field(default_factory=VaultSettings)
    warden: WardenSettings = Field(default_factory=WardenSettings)
    metadata: MetadataSettings = Field(default_factory=MetadataSettings)
    lease: LeaseSettings = Field(default_factory=LeaseSettings)

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )


@lru_cache
def get_settings() -> TokendSettings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once. Tests that need
    different values construct ``TokendSettings`` directly instead.
    """
    return TokendSettings()
