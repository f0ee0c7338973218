"""
Lease Lifecycle Exception Hierarchy.

This module defines all exceptions raised by lease managers and secret
providers, giving callers clear semantics for acquisition, renewal and
attestation failures.

Exception hierarchy:
    LeaseManagerError (base)
    ├── InitializationError - First acquisition failed (caller may retry)
    ├── RenewalError - Renewal failed (terminal for the manager's cycle)
    ├── NotInitializedError - Provider renewed before a successful initialize
    ├── AttestationError - Warden rejected or garbled the identity handshake
    └── TransportSoftError - Ambiguous transport failure absorbed by a provider

All exceptions carry structured context (secret path, provider name) and
never the secret value itself.
"""


class LeaseManagerError(Exception):
    """
    Base exception for all lease lifecycle errors.

    Subclasses MUST NOT include secret values in error messages.

    Attributes:
        secret_path: Path of the secret whose lease failed (e.g., "secret/db/password")
        provider: Provider class name ("GenericProvider", "TokenProvider")
        message: Human-readable error message

    Example:
        >>> try:
        ...     await manager.initialize()
        ... except LeaseManagerError as e:
        ...     logger.error("Lease failed", extra={"secret_path": e.secret_path})
    """

    def __init__(
        self,
        message: str,
        secret_path: str | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__(message)
        self.secret_path = secret_path
        self.provider = provider
        self.message = message

    def __str__(self) -> str:
        """
        Format error message with context (secret path + provider).

        Example:
            >>> str(LeaseManagerError("Timeout", "secret/db", "GenericProvider"))
            'Timeout (secret: secret/db, provider: GenericProvider)'
        """
        context_parts = []
        if self.secret_path:
            context_parts.append(f"secret: {self.secret_path}")
        if self.provider:
            context_parts.append(f"provider: {self.provider}")

        if context_parts:
            context = ", ".join(context_parts)
            return f"{self.message} ({context})"
        return self.message


class InitializationError(LeaseManagerError):
    """
    Raised when a provider fails to produce the first value for a lease.

    The store or the attestation service was unreachable or rejected the
    request. The manager stays PENDING and never retries on its own: the
    caller decides when to call initialize() again.
    """


class RenewalError(LeaseManagerError):
    """
    Recorded when a provider fails to renew an active lease.

    Never raised to a caller: the renewal cycle is driven by a timer, so the
    failure is stored on ``LeaseManager.error`` and announced through the
    ``error`` event. The last good value stays available.
    """


class NotInitializedError(LeaseManagerError):
    """
    Raised by a provider asked to renew before it holds a value.

    The lease manager's own transitions never do this; seeing it means
    something outside the manager is driving the provider.
    """

    def __init__(self, provider: str, secret_path: str | None = None) -> None:
        super().__init__(
            message=(
                "Provider has not been initialized or has not received a valid "
                "value to renew"
            ),
            secret_path=secret_path,
            provider=provider,
        )


class AttestationError(LeaseManagerError):
    """
    Raised when the Warden identity handshake fails.

    Attributes:
        status_code: HTTP status returned by Warden, None for malformed responses
        body: Response body as text (Warden error payloads never carry tokens)

    Example:
        >>> str(AttestationError(403, "denied"))
        '403: denied'
    """

    def __init__(
        self,
        status_code: int | None,
        body: str,
        secret_path: str | None = None,
    ) -> None:
        message = f"{status_code}: {body}" if status_code is not None else body
        super().__init__(message=message, secret_path=secret_path, provider="TokenProvider")
        self.status_code = status_code
        self.body = body


class TransportSoftError(LeaseManagerError):
    """
    Provider-internal classification for errors not worth failing a renewal.

    Network blips and malformed upstream responses are different from an
    explicit rejection by the store. Providers wrap such errors in this type,
    log them, and resolve with the previous value instead of propagating.
    """
