"""
Lease lifecycle manager.

One ``LeaseManager`` owns one provider and keeps its secret fresh:

    PENDING ──initialize() ok──▶ READY ──renewal ok──▶ READY (timer re-armed)
       ▲  └─initialize() fails─┘   │
       │                          ├──renewal fails──▶ ERROR (last value kept)
       └──── ceiling reached ─────┘

Architecture:
    - asyncio only; a manager never blocks a thread
    - Renewal runs on a single-shot timer armed at half the lease duration
      (floor, in seconds), or at a configured fixed delay, optionally capped
    - Timers are re-armed only after the provider call settles, so two
      renewals of the same lease never overlap
    - Providers with an absolute expiration ceiling are reset to PENDING
      (``invalidate``) instead of being renewed once the ceiling is within
      one renewal increment; the owner then re-initializes
    - A failed renewal is terminal: status ERROR, timer gone, value retained

Notifications (``ready``, ``renewed``, ``error``, ``invalidate``) are
dispatched after the state change is committed and after the timer has been
re-armed, so listeners always observe a consistent manager.

Example:
    >>> provider = create_provider("secret", "database/password", token="s.abc123")
    >>> async with LeaseManager(provider, path="secret/database/password") as manager:
    ...     manager.on("error", lambda m: logger.error("lease failed", extra={"error": str(m.error)}))
    ...     password = await manager.initialize()
"""

import asyncio
import logging
import time
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from tokend.common.logging.context import LeaseLogContext
from tokend.secrets.config import LeaseSettings
from tokend.secrets.events import EventEmitter, LeaseEvent, Listener
from tokend.secrets.exceptions import InitializationError, LeaseManagerError, RenewalError
from tokend.secrets.expiration import Clock, ExpirationPolicy, utc_now
from tokend.secrets.metrics import (
    tokend_lease_events_total,
    tokend_lease_initialize_failures_total,
    tokend_lease_renewal_seconds,
    tokend_leases_ready,
)
from tokend.secrets.providers.base import Provider, provider_name
from tokend.secrets.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from tokend.secrets.status import LeaseStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaseOptions:
    """
    Per-manager renewal options.

    Attributes:
        renewal_delay: Fixed delay in seconds between renewals; bypasses the
                       half-lease computation when set
        max_renewal_delay: Upper bound applied to whichever delay is used
        renew_increment: Seconds a renewal extends the lease by, used for the
                         expiration-ceiling check
        min_extension: Extra headroom required beyond renew_increment
    """

    renewal_delay: float | None = None
    max_renewal_delay: float | None = None
    renew_increment: float = 60
    min_extension: float = 0

    def __post_init__(self) -> None:
        if self.renewal_delay is not None and self.renewal_delay < 0:
            raise ValueError("renewal_delay must be non-negative")
        if self.max_renewal_delay is not None and self.max_renewal_delay < 0:
            raise ValueError("max_renewal_delay must be non-negative")

    @classmethod
    def from_settings(cls, settings: LeaseSettings) -> "LeaseOptions":
        return cls(
            renewal_delay=settings.renewal_delay,
            max_renewal_delay=settings.max_renewal_delay,
            renew_increment=settings.renew_increment,
            min_extension=settings.min_extension,
        )


def compute_renewal_delay(lease_duration: int, options: LeaseOptions) -> float:
    """
    Seconds to wait before renewing a lease of ``lease_duration`` seconds.

    Renewing at the midpoint leaves room for one slow or missed attempt
    before the value expires.

    Example:
        >>> compute_renewal_delay(1, LeaseOptions())
        0
        >>> compute_renewal_delay(3600, LeaseOptions(max_renewal_delay=300))
        300
    """
    delay: float = options.renewal_delay if options.renewal_delay is not None else lease_duration // 2
    if options.max_renewal_delay is not None:
        delay = min(delay, options.max_renewal_delay)
    return delay


class LeaseManager:
    """
    Keeps one provider's secret acquired and renewed.

    Args:
        provider: Provider owned exclusively by this manager
        path: Secret path, used for logging and error context only
        options: Renewal options; defaults to LeaseOptions()
        scheduler: Timer factory; defaults to AsyncioScheduler()
        clock: Returns the current aware UTC time (expiration checks)
        expiration_policy: Ceiling policy; defaults to one built from options

    Attributes:
        status: PENDING, READY or ERROR
        data: Current secret value, None when no valid value is held
        lease_duration: Seconds the current value is valid; 0 without a lease
        renewable: Fixed by the first successful initialize()
        expires: Whether the provider declares an absolute expiration ceiling
        error: RenewalError from the last failed renewal, or None
    """

    def __init__(
        self,
        provider: Provider,
        path: str = "",
        options: LeaseOptions | None = None,
        *,
        scheduler: Scheduler | None = None,
        clock: Clock = utc_now,
        expiration_policy: ExpirationPolicy | None = None,
    ) -> None:
        self.provider = provider
        self.path = path
        self.options = options or LeaseOptions()

        self.status = LeaseStatus.PENDING
        self.data: Any = None
        self.lease_duration = 0
        self.renewable = False
        self.expires = bool(getattr(provider, "expires", False))
        self.error: RenewalError | None = None

        self._renewable_known = False
        self._expiration_time = None
        self._timer: TimerHandle | None = None
        self._renewal_delay: float | None = None
        self._scheduler = scheduler or AsyncioScheduler()
        self._clock = clock
        self._policy = expiration_policy or ExpirationPolicy(
            renew_increment=self.options.renew_increment,
            min_extension=self.options.min_extension,
        )
        self._events = EventEmitter()
        self._init_lock = asyncio.Lock()
        self._renewing = False
        self._renewal_task: asyncio.Task[None] | None = None
        self._closed = False

    def __repr__(self) -> str:
        return (
            f"LeaseManager(path={self.path!r}, provider={provider_name(self.provider)}, "
            f"status={self.status.value}, lease_duration={self.lease_duration})"
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on(self, event: LeaseEvent | str, listener: Listener) -> Callable[[], None]:
        """Call ``listener(manager)`` on every ``event``; returns an unsubscribe callable."""
        return self._events.on(event, listener)

    def once(self, event: LeaseEvent | str, listener: Listener) -> Callable[[], None]:
        """Call ``listener(manager)`` on the next ``event`` only."""
        return self._events.once(event, listener)

    def off(self, event: LeaseEvent | str, listener: Listener) -> None:
        self._events.off(event, listener)

    # ------------------------------------------------------------------
    # Timer introspection
    # ------------------------------------------------------------------

    def has_pending_timer(self) -> bool:
        return self._timer is not None

    @property
    def renewal_delay(self) -> float | None:
        """Delay of the currently armed renewal timer, None when unarmed."""
        return self._renewal_delay

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> Any:
        """
        Acquire the secret from the provider.

        Returns the current value without calling the provider when already
        READY. From ERROR, the provider cache is dropped first so the value
        is acquired from scratch.

        Returns:
            The secret value

        Raises:
            InitializationError: Provider failed; the manager stays PENDING and
                                 the caller decides whether to retry
            LeaseManagerError: The manager has been closed
        """
        self._ensure_open()

        async with self._init_lock:
            if self.status is LeaseStatus.READY:
                return self.data

            if self.status is LeaseStatus.ERROR:
                logger.info(
                    "Re-initializing lease from ERROR",
                    extra={"secret_path": self.path, "provider": provider_name(self.provider)},
                )
                self._reset()
                self._invalidate_provider()

            with LeaseLogContext(self.path):
                return await self._acquire()

    async def renew(self) -> None:
        """
        Run one renewal cycle.

        Normally driven by the renewal timer. A no-op unless the manager is
        READY, renewable, open, and not already renewing; in particular a
        call while in ERROR changes neither the status nor the timer.
        """
        if self._closed or self.status is not LeaseStatus.READY or not self.renewable or self._renewing:
            logger.debug(
                "Renewal skipped",
                extra={
                    "secret_path": self.path,
                    "status": self.status.value,
                    "renewing": self._renewing,
                    "closed": self._closed,
                },
            )
            return

        self._renewing = True
        try:
            with LeaseLogContext(self.path):
                await self._renew()
        finally:
            self._renewing = False

    def close(self) -> None:
        """
        Tear the manager down: cancel the timer and drop all listeners.

        An in-flight provider call is left to finish; its result is discarded.
        """
        if self._closed:
            return

        self._closed = True
        self._cancel_timer()
        if self.status is LeaseStatus.READY:
            tokend_leases_ready.dec()
        self._events.clear()
        logger.debug("Lease manager closed", extra={"secret_path": self.path})

    async def __aenter__(self) -> "LeaseManager":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _acquire(self) -> Any:
        name = provider_name(self.provider)
        try:
            lease = await self.provider.initialize()
            if not lease.data:
                raise ValueError("provider returned no data")
            lease_duration = int(lease.lease_duration)
            if lease_duration <= 0:
                raise ValueError(f"provider returned non-positive lease_duration {lease_duration}")
        except Exception as exc:
            self.data = None
            self.lease_duration = 0
            tokend_lease_initialize_failures_total.inc()
            logger.warning(
                "Provider failed to initialize",
                extra={
                    "secret_path": self.path,
                    "provider": name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise InitializationError(
                f"Provider failed to initialize: {exc}",
                secret_path=self.path or None,
                provider=name,
            ) from exc

        if self._closed:
            raise LeaseManagerError(
                "Lease manager was closed while initializing",
                secret_path=self.path or None,
                provider=name,
            )

        self.data = lease.data
        self.lease_duration = lease_duration
        if not self._renewable_known:
            self.renewable = lease.renewable is not False
            self._renewable_known = True
        self._expiration_time = getattr(lease, "expiration_time", None)
        self.error = None
        self._set_status(LeaseStatus.READY)

        if self.renewable:
            self._arm_timer()

        logger.info(
            "Lease ready",
            extra={
                "secret_path": self.path,
                "provider": name,
                "lease_duration": self.lease_duration,
                "renewable": self.renewable,
                "renewal_delay": self._renewal_delay,
            },
        )
        self._emit(LeaseEvent.READY)
        return self.data

    async def _renew(self) -> None:
        if self.expires:
            try:
                at_ceiling = self._policy.should_invalidate(self._ceiling(), now=self._clock())
            except Exception as exc:
                # e.g. a naive ceiling compared with an aware clock
                if not self._closed:
                    self._fail(exc)
                return
            if at_ceiling:
                self._invalidate()
                return

        name = provider_name(self.provider)
        started = time.monotonic()
        try:
            renewal = await self.provider.renew()
            lease_duration = int(renewal.lease_duration)
            if lease_duration <= 0:
                raise ValueError(f"provider renewed with non-positive lease_duration {lease_duration}")
        except Exception as exc:
            tokend_lease_renewal_seconds.labels(outcome="failure").observe(time.monotonic() - started)
            if self._closed:
                return
            self._fail(exc)
            return

        tokend_lease_renewal_seconds.labels(outcome="success").observe(time.monotonic() - started)
        if self._closed or self.status is not LeaseStatus.READY:
            return

        self.lease_duration = lease_duration
        if renewal.data is not None:
            self.data = renewal.data

        self._arm_timer()

        logger.info(
            "Lease renewed",
            extra={
                "secret_path": self.path,
                "provider": name,
                "lease_duration": self.lease_duration,
                "renewal_delay": self._renewal_delay,
            },
        )
        self._emit(LeaseEvent.RENEWED)

    def _invalidate(self) -> None:
        self._reset()
        self._invalidate_provider()

        logger.info(
            "Lease reached its expiration ceiling, invalidated",
            extra={
                "secret_path": self.path,
                "provider": provider_name(self.provider),
                "renew_increment": self._policy.renew_increment,
            },
        )
        self._emit(LeaseEvent.INVALIDATE)

    def _fail(self, exc: Exception) -> None:
        name = provider_name(self.provider)
        self._cancel_timer()
        error = RenewalError(
            f"Provider failed to renew: {exc}",
            secret_path=self.path or None,
            provider=name,
        )
        error.__cause__ = exc
        self.error = error
        self._set_status(LeaseStatus.ERROR)

        logger.error(
            "Lease renewal failed, automatic renewal stopped",
            extra={
                "secret_path": self.path,
                "provider": name,
                "lease_duration": self.lease_duration,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        self._emit(LeaseEvent.ERROR)

    def _reset(self) -> None:
        """Return to PENDING with no value, lease, error or timer."""
        self._cancel_timer()
        self.data = None
        self.lease_duration = 0
        self.error = None
        self._expiration_time = None
        self._set_status(LeaseStatus.PENDING)

    def _invalidate_provider(self) -> None:
        invalidate = getattr(self.provider, "invalidate", None)
        if callable(invalidate):
            invalidate()

    def _ceiling(self) -> Any:
        return getattr(self.provider, "expiration_time", None) or self._expiration_time

    def _arm_timer(self) -> None:
        self._cancel_timer()
        delay = compute_renewal_delay(self.lease_duration, self.options)
        self._renewal_delay = delay
        self._timer = self._scheduler.call_later(delay, _timer_callback(self))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._renewal_delay = None

    def _on_timer(self) -> None:
        if self._closed:
            return
        # The handle has fired; nothing is armed until the renewal settles.
        self._timer = None
        self._renewal_delay = None
        self._renewal_task = asyncio.get_running_loop().create_task(self.renew())

    def _set_status(self, status: LeaseStatus) -> None:
        if self.status is LeaseStatus.READY and status is not LeaseStatus.READY:
            tokend_leases_ready.dec()
        elif status is LeaseStatus.READY and self.status is not LeaseStatus.READY:
            tokend_leases_ready.inc()
        self.status = status

    def _emit(self, event: LeaseEvent) -> None:
        tokend_lease_events_total.labels(event=event.value).inc()
        self._events.emit(event, self)

    def _ensure_open(self) -> None:
        if self._closed:
            raise LeaseManagerError("Lease manager is closed", secret_path=self.path or None)


def _timer_callback(manager: LeaseManager) -> Callable[[], None]:
    """Build a timer callback that does not keep ``manager`` alive.

    The event loop holds armed timers; a strong reference would let a
    discarded manager keep renewing in the background.
    """
    ref = weakref.ref(manager)

    def _fire() -> None:
        target = ref()
        if target is not None:
            target._on_timer()

    return _fire
