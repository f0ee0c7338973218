"""
Expiration-ceiling policy for leases with a hard, non-extendable expiry.

Some credentials are renewable lease by lease but still bounded by an
absolute expiration (a Vault token issued by Warden cannot outlive its
``expiration_time`` no matter how often it is renewed). Renewing close to
that ceiling either fails or silently claims validity the credential does
not have, so the lease manager asks this policy before every renewal and
re-acquires the credential instead when the answer is yes.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ExpirationPolicy:
    """
    Decides whether a renewal can still meaningfully extend a lease.

    A renewal asks the store for ``renew_increment`` more seconds. The lease
    is considered at the end of its renewable life when

        now + renew_increment + min_extension >= expiration_time

    i.e. the extension would reach (or pass) the ceiling. ``min_extension``
    widens that window for stores that refuse short tail renewals.

    Attributes:
        renew_increment: Seconds requested on each renewal
        min_extension: Extra seconds of headroom required beyond the increment

    Example:
        >>> policy = ExpirationPolicy(renew_increment=60)
        >>> policy.should_invalidate(now + timedelta(seconds=30), now=now)
        True
        >>> policy.should_invalidate(now + timedelta(hours=1), now=now)
        False
    """

    renew_increment: float = 60
    min_extension: float = 0

    def __post_init__(self) -> None:
        if self.renew_increment < 0:
            raise ValueError("renew_increment must be non-negative")
        if self.min_extension < 0:
            raise ValueError("min_extension must be non-negative")

    def should_invalidate(
        self,
        expiration_time: datetime | None,
        now: datetime | None = None,
    ) -> bool:
        """Return True when the lease should be re-acquired instead of renewed.

        A provider that declares an expiry but has not reported one yet is
        treated as expired: renewing it blindly is exactly what this policy
        exists to prevent.
        """
        if expiration_time is None:
            return True

        current = now if now is not None else utc_now()
        projected = current + timedelta(seconds=self.renew_increment + self.min_extension)
        return projected >= expiration_time

