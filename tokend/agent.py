#!/usr/bin/env python3
"""
Run a single lease from the command line.

The lease manager never retries on its own; this module is the caller that
does. It acquires the secret with bounded exponential backoff, re-acquires
whenever the manager invalidates a lease at its expiration ceiling, and
exits non-zero once the lease lands in ERROR so a process supervisor can
replace it.

Usage:
    python -m tokend.agent --kind token --path auth/warden
    python -m tokend.agent --kind secret --path database/password --token "$VAULT_TOKEN"

Exit codes:
    0: Stopped by signal
    1: Could not acquire the secret
    2: Renewal failed (lease in ERROR)
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tokend.common.logging import configure_logging
from tokend.secrets.config import LeaseSettings, TokendSettings, get_settings
from tokend.secrets.events import LeaseEvent
from tokend.secrets.exceptions import InitializationError, LeaseManagerError
from tokend.secrets.lease_manager import LeaseManager, LeaseOptions
from tokend.secrets.providers.factory import PROVIDERS, create_provider
from tokend.secrets.status import LeaseStatus

logger = logging.getLogger(__name__)


class LeaseAgent:
    """
    Owns one lease manager and drives its recovery paths.

    Args:
        manager: Lease manager to drive
        settings: Retry options for initialize()
    """

    def __init__(self, manager: LeaseManager, settings: LeaseSettings | None = None) -> None:
        self.manager = manager
        self._settings = settings or LeaseSettings()
        self._failed = asyncio.Event()
        self._reacquire_task: asyncio.Task[None] | None = None

        manager.on(LeaseEvent.INVALIDATE, self._on_invalidate)
        manager.on(LeaseEvent.ERROR, self._on_error)

    async def acquire(self) -> None:
        """Initialize the lease, retrying with exponential backoff.

        Raises:
            InitializationError: All attempts failed
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.initialize_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._settings.initialize_backoff_min,
                max=self._settings.initialize_backoff_max,
            ),
            retry=retry_if_exception_type(InitializationError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await self.manager.initialize()

    async def wait_failed(self) -> None:
        """Block until the lease can no longer be kept fresh."""
        await self._failed.wait()

    @property
    def failed(self) -> bool:
        return self._failed.is_set()

    def _on_invalidate(self, manager: LeaseManager) -> None:
        logger.info("Re-acquiring invalidated lease", extra={"secret_path": manager.path})
        self._reacquire_task = asyncio.get_running_loop().create_task(self._reacquire())

    def _on_error(self, manager: LeaseManager) -> None:
        logger.error(
            "Lease entered ERROR, giving up",
            extra={"secret_path": manager.path, "error": str(manager.error)},
        )
        self._failed.set()

    async def close(self) -> None:
        """Cancel an in-flight re-acquisition and wait for it to finish."""
        task, self._reacquire_task = self._reacquire_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _reacquire(self) -> None:
        try:
            await self.acquire()
        except InitializationError:
            if self.manager.closed:
                return
            logger.exception("Could not re-acquire lease", extra={"secret_path": self.manager.path})
            self._failed.set()
        except LeaseManagerError:
            if not self.manager.closed:
                raise
            logger.debug("Lease manager closed during re-acquisition", extra={"secret_path": self.manager.path})


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Acquire a Vault secret and keep its lease renewed",
    )
    parser.add_argument(
        "--kind",
        choices=sorted(PROVIDERS),
        default="secret",
        help="Provider kind (default: secret)",
    )
    parser.add_argument("--path", required=True, help="Secret path, e.g. database/password")
    parser.add_argument(
        "--token",
        default=os.getenv("VAULT_TOKEN", ""),
        help="Vault token (default: $VAULT_TOKEN)",
    )
    parser.add_argument("--log-level", default=None, help="Override TOKEND_LOG_LEVEL")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, settings: TokendSettings) -> int:
    provider = create_provider(args.kind, args.path, args.token, settings=settings)
    manager = LeaseManager(provider, path=args.path, options=LeaseOptions.from_settings(settings.lease))
    agent = LeaseAgent(manager, settings.lease)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with manager:
        try:
            await agent.acquire()
        except InitializationError:
            logger.exception("Could not acquire secret", extra={"secret_path": args.path})
            return 1

        stop_task = asyncio.create_task(stop.wait())
        failed_task = asyncio.create_task(agent.wait_failed())
        try:
            await asyncio.wait({stop_task, failed_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (stop_task, failed_task):
                task.cancel()
            await agent.close()

    if agent.failed or manager.status is LeaseStatus.ERROR:
        return 2
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_arguments(argv)
    settings = get_settings()
    configure_logging(service_name="tokend", log_level=args.log_level or settings.log_level)
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
