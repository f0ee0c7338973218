"""
Cancellable single-shot timers for lease renewal.

The lease manager never talks to the event loop directly; it asks a
``Scheduler`` for a ``TimerHandle`` that fires a callback once after a delay.
Production code uses ``AsyncioScheduler`` (``loop.call_later``). Tests inject
a scheduler that records the requested delays and fires on demand, so they
can assert on the effective delay instead of timer internals.
"""

import asyncio
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    """A scheduled single-shot callback."""

    @property
    def delay(self) -> float:
        """Seconds between arming and firing, as requested."""
        ...

    def cancel(self) -> None:
        """Prevent the callback from firing. Safe to call more than once."""
        ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    """Factory for single-shot timers."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioTimer:
    """``TimerHandle`` backed by an ``asyncio.TimerHandle``."""

    def __init__(self, delay: float, handle: asyncio.TimerHandle) -> None:
        self._delay = delay
        self._handle = handle

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def when(self) -> float:
        """Absolute loop time at which the callback fires."""
        return self._handle.when()

    def cancel(self) -> None:
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler:
    """Schedules timers on an asyncio event loop.

    Args:
        loop: Loop to schedule on. Defaults to the running loop at the time
              each timer is armed.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> AsyncioTimer:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        loop = self._loop or asyncio.get_running_loop()
        return AsyncioTimer(delay, loop.call_later(delay, callback))
