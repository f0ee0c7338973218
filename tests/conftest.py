"""
Root conftest for tests.

Provides a deterministic scheduler so lease manager tests can assert on the
renewal delays a manager asks for and fire timers on demand, without
sleeping.
"""

from collections.abc import Callable

import pytest


class FakeTimer:
    """Timer handle that records its delay and fires only when told to."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self._cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def fire(self) -> None:
        if self._cancelled:
            raise AssertionError("cancelled timer fired")
        self.fired = True
        self.callback()


class FakeScheduler:
    """Scheduler that keeps every timer it creates."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled() and not timer.fired]

    @property
    def delays(self) -> list[float]:
        return [timer.delay for timer in self.timers]

    def fire_next(self) -> FakeTimer:
        """Fire the single active timer."""
        active = self.active
        assert len(active) == 1, f"expected one active timer, found {len(active)}"
        active[0].fire()
        return active[0]


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()
