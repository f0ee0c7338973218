"""
Lease lifecycle notifications.

A lease manager announces each lifecycle transition through an
``EventEmitter``. Listeners are plain callables registered per event and
invoked synchronously, in registration order, after the state mutation has
been committed. A listener reading the manager from inside its callback
therefore always sees the new status, data and timer.

Events:
    ready: initialize() succeeded
    renewed: a renewal succeeded and the timer has been re-armed
    error: a renewal failed; the manager is now in ERROR
    invalidate: the lease hit its expiration ceiling and was reset to PENDING

Example:
    >>> manager.on(LeaseEvent.RENEWED, lambda m: print(m.lease_duration))
    >>> unsubscribe = manager.on("error", alert_on_failure)
    >>> unsubscribe()
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class LeaseEvent(str, Enum):
    """Lifecycle notifications emitted by a lease manager."""

    READY = "ready"
    RENEWED = "renewed"
    ERROR = "error"
    INVALIDATE = "invalidate"


class EventEmitter:
    """
    Registry of listeners keyed by ``LeaseEvent``.

    Listener exceptions are logged and do not prevent later listeners from
    running, nor do they roll back the transition that triggered them.
    """

    def __init__(self) -> None:
        self._listeners: dict[LeaseEvent, list[tuple[Listener, bool]]] = {
            event: [] for event in LeaseEvent
        }

    def on(self, event: LeaseEvent | str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every emission of ``event``.

        Returns:
            A callable that removes the listener again.
        """
        return self._add(LeaseEvent(event), listener, once=False)

    def once(self, event: LeaseEvent | str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for the next emission of ``event`` only."""
        return self._add(LeaseEvent(event), listener, once=True)

    def off(self, event: LeaseEvent | str, listener: Listener) -> None:
        """Remove every registration of ``listener`` for ``event``."""
        key = LeaseEvent(event)
        self._listeners[key] = [entry for entry in self._listeners[key] if entry[0] is not listener]

    def listener_count(self, event: LeaseEvent | str) -> int:
        return len(self._listeners[LeaseEvent(event)])

    def emit(self, event: LeaseEvent, *args: Any) -> None:
        """Invoke the listeners registered for ``event`` with ``args``."""
        entries = self._listeners[event]
        if not entries:
            return

        # Drop one-shot listeners before calling, so a listener that triggers
        # the same event again is not invoked twice.
        self._listeners[event] = [entry for entry in entries if not entry[1]]

        for listener, _ in entries:
            try:
                listener(*args)
            except Exception:
                logger.exception(
                    "Lease event listener failed",
                    extra={"event": event.value, "listener": getattr(listener, "__name__", repr(listener))},
                )

    def clear(self) -> None:
        """Remove all listeners for all events."""
        for event in self._listeners:
            self._listeners[event] = []

    def _add(self, event: LeaseEvent, listener: Listener, once: bool) -> Callable[[], None]:
        if not callable(listener):
            raise TypeError("listener must be callable")

        entry = (listener, once)
        self._listeners[event].append(entry)

        def _remove() -> None:
            if entry in self._listeners[event]:
                self._listeners[event].remove(entry)

        return _remove
