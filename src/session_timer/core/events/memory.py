"""
In-memory message bus implementation.

Manifesto:
    The scheduler and timer unit run in one process and must see each
    other's signals immediately and in a predictable order. This bus
    delivers synchronously on the publisher's thread, in subscription
    order, and isolates every handler so one broken listener cannot stall
    the schedule.

Tags:
    session-timer, events, in-memory, pubsub

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from session_timer.core.events import EventHandler, EventName, event_key
from session_timer.core.logging import get_logger

__all__ = ["InMemoryMessageBus"]

logger = get_logger(__name__)


@dataclass(eq=False)
class Subscription:
    """Internal subscription record."""

    event: str
    handler: EventHandler
    once: bool = False
    active: bool = True


class InMemoryMessageBus:
    """Synchronous in-process message bus.

    Example::

        bus = InMemoryMessageBus()
        bus.subscribe("timer:started", lambda started: print(started.time))
        bus.publish("timer:started", TimerStarted(time="09:00", manual=True))
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.RLock()

    def subscribe(self, event: EventName | str, handler: EventHandler) -> None:
        """Register ``handler`` for ``event``; handlers run in registration order."""
        self._add(Subscription(event=event_key(event), handler=handler))

    def subscribe_once(self, event: EventName | str, handler: EventHandler) -> None:
        """Register ``handler`` for the next ``event`` only."""
        self._add(Subscription(event=event_key(event), handler=handler, once=True))

    def unsubscribe(self, event: EventName | str, handler: EventHandler) -> bool:
        """Remove the first subscription of ``handler`` to ``event``.

        Returns True if a subscription was removed. A handler removed while
        a publish is in flight is not called by that publish.
        """
        key = event_key(event)
        with self._lock:
            subs = self._subscriptions.get(key, [])
            for sub in subs:
                if sub.handler == handler:
                    sub.active = False
                    subs.remove(sub)
                    if not subs:
                        del self._subscriptions[key]
                    return True
        return False

    def publish(self, event: EventName | str, payload: Any = None) -> int:
        """Deliver ``payload`` to every subscriber of ``event``.

        Exceptions in handlers are logged and swallowed here so the
        publisher and the remaining handlers are unaffected.

        Returns:
            Number of handlers invoked.
        """
        key = event_key(event)
        with self._lock:
            snapshot = list(self._subscriptions.get(key, []))

        delivered = 0
        for sub in snapshot:
            if not self._claim(sub):
                continue
            delivered += 1
            try:
                sub.handler(payload)
            except Exception as e:
                logger.exception(
                    "event_handler_error",
                    event_name=key,
                    handler=getattr(sub.handler, "__qualname__", repr(sub.handler)),
                    error=str(e),
                )
        return delivered

    def listener_count(self, event: EventName | str | None = None) -> int:
        """Number of active subscriptions, for one event or in total."""
        with self._lock:
            if event is None:
                return sum(len(subs) for subs in self._subscriptions.values())
            return len(self._subscriptions.get(event_key(event), []))

    def listeners(self) -> list[dict[str, Any]]:
        """Debug summary: one entry per event with its listener count."""
        with self._lock:
            return [
                {"event": key, "listener_count": len(subs)}
                for key, subs in self._subscriptions.items()
            ]

    def clear(self) -> None:
        """Remove every subscription."""
        with self._lock:
            for subs in self._subscriptions.values():
                for sub in subs:
                    sub.active = False
            self._subscriptions.clear()

    @property
    def subscription_count(self) -> int:
        return self.listener_count()

    # ------------------------------------------------------------------

    def _add(self, sub: Subscription) -> None:
        with self._lock:
            self._subscriptions.setdefault(sub.event, []).append(sub)

    def _claim(self, sub: Subscription) -> bool:
        """Check a snapshot entry is still live; consume it if it is one-shot."""
        with self._lock:
            if not sub.active:
                return False
            if sub.once:
                sub.active = False
                subs = self._subscriptions.get(sub.event, [])
                if sub in subs:
                    subs.remove(sub)
                    if not subs:
                        del self._subscriptions[sub.event]
            return True
