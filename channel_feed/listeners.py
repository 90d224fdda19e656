"""
Listener Registry

Maps event names to the set of listeners bound on one channel. Every read
and write takes the registry's lock, so a dispatch lookup never observes a
set that a concurrent bind/unbind is halfway through changing.
"""
from __future__ import annotations

import threading

from .types import SubscriptionEventListener


class ListenerRegistry:
    """
    Per-channel event name -> listeners mapping.

    - add() is idempotent: a listener is held at most once per event.
    - remove() of the last listener drops the event entry.
    - listeners_for() returns a frozen snapshot, safe to iterate unlocked.
    """

    __slots__ = ("_lock", "_listeners")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, set[SubscriptionEventListener]] = {}

    def add(self, event_name: str, listener: SubscriptionEventListener) -> None:
        with self._lock:
            self._listeners.setdefault(event_name, set()).add(listener)

    def remove(self, event_name: str, listener: SubscriptionEventListener) -> None:
        with self._lock:
            listeners = self._listeners.get(event_name)
            if listeners is None:
                return
            listeners.discard(listener)
            if not listeners:
                del self._listeners[event_name]

    def listeners_for(self, event_name: str) -> frozenset[SubscriptionEventListener]:
        with self._lock:
            return frozenset(self._listeners.get(event_name, ()))

    def event_names(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._listeners)

    def __contains__(self, event_name: object) -> bool:
        with self._lock:
            return event_name in self._listeners

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
