"""In-process transport.

A :class:`Hub` stands in for the broker: every :class:`LocalTransport`
attached to the same hub sees the same subjects. Delivery is synchronous, in
the publishing thread, which makes the hub useful for embedding a lattice
in one process and for exercising the protocol without sockets.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from .base import Message, Transport, TransportConnectionError
from .session import Subscription


class Hub:
    """Subject table shared by the attached transports."""

    def __init__(self, name: str = "local"):
        self.name = name
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def __repr__(self):
        return f"Hub({self.name!r})"

    def add(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.setdefault(subscription.subject, []).append(subscription)

    def remove(self, subscription: Subscription) -> None:
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.subject)
            if subscriptions is None:
                return
            try:
                subscriptions.remove(subscription)
            except ValueError:
                pass
            if not subscriptions:
                del self._subscriptions[subscription.subject]

    def dispatch(self, message: Message) -> int:
        # Deliver outside the lock; a callback may well publish or subscribe.
        with self._lock:
            targets = tuple(self._subscriptions.get(message.subject, ()))

        for subscription in targets:
            subscription.deliver(message)

        return len(targets)


class LocalTransport(Transport):
    """One party's connection to a :class:`Hub`."""

    def __init__(self, hub: Optional[Hub] = None):
        self.hub = hub if hub is not None else Hub()
        self._open = False
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)

        for subscription in subscriptions:
            subscription.close()

        self._open = False

    def _check(self) -> None:
        if not self._open:
            raise TransportConnectionError(f"not connected to {self.hub!r}")

    def publish(self, subject: str, data: bytes, reply: Optional[str] = None) -> None:
        self._check()
        self.hub.dispatch(Message(subject=subject, data=bytes(data), reply=reply))

    def subscribe(self, subject: str, callback=None) -> Subscription:
        self._check()
        subscription = Subscription(self, subject, callback)

        with self._lock:
            self._subscriptions.append(subscription)

        self.hub.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True
        self.hub.remove(subscription)

        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass


_hubs: Dict[str, Hub] = {}
_hubs_lock = threading.Lock()


def hub(name: str = "local") -> Hub:
    """Shared hub registry, so separate parts of one process can meet on
    the same named hub."""

    with _hubs_lock:
        instance = _hubs.get(name)
        if instance is None:
            instance = Hub(name)
            _hubs[name] = instance
        return instance


def connect(url: str = "local", creds=None) -> LocalTransport:
    transport = LocalTransport(hub(url))
    transport.open()
    return transport
