"""Transport interface.

This is the (small) contract that transport implementations should follow:
subject-addressed publish and subscribe, plus the two request patterns built
on top of them. It lives outside :mod:`lattice.protocol` so the protocol
remains transport-agnostic.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Optional

import msgspec

from ..protocol import fields


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """A request did not receive a timely response."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class Message(msgspec.Struct, frozen=True):
    """One delivery from the bus: the *subject* it was published on, the raw
    *data*, and the subject to *reply* to, if the publisher asked for one."""

    subject: str
    data: bytes = b""
    reply: Optional[str] = None


def new_inbox() -> str:
    return f"{fields.INBOX_PREFIX}.{uuid.uuid4().hex}"


class Transport(ABC):
    """Minimal contract for a bus transport.

    Implementations must be safe for concurrent use by several in-flight
    requests plus any number of subscriptions.
    """

    @abstractmethod
    def open(self) -> None:
        """Establish the underlying connection/socket."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection/socket."""

    @abstractmethod
    def publish(self, subject: str, data: bytes, reply: Optional[str] = None) -> None:
        """Send *data* to every subscriber of *subject*."""

    @abstractmethod
    def subscribe(self, subject: str, callback=None):
        """Return a :class:`lattice.transport.session.Subscription` that
        receives every message published on exactly *subject*, optionally
        handing each one to *callback* instead of queueing it. The
        subscription is active on the broker by the time this returns."""

    @abstractmethod
    def unsubscribe(self, subscription) -> None:
        """Stop delivery to *subscription*."""

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False

    # --- request patterns ---

    def request_multi(self, subject: str, data: bytes):
        """Scatter-gather: publish with a fresh reply inbox and return the
        subscription collecting replies. The caller bounds the collection
        with :meth:`Subscription.timeout_iter` and closes it."""

        inbox = new_inbox()
        subscription = self.subscribe(inbox)

        try:
            self.publish(subject, data, reply=inbox)
        except BaseException:
            subscription.close()
            raise

        return subscription

    def request(self, subject: str, data: bytes, timeout: float) -> Message:
        """Addressed request: exactly one reply within *timeout* seconds."""

        subscription = self.request_multi(subject, data)

        try:
            reply = subscription.next(timeout)
        finally:
            subscription.close()

        if reply is None:
            raise TransportTimeout(f"{subject}: no reply in {timeout:.2f} sec")

        return reply

    def __enter__(self):
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, *exc_info):
        self.close()
