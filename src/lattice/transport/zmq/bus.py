"""ZeroMQ bus transport.

A :class:`Connection` talks to a :class:`lattice.transport.zmq.broker.Broker`
over two sockets: a PUB socket connected to the broker's XSUB port, and a
SUB socket connected to the broker's XPUB port (by convention one above the
XSUB port). ZeroMQ sockets are not thread-safe, so both are owned by a
single background thread; callers queue work in an outbox and wake that
thread through an inproc PAIR signal.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from typing import Dict, List, Optional, Tuple

import zmq
import zmq.auth

from ..base import (
    Transport,
    TransportConnectionError,
    TransportTimeout,
    new_inbox,
)
from ..session import Subscription
from .framing import from_frames, to_frames, topic


log = logging.getLogger(__name__)

default_port = 4222
zmq_context = zmq.Context.instance()

BROKER_CERTIFICATE = "broker.key"


def parse_url(url: str) -> Tuple[str, int]:
    """Split ``[tcp://]host[:port]`` into an (address, port) pair."""

    url = str(url).strip()

    if "://" in url:
        scheme, url = url.split("://", 1)
        if scheme not in ("tcp", "zmq"):
            raise ValueError(f"unsupported scheme for the zmq transport: {scheme!r}")

    if url == "":
        raise ValueError("broker address cannot be empty")

    address, sep, port = url.rpartition(":")
    if sep == "":
        return url, default_port

    try:
        return address, int(port)
    except ValueError:
        raise ValueError(f"invalid broker port: {port!r}") from None


def load_curve(creds: str) -> Tuple[bytes, bytes, bytes]:
    """Return (public, secret, broker_public) keys for a client certificate.

    The broker's public certificate is expected alongside the client's
    secret certificate, named ``broker.key``.
    """

    server_cert = os.path.join(os.path.dirname(os.path.abspath(creds)), BROKER_CERTIFICATE)

    try:
        public, secret = zmq.auth.load_certificate(creds)
        server_public, _ = zmq.auth.load_certificate(server_cert)
    except (OSError, ValueError) as exc:
        raise TransportConnectionError(f"cannot load credentials from {creds}: {exc}") from exc

    if secret is None:
        raise TransportConnectionError(f"{creds} does not contain a secret key")

    return public, secret, server_public


class Connection(Transport):
    """Client connection to a ZeroMQ broker."""

    # How long subscribe() waits for the broker to confirm a subscription.
    sync_timeout = 2.0
    sync_interval = 0.05

    def __init__(self, url: str, creds: Optional[str] = None):
        self.url = url
        self.address, self.port = parse_url(url)
        self.creds = creds

        self.pub_socket = None
        self.sub_socket = None

        self._outbox = queue.SimpleQueue()
        self._signal_lock = threading.Lock()
        self._signal_rx = None
        self._signal_tx = None

        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._ready: Dict[str, threading.Event] = {}
        self._subscriptions_lock = threading.Lock()

        self.shutdown = False
        self._thread = None

    def __repr__(self):
        return f"Connection({self.address}:{self.port})"

    @property
    def is_open(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self.shutdown

    def open(self) -> None:
        if self.is_open:
            return

        publish_address = f"tcp://{self.address}:{self.port}"
        subscribe_address = f"tcp://{self.address}:{self.port + 1}"

        try:
            self.pub_socket = zmq_context.socket(zmq.PUB)
            self.sub_socket = zmq_context.socket(zmq.SUB)

            for socket in (self.pub_socket, self.sub_socket):
                socket.setsockopt(zmq.LINGER, 0)
                if self.creds:
                    public, secret, server_public = load_curve(self.creds)
                    socket.curve_publickey = public
                    socket.curve_secretkey = secret
                    socket.curve_serverkey = server_public

            self.pub_socket.connect(publish_address)
            self.sub_socket.connect(subscribe_address)

            internal = f"inproc://lattice.Connection:signal:{id(self)}"
            self._signal_rx = zmq_context.socket(zmq.PAIR)
            self._signal_rx.bind(internal)
            self._signal_tx = zmq_context.socket(zmq.PAIR)
            self._signal_tx.connect(internal)
        except zmq.ZMQError as exc:
            self._close_sockets()
            raise TransportConnectionError(f"cannot connect to broker at {self.url}: {exc}") from exc

        self.shutdown = False
        self._thread = threading.Thread(target=self.run, name=f"lattice-zmq-{self.port}", daemon=True)
        self._thread.start()

        # Messages published before the PUB socket finishes connecting are
        # silently dropped; wait for one round trip through the broker.
        try:
            self._sync()
        except TransportTimeout as exc:
            self.close()
            raise TransportConnectionError(f"no broker answering at {self.url}") from exc

        log.debug("connected to %s (publish) and %s (subscribe)", publish_address, subscribe_address)

    def close(self) -> None:
        if self._thread is None:
            return

        with self._subscriptions_lock:
            subscriptions = [s for group in self._subscriptions.values() for s in group]
            self._subscriptions.clear()
            pending = list(self._ready.values())
            self._ready.clear()

        for ready in pending:
            ready.set()

        for subscription in subscriptions:
            subscription.closed = True

        self.shutdown = True
        self._wake()
        self._thread.join(timeout=1)
        self._thread = None
        self._close_sockets()

    def _close_sockets(self) -> None:
        with self._signal_lock:
            for name in ("pub_socket", "sub_socket", "_signal_tx", "_signal_rx"):
                socket = getattr(self, name)
                if socket is not None:
                    socket.close(linger=0)
                    setattr(self, name, None)

    # --- outbox ---

    def _wake(self) -> None:
        # The lock around the PAIR socket is necessary in a multithreaded
        # application; several callers may be submitting at once.
        with self._signal_lock:
            if self._signal_tx is not None:
                self._signal_tx.send(b"")

    def _submit(self, operation: tuple) -> None:
        if not self.is_open:
            raise TransportConnectionError(f"not connected to broker at {self.url}")

        self._outbox.put(operation)

        try:
            self._wake()
        except zmq.ZMQError as exc:
            raise TransportConnectionError(f"cannot reach I/O thread for {self.url}: {exc}") from exc

    def _handle_outgoing(self) -> None:
        # Clear one signal and perform one operation.
        self._signal_rx.recv(flags=zmq.NOBLOCK)

        try:
            operation = self._outbox.get(block=False)
        except queue.Empty:
            return

        action = operation[0]

        if action == "pub":
            self.pub_socket.send_multipart(operation[1])
        elif action == "sub":
            self.sub_socket.setsockopt(zmq.SUBSCRIBE, operation[1])
        elif action == "unsub":
            self.sub_socket.setsockopt(zmq.UNSUBSCRIBE, operation[1])

    def _handle_incoming(self, parts) -> None:
        try:
            message = from_frames(parts)
        except (ValueError, UnicodeDecodeError) as exc:
            log.warning("dropping malformed frames from %s: %s", self.url, exc)
            return

        with self._subscriptions_lock:
            targets = tuple(self._subscriptions.get(message.subject, ()))

        for subscription in targets:
            subscription.deliver(message)

    def run(self) -> None:
        poller = zmq.Poller()
        poller.register(self.sub_socket, zmq.POLLIN)
        poller.register(self._signal_rx, zmq.POLLIN)

        while not self.shutdown:
            try:
                for active, _flag in poller.poll(1000):
                    if self.shutdown:
                        break
                    if active == self._signal_rx:
                        self._handle_outgoing()
                    elif active == self.sub_socket:
                        parts = self.sub_socket.recv_multipart()
                        self._handle_incoming(parts)
            except zmq.ZMQError:
                if self.shutdown:
                    break
                log.exception("I/O error on connection to %s", self.url)
            except Exception:
                log.exception("unexpected error on connection to %s", self.url)

    # --- Transport contract ---

    def publish(self, subject: str, data: bytes, reply: Optional[str] = None) -> None:
        self._submit(("pub", to_frames(subject, data, reply)))

    def subscribe(self, subject: str, callback=None) -> Subscription:
        subscription = Subscription(self, subject, callback)

        with self._subscriptions_lock:
            group = self._subscriptions.setdefault(subject, [])
            first = len(group) == 0
            group.append(subscription)
            if first:
                ready = self._ready[subject] = threading.Event()
            else:
                ready = self._ready.get(subject)

        if first:
            try:
                self._submit(("sub", topic(subject)))
                self._sync()
            except BaseException:
                with self._subscriptions_lock:
                    if self._ready.get(subject) is ready:
                        del self._ready[subject]
                subscription.close()
                raise
            finally:
                ready.set()

            return subscription

        # Another caller is still confirming the broker subscription for
        # this subject; it is live only once that round trip completes.
        if ready is not None:
            ready.wait()

        with self._subscriptions_lock:
            confirmed = ready is not None and self._ready.get(subject) is ready

        if not confirmed:
            subscription.close()
            raise TransportConnectionError(f"subscription to {subject} was not confirmed by the broker at {self.url}")

        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True

        with self._subscriptions_lock:
            group = self._subscriptions.get(subscription.subject)
            if group is None or subscription not in group:
                return
            group.remove(subscription)
            last = len(group) == 0
            if last:
                del self._subscriptions[subscription.subject]
                self._ready.pop(subscription.subject, None)

        if last and self.is_open:
            self._submit(("unsub", topic(subscription.subject)))

    def _sync(self) -> None:
        """Block until the broker is known to honor every subscription made
        so far on this connection.

        Subscriptions travel to the broker in order over a single pipe, so
        once a fresh marker subscription has delivered a message published
        through the broker, everything submitted before it is active too.
        The marker is re-published until it arrives, since the PUB socket
        silently drops messages until its own connection is up.
        """

        marker = new_inbox()
        arrived = threading.Event()
        probe = Subscription(self, marker, lambda _message: arrived.set())

        with self._subscriptions_lock:
            self._subscriptions[marker] = [probe]

        try:
            self._submit(("sub", topic(marker)))
            deadline = time.monotonic() + self.sync_timeout

            while not arrived.is_set():
                if time.monotonic() > deadline:
                    raise TransportTimeout(f"broker at {self.url} did not confirm subscription in {self.sync_timeout:.2f} sec")
                self._submit(("pub", to_frames(marker, b"")))
                arrived.wait(self.sync_interval)
        finally:
            probe.close()


def connect(url: str, creds: Optional[str] = None) -> Connection:
    connection = Connection(url, creds)
    connection.open()
    return connection
