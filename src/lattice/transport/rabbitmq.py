"""RabbitMQ bus transport.

Subjects map one to one onto routing keys of a topic exchange; the reply
subject of a request travels in the ``reply_to`` property. Each connection
consumes from one exclusive, auto-deleted queue, bound once per subscribed
subject. The pika :class:`BlockingConnection` is owned by a background thread;
every other thread reaches it through ``add_callback_threadsafe``.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

import pika
import pika.exceptions

from .base import Message, Transport, TransportConnectionError, TransportTimeout
from .session import Subscription


log = logging.getLogger(__name__)

EXCHANGE = "wasmbus"
default_port = 5672


def parse_url(url: str) -> Tuple[str, int]:
    """Split ``[amqp://]host[:port]`` into an (address, port) pair."""

    url = str(url).strip()

    if "://" in url:
        scheme, url = url.split("://", 1)
        if scheme != "amqp":
            raise ValueError(f"unsupported scheme for the rabbitmq transport: {scheme!r}")

    url = url.rstrip("/")
    if url == "":
        raise ValueError("broker address cannot be empty")

    address, sep, port = url.rpartition(":")
    if sep == "":
        return url, default_port

    try:
        return address, int(port)
    except ValueError:
        raise ValueError(f"invalid broker port: {port!r}") from None


def load_credentials(creds: str) -> pika.PlainCredentials:
    """The credentials file holds ``username:password`` on its first line."""

    try:
        with open(creds) as file:
            line = file.readline().strip()
    except OSError as exc:
        raise TransportConnectionError(f"cannot read credentials from {creds}: {exc}") from exc

    username, sep, password = line.partition(":")
    if sep == "" or username == "":
        raise TransportConnectionError(f"{creds} must contain username:password")

    return pika.PlainCredentials(username, password)


class Connection(Transport):
    """Client connection to a RabbitMQ broker."""

    connect_timeout = 10
    sync_timeout = 2.0

    def __init__(self, url: str, creds: Optional[str] = None):
        self.url = url
        self.address, self.port = parse_url(url)
        self.creds = creds

        self._connection = None
        self._channel = None
        self._queue_name = None
        self._error: Optional[BaseException] = None
        self._ready = threading.Event()
        self._thread = None

        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._subscriptions_lock = threading.Lock()

    def __repr__(self):
        return f"Connection(amqp://{self.address}:{self.port})"

    @property
    def is_open(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._ready.is_set() and self._error is None

    def _parameters(self) -> pika.ConnectionParameters:
        arguments = dict(host=self.address, port=self.port, heartbeat=600, blocked_connection_timeout=300)
        if self.creds:
            arguments["credentials"] = load_credentials(self.creds)
        return pika.ConnectionParameters(**arguments)

    def open(self) -> None:
        if self.is_open:
            return

        parameters = self._parameters()

        self._error = None
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, args=(parameters,), name="lattice-amqp", daemon=True)
        self._thread.start()

        if not self._ready.wait(self.connect_timeout):
            raise TransportConnectionError(f"timed out connecting to AMQP broker at {self.address}:{self.port}")

        if self._error is not None:
            raise TransportConnectionError(f"cannot connect to AMQP broker at {self.address}:{self.port}: {self._error}") from self._error

    def _run(self, parameters: pika.ConnectionParameters) -> None:
        try:
            self._connection = pika.BlockingConnection(parameters)
            self._channel = self._connection.channel()
            self._channel.exchange_declare(exchange=EXCHANGE, exchange_type="topic", durable=False)

            result = self._channel.queue_declare(queue="", exclusive=True, auto_delete=True)
            self._queue_name = result.method.queue

            self._channel.basic_consume(
                queue=self._queue_name,
                on_message_callback=self._on_message,
                auto_ack=True,
            )
        except pika.exceptions.AMQPError as exc:
            self._error = exc
            self._ready.set()
            return

        self._ready.set()

        try:
            self._channel.start_consuming()
        except pika.exceptions.AMQPError:
            log.exception("lost connection to AMQP broker at %s:%d", self.address, self.port)
        finally:
            try:
                self._connection.close()
            except pika.exceptions.AMQPError:
                pass

    def _on_message(self, _channel, method, properties, body: bytes) -> None:
        message = Message(subject=method.routing_key, data=body, reply=properties.reply_to or None)

        with self._subscriptions_lock:
            targets = tuple(self._subscriptions.get(message.subject, ()))

        for subscription in targets:
            subscription.deliver(message)

    def _call(self, function) -> None:
        if not self.is_open:
            raise TransportConnectionError(f"not connected to AMQP broker at {self.address}:{self.port}")

        try:
            self._connection.add_callback_threadsafe(function)
        except pika.exceptions.AMQPError as exc:
            raise TransportConnectionError(str(exc)) from exc

    def close(self) -> None:
        if self._thread is None:
            return

        with self._subscriptions_lock:
            for group in self._subscriptions.values():
                for subscription in group:
                    subscription.closed = True
            self._subscriptions.clear()

        if self.is_open:
            self._call(self._channel.stop_consuming)

        self._thread.join(timeout=2)
        self._thread = None

    # --- Transport contract ---

    def publish(self, subject: str, data: bytes, reply: Optional[str] = None) -> None:
        properties = pika.BasicProperties(reply_to=reply) if reply else None

        def send():
            self._channel.basic_publish(exchange=EXCHANGE, routing_key=subject, body=bytes(data), properties=properties)

        self._call(send)

    def subscribe(self, subject: str, callback=None) -> Subscription:
        subscription = Subscription(self, subject, callback)

        with self._subscriptions_lock:
            group = self._subscriptions.setdefault(subject, [])
            first = len(group) == 0
            group.append(subscription)

        if not first:
            return subscription

        bound = threading.Event()

        def bind():
            self._channel.queue_bind(exchange=EXCHANGE, queue=self._queue_name, routing_key=subject)
            bound.set()

        try:
            self._call(bind)
            if not bound.wait(self.sync_timeout):
                raise TransportTimeout(f"AMQP broker did not confirm binding for {subject} in {self.sync_timeout:.2f} sec")
        except BaseException:
            subscription.close()
            raise

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

        if last and self.is_open:
            subject = subscription.subject
            self._call(lambda: self._channel.queue_unbind(exchange=EXCHANGE, queue=self._queue_name, routing_key=subject))


def connect(url: str, creds: Optional[str] = None) -> Connection:
    connection = Connection(url, creds)
    connection.open()
    return connection
