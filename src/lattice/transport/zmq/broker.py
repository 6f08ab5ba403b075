"""ZeroMQ forwarding broker.

Publishers connect to the XSUB port, subscribers to the XPUB port one above
it. Subscriptions flow upstream from XPUB to XSUB; the XSUB side also
subscribes to everything itself, so a publisher never drops a message
because a subscription has not reached it yet. Filtering happens once, at
the XPUB socket.
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from typing import Optional

import zmq
import zmq.auth

from ..base import TransportConnectionError
from .bus import default_port, zmq_context


log = logging.getLogger(__name__)

minimum_port = 10220
maximum_port = 13679


class Broker:
    """Forward every publication to every matching subscriber.

    If *port* is None, look for the first available pair of adjacent ports
    within the default range; the chosen XSUB port is available as
    :attr:`port` afterwards. A *secret* certificate file turns on CURVE
    encryption for both sockets.

    :ivar port: The port publishers connect to.
    """

    def __init__(self, address: str = "*", port: Optional[int] = default_port, secret: Optional[str] = None):
        self.address = address
        self.frontend = zmq_context.socket(zmq.XSUB)
        self.backend = zmq_context.socket(zmq.XPUB)

        for socket in (self.frontend, self.backend):
            socket.setsockopt(zmq.LINGER, 0)
            if secret:
                public, secret_key = zmq.auth.load_certificate(secret)
                socket.curve_server = True
                socket.curve_publickey = public
                socket.curve_secretkey = secret_key

        if port is None:
            minimum = minimum_port
            maximum = maximum_port
        else:
            minimum = int(port)
            maximum = int(port)

        trial = minimum
        while trial <= maximum:
            try:
                self.frontend.bind(f"tcp://{address}:{trial}")
            except zmq.ZMQError:
                # Assume this port is in use.
                trial += 1
                continue

            try:
                self.backend.bind(f"tcp://{address}:{trial + 1}")
            except zmq.ZMQError:
                self.frontend.unbind(f"tcp://{address}:{trial}")
                trial += 1
                continue

            break

        if trial > maximum:
            self.frontend.close()
            self.backend.close()
            if port is None:
                error = "no ports available in range %d:%d" % (minimum, maximum)
            else:
                error = "port already in use: %d or %d" % (minimum, minimum + 1)
            raise TransportConnectionError(error)

        self.port = trial

        # Subscribe upstream to everything; see the module docstring.
        self.frontend.send(b"\x01")

        internal = f"inproc://lattice.Broker:control:{id(self)}"
        self._control_rx = zmq_context.socket(zmq.PAIR)
        self._control_rx.bind(internal)
        self._control_tx = zmq_context.socket(zmq.PAIR)
        self._control_tx.connect(internal)

        self.thread = None

    def __repr__(self):
        return f"Broker({self.address}:{self.port}/{self.port + 1})"

    def run(self) -> None:
        log.info("forwarding %s:%d -> %s:%d", self.address, self.port, self.address, self.port + 1)

        try:
            zmq.proxy_steerable(self.frontend, self.backend, None, self._control_rx)
        except zmq.ContextTerminated:
            pass
        finally:
            for socket in (self.frontend, self.backend, self._control_rx):
                socket.close(linger=0)

    def start(self) -> "Broker":
        self.thread = threading.Thread(target=self.run, name=f"lattice-broker-{self.port}", daemon=True)
        self.thread.start()
        return self

    def stop(self) -> None:
        if self.thread is None:
            return

        self._control_tx.send(b"TERMINATE")
        self.thread.join(timeout=1)
        self._control_tx.close(linger=0)
        self.thread = None

    def __enter__(self):
        if self.thread is None:
            self.start()
        return self

    def __exit__(self, *exc_info):
        self.stop()


def main(argv=None) -> int:
    """Entry point for ``lattice-broker``."""

    from ... import log as logsetup

    parser = argparse.ArgumentParser(
        prog="lattice-broker",
        description="Forward lattice bus traffic between publishers and subscribers over ZeroMQ.",
    )
    parser.add_argument("-a", "--address", default="*", help="interface to bind (default: all)")
    parser.add_argument("-p", "--port", type=int, default=default_port, help="publisher port; subscribers use port+1")
    parser.add_argument("-s", "--secret", default=None, help="CURVE secret certificate for the broker")
    arguments = parser.parse_args(argv)

    logsetup.setup(level="INFO")

    try:
        broker = Broker(arguments.address, arguments.port, arguments.secret)
    except (TransportConnectionError, OSError, ValueError) as exc:
        print(f"lattice-broker error: {exc}", file=sys.stderr)
        return 1

    try:
        broker.run()
    except KeyboardInterrupt:
        pass

    return 0
