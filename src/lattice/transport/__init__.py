"""Transport layer implementations."""

import importlib
import os

from .base import (
    Message,
    Transport,
    TransportError,
    TransportTimeout,
    TransportConnectionError,
    new_inbox,
)
from .session import Subscription


# Backends are imported on first use, so the zmq and pika stacks only load
# when a connection is actually made with them.

_BACKENDS = {
    "zmq": ".zmq",
    "rabbitmq": ".rabbitmq",
    "local": ".local",
}


def backend(name=None):
    """Return the module implementing backend *name*; the default is taken
    from the LATTICE_TRANSPORT environment variable, then ``zmq``."""

    if name is None:
        name = os.environ.get("LATTICE_TRANSPORT", "zmq")

    try:
        module = _BACKENDS[name.lower()]
    except KeyError:
        raise ValueError(f"unknown transport backend: {name!r}") from None

    return importlib.import_module(module, __name__)


def connect(url, creds=None, backend_name=None) -> Transport:
    """Open and return a connection to the broker at *url*."""

    return backend(backend_name).connect(url, creds)
