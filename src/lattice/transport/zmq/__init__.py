"""ZeroMQ bus transport and forwarding broker."""

from .bus import Connection, connect, default_port, parse_url
from .broker import Broker
