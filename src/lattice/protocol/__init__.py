from . import fields
from . import errors
from . import subject
from . import message
from . import events
from . import envelope

from .errors import DecodeError, AckMismatch
from .subject import Namer
from .envelope import Envelope


"""
Lattice Protocol Layer
======================

This package defines the transport-agnostic control-plane protocol spoken
between a lattice client and the hosts on the bus: how subjects are named,
what each request and reply looks like, and how lifecycle events are
enveloped.

The protocol layer MUST NOT depend on any transport implementation
(e.g. ZeroMQ, RabbitMQ, etc).

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

Operator / latticectl
    │
    ▼
Client Facade (lattice.client)
    - get_hosts() / get_actors() / ...
    - perform_actor_auction()
    - launch_actor_on_host() / terminate_actor()
    - watch_events()

    │
    ▼
Components (lattice.inventory, .auction, .command, .watch)
    Fan-out collection, ack correlation, event hand-off

    │
    ▼
Subject Namer (subject.py)            Envelope Codec (envelope.py, events.py)
    [ns.]wasmbus.<root>.<parts>           CloudEvents-shaped wrapper around
    Pure, no state                        a closed union of lifecycle events

    │
    ▼
Wire Messages (message.py)
    msgspec structs for every request, reply and record

    │
    ▼
Field Vocabulary (fields.py)
    Canonical subject segments and envelope constants

---------------------------------------------------------------------

Below the Protocol Layer (for context)
--------------------------------------

Transport Layer (lattice.transport)
    publish() / subscribe() / request_multi() / request()
    - ZeroMQ (via a forwarding broker)
    - RabbitMQ topic exchange
    - in-process bus

---------------------------------------------------------------------

Design Principles
-----------------

1. Transport Agnostic
   Protocol must operate identically regardless of backend.

2. Silence Is An Answer
   Fan-out operations treat a host that does not reply as absent, never
   as an error. Only addressed commands fail on silence.

3. Layer Isolation
   Dependencies only flow downward:
       Client -> Protocol -> Transport contract
   Never upward.

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
