""" Python client for a lattice of hosts coordinating over a shared message
    bus. This includes the control-plane protocol itself, the transports it
    travels over, and the :class:`Client` that ties them together for
    inventory probes, placement auctions, launch and terminate commands,
    and watching lifecycle events.
"""

# Utility components.

from . import json
from . import config
from . import log

# Submodules used by multiple other components.

from . import protocol
from . import transport

# Primary public-facing interfaces.

from . import client
connect = client.connect

from .client import Client
from .watch import EventChannel

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
