"""Protocol constants.

Keep these in one place to avoid stringly-typed subject handling.
"""

# Every subject the client emits or subscribes to carries this segment,
# after the optional namespace.
PROTOCOL = "wasmbus"

# Roots
INVENTORY = "inventory"
CONTROL = "control"
EVENTS = "events"

# Inventory kinds, one subject each: wasmbus.inventory.<kind>
HOSTS = "hosts"
ACTORS = "actors"
BINDINGS = "bindings"
CAPABILITIES = "capabilities"
INVENTORY_KINDS = (HOSTS, ACTORS, BINDINGS, CAPABILITIES)

# Control plane: wasmbus.control.auction.request et al.
AUCTION = ("auction", "request")
PROVIDER_AUCTION = ("provauction", "request")

ACTOR = "actor"
PROVIDER = "provider"
LAUNCH = "launch"
TERMINATE = "terminate"

# Reply inboxes are never namespaced.
INBOX_PREFIX = "_INBOX"

# Envelope constants (CloudEvents 1.0 shape)
EVENT_TYPE_PREFIX = "wasmbus.events"
SPEC_VERSION = "1.0"
TYPE_VERSION = "0.1"
EVENT_SOURCE = "https://wascc.dev/lattice/events"
CONTENT_TYPE = "application/json"
