"""Wire messages for the lattice control plane.

Every request, reply, and inventory record exchanged over the bus is a
:class:`msgspec.Struct` here, encoded as JSON. Field names match what lattice
hosts put on the wire, which is why a few attributes are renamed.
"""

from __future__ import annotations

import threading
from typing import ClassVar, Dict, List, Optional, Union

import msgspec

from . import fields
from .errors import DecodeError


# --- Auctions ---

class ActorAuctionRequest(msgspec.Struct, frozen=True):
    """Is any host willing to run this actor, meeting these labels?"""

    actor_id: str
    revision: int = 0
    constraints: Dict[str, str] = msgspec.field(default_factory=dict)


class ProviderAuctionRequest(msgspec.Struct, frozen=True):
    """Is any host willing to run this capability provider?"""

    provider_ref: str
    binding_name: str = "default"
    constraints: Dict[str, str] = msgspec.field(default_factory=dict)


class AuctionResponse(msgspec.Struct, frozen=True, omit_defaults=True):
    """A host asserting it can satisfy an auction. There is no negative
    variant; a host that cannot satisfy the request says nothing."""

    host_id: str
    target: Optional[str] = None


# --- Addressed commands ---

class LaunchCommand(msgspec.Struct, frozen=True):
    actor_id: str
    revision: int = 0


class TerminateCommand(msgspec.Struct, frozen=True):
    actor_id: str


class ProviderLaunchCommand(msgspec.Struct, frozen=True, omit_defaults=True):
    provider_ref: str
    binding_name: str = "default"
    revision: Optional[int] = None


class ProviderTerminateCommand(msgspec.Struct, frozen=True):
    provider_ref: str
    binding_name: str = "default"


class LaunchAck(msgspec.Struct, frozen=True):
    actor_id: str
    host: str

    @property
    def target(self) -> str:
        return self.actor_id


class ProviderLaunchAck(msgspec.Struct, frozen=True):
    provider_ref: str
    host: str

    @property
    def target(self) -> str:
        return self.provider_ref


# --- Inventory records ---

class HostProfile(msgspec.Struct, frozen=True):
    id: str
    uptime_ms: int = 0
    labels: Dict[str, str] = msgspec.field(default_factory=dict)


class ActorMetadata(msgspec.Struct, frozen=True, omit_defaults=True):
    """The ``wascap`` section of an actor's signed claims."""

    name: Optional[str] = None
    ver: Optional[str] = None
    rev: Optional[int] = None
    caps: List[str] = msgspec.field(default_factory=list)
    tags: List[str] = msgspec.field(default_factory=list)
    provider: bool = msgspec.field(default=False, name="prov")


class ActorClaims(msgspec.Struct, frozen=True, omit_defaults=True):
    """An actor's claim set. The signature has already been verified by the
    host that reports it; here it is only data to display."""

    subject: str = msgspec.field(name="sub")
    issuer: str = msgspec.field(default="", name="iss")
    issued_at: int = msgspec.field(default=0, name="iat")
    expires: Optional[int] = msgspec.field(default=None, name="exp")
    jwt_id: Optional[str] = msgspec.field(default=None, name="jti")
    metadata: Optional[ActorMetadata] = msgspec.field(default=None, name="wascap")

    def name(self) -> str:
        if self.metadata is None or self.metadata.name is None:
            return self.subject
        return self.metadata.name


class Binding(msgspec.Struct, frozen=True):
    actor: str
    capability_id: str
    binding_name: str = "default"
    configuration: Dict[str, str] = msgspec.field(default_factory=dict)


class CapabilityDescriptor(msgspec.Struct, frozen=True):
    id: str
    name: str = ""
    version: str = ""
    revision: int = 0
    supported_operations: List[str] = msgspec.field(default_factory=list)


class HostedCapability(msgspec.Struct, frozen=True):
    binding_name: str
    descriptor: CapabilityDescriptor


# --- Inventory replies ---
#
# Replies to an inventory probe arrive through a scatter-gather pattern; each
# host answers for itself, with either a single record (its profile) or a
# batch. Hosts send a single key naming the kind, for example
# {"Actors": {"host": "N1", "actors": [...]}} or {"Host": "N1"}; a flat object
# with a 'type' tag is accepted too.

class HostInventory(msgspec.Struct, frozen=True, tag="host"):
    kind: ClassVar[str] = fields.HOSTS
    wire_name: ClassVar[str] = "Host"

    profile: HostProfile

    @property
    def host_id(self) -> str:
        return self.profile.id

    @property
    def records(self) -> List[HostProfile]:
        return [self.profile]


class ActorInventory(msgspec.Struct, frozen=True, tag="actors"):
    kind: ClassVar[str] = fields.ACTORS
    wire_name: ClassVar[str] = "Actors"

    host: str
    actors: List[ActorClaims] = msgspec.field(default_factory=list)

    @property
    def host_id(self) -> str:
        return self.host

    @property
    def records(self) -> List[ActorClaims]:
        return list(self.actors)


class BindingInventory(msgspec.Struct, frozen=True, tag="bindings"):
    kind: ClassVar[str] = fields.BINDINGS
    wire_name: ClassVar[str] = "Bindings"

    host: str
    bindings: List[Binding] = msgspec.field(default_factory=list)

    @property
    def host_id(self) -> str:
        return self.host

    @property
    def records(self) -> List[Binding]:
        return list(self.bindings)


class CapabilityInventory(msgspec.Struct, frozen=True, tag="capabilities"):
    kind: ClassVar[str] = fields.CAPABILITIES
    wire_name: ClassVar[str] = "Capabilities"

    host: str
    capabilities: List[HostedCapability] = msgspec.field(default_factory=list)

    @property
    def host_id(self) -> str:
        return self.host

    @property
    def records(self) -> List[HostedCapability]:
        return list(self.capabilities)


InventoryResponse = Union[HostInventory, ActorInventory, BindingInventory, CapabilityInventory]

inventory_variants = (HostInventory, ActorInventory, BindingInventory, CapabilityInventory)
_inventory_by_name = {variant.wire_name: variant for variant in inventory_variants}


# --- Encoding ---

_encoder = msgspec.json.Encoder()
_decoders: Dict[object, msgspec.json.Decoder] = {}
_decoders_lock = threading.Lock()


def encode(value) -> bytes:
    """Serialize a wire struct (or any msgspec-compatible value) to JSON."""
    return _encoder.encode(value)


def to_builtins(value):
    """Plain dicts/lists for a struct, as used for ``--json`` rendering."""
    return msgspec.to_builtins(value)


def decode(data: bytes, type):
    """Deserialize *data* as *type*, raising :class:`DecodeError` on any
    malformed or non-conforming payload."""

    decoder = _decoders.get(type)
    if decoder is None:
        with _decoders_lock:
            decoder = _decoders.setdefault(type, msgspec.json.Decoder(type))

    try:
        return decoder.decode(data)
    except msgspec.DecodeError as exc:
        name = getattr(type, "__name__", str(type))
        raise DecodeError(f"invalid {name} payload: {exc}") from exc


def encode_inventory(response) -> bytes:
    """Serialize an inventory reply the way hosts send it, under a single
    key naming its kind. A host reply carries the full profile."""

    body = msgspec.to_builtins(response)
    del body["type"]

    if isinstance(response, HostInventory):
        body = body["profile"]

    return _encoder.encode({response.wire_name: body})


def decode_inventory(data: bytes):
    """Deserialize one inventory reply, in either the hosts' single-key
    shape or the flat tagged shape. A host reply may carry a bare host id
    in place of a profile."""

    try:
        raw = msgspec.json.decode(data)
    except msgspec.DecodeError as exc:
        raise DecodeError(f"invalid inventory reply: {exc}") from exc

    if not isinstance(raw, dict):
        raise DecodeError(f"inventory reply must be an object, not {type(raw).__name__}")

    if "type" in raw:
        return _convert(raw, InventoryResponse)

    if len(raw) != 1:
        raise DecodeError("inventory reply has neither a 'type' tag nor a single kind key")

    ((name, body),) = raw.items()

    variant = _inventory_by_name.get(name)
    if variant is None:
        raise DecodeError(f"unknown inventory reply kind: {name!r}")

    if variant is HostInventory:
        if isinstance(body, str):
            body = {"id": body}
        body = {"profile": body}
    elif not isinstance(body, dict):
        raise DecodeError(f"invalid {name} inventory reply: expected an object")

    return _convert(dict(body, type=variant.__struct_config__.tag), variant)


def _convert(raw, type):
    try:
        return msgspec.convert(raw, type)
    except msgspec.ValidationError as exc:
        name = getattr(type, "__name__", "InventoryResponse")
        raise DecodeError(f"invalid {name} payload: {exc}") from exc
