"""Lifecycle events published on the lattice event feed.

Each event is one variant of a closed tagged union. Hosts publish the body
with a single key naming the variant, such as ``{"HostStarted": "N1"}`` or
``{"ActorStarted": {"actor": "M1", "host": "N1"}}``. Each variant also has a
snake-case tag, the same suffix used to build the CloudEvents ``type``
attribute: ``actor_started`` and ``wasmbus.events.actor_started``. A flat
object carrying that tag in a ``type`` field is accepted on decode as well.
Timestamps, identifiers, and other metadata belong to the :mod:`envelope`,
not to the events themselves.

Variants this client does not know decode to :class:`UnknownEvent` instead of
failing, so an older client keeps working against newer hosts.
"""

from __future__ import annotations

import re
from typing import Any, Dict

import msgspec
import msgspec.structs

from . import fields
from .errors import DecodeError


class LifecycleEvent(msgspec.Struct, frozen=True, tag_field="type"):
    """Base for every known event variant."""

    def event_type(self) -> str:
        return f"{fields.EVENT_TYPE_PREFIX}.{self.__struct_config__.tag}"

    def subject(self) -> str:
        """Routing subject derived from the identifying fields. Abstract;
        each variant family below supplies its own."""
        raise NotImplementedError


class _HostEvent(LifecycleEvent, frozen=True):
    host: str

    def subject(self) -> str:
        return self.host


class HostStarted(_HostEvent, frozen=True, tag="host_started"):
    """A host process has fully started and is ready for work."""

    def __str__(self):
        return f"[{self.host}] Host started"


class HostStopped(_HostEvent, frozen=True, tag="host_stopped"):
    def __str__(self):
        return f"[{self.host}] Host stopped"


class _ActorEvent(LifecycleEvent, frozen=True):
    actor: str
    host: str

    def subject(self) -> str:
        return self.actor


class ActorStarting(_ActorEvent, frozen=True, tag="actor_starting"):
    """An actor has begun the loading/parsing phase."""

    def __str__(self):
        return f"[{self.host}] Actor {self.actor} starting"


class ActorStarted(_ActorEvent, frozen=True, tag="actor_started"):
    """An actor is running and ready to receive messages."""

    def __str__(self):
        return f"[{self.host}] Actor {self.actor} started"


class ActorStopped(_ActorEvent, frozen=True, tag="actor_stopped"):
    def __str__(self):
        return f"[{self.host}] Actor {self.actor} stopped"


class ActorUpdating(_ActorEvent, frozen=True, tag="actor_updating"):
    """A live update (hot swap) has begun."""

    def __str__(self):
        return f"[{self.host}] Actor {self.actor} updating"


class ActorUpdateComplete(_ActorEvent, frozen=True, tag="actor_update_complete"):
    """A live update finished; *success* says whether it took."""

    success: bool

    def __str__(self):
        outcome = "succeeded" if self.success else "failed"
        return f"[{self.host}] Actor {self.actor} update {outcome}"


class ActorBecameHealthy(_ActorEvent, frozen=True, tag="actor_became_healthy"):
    def __str__(self):
        return f"[{self.host}] Actor {self.actor} became healthy"


class ActorBecameUnhealthy(_ActorEvent, frozen=True, tag="actor_became_unhealthy"):
    def __str__(self):
        return f"[{self.host}] Actor {self.actor} became unhealthy"


class _ProviderEvent(LifecycleEvent, frozen=True):
    capid: str
    instance_name: str
    host: str

    def subject(self) -> str:
        return f"{self.capid}.{self.instance_name}"


class ProviderLoaded(_ProviderEvent, frozen=True, tag="provider_loaded"):
    def __str__(self):
        return f"[{self.host}] Provider {self.capid},{self.instance_name} loaded"


class ProviderRemoved(_ProviderEvent, frozen=True, tag="provider_removed"):
    def __str__(self):
        return f"[{self.host}] Provider {self.capid},{self.instance_name} removed"


class _BindingEvent(LifecycleEvent, frozen=True):
    # Bound configuration values are never published in an event; they
    # have to be queried through an inventory probe.

    actor: str
    capid: str
    instance_name: str
    host: str

    def subject(self) -> str:
        return f"{self.actor}.{self.capid}.{self.instance_name}"


class ActorBindingCreated(_BindingEvent, frozen=True, tag="actor_binding_created"):
    def __str__(self):
        return f"[{self.host}] Actor {self.actor} bound to {self.capid},{self.instance_name}"


class ActorBindingRemoved(_BindingEvent, frozen=True, tag="actor_binding_removed"):
    def __str__(self):
        return f"[{self.host}] Actor {self.actor} un-bound from {self.capid},{self.instance_name}"


class UnknownEvent(msgspec.Struct, frozen=True):
    """An event whose tag this client does not recognize. The decoded body is
    kept as-is in *raw*."""

    type_name: str
    raw: Dict[str, Any] = msgspec.field(default_factory=dict)

    def event_type(self) -> str:
        return self.type_name

    def subject(self) -> str:
        return ""

    def __str__(self):
        return f"[?] {self.type_name}"


variants = (
    HostStarted,
    HostStopped,
    ActorStarting,
    ActorStarted,
    ActorStopped,
    ActorUpdating,
    ActorUpdateComplete,
    ProviderLoaded,
    ProviderRemoved,
    ActorBindingCreated,
    ActorBindingRemoved,
    ActorBecameHealthy,
    ActorBecameUnhealthy,
)

by_tag = {variant.__struct_config__.tag: variant for variant in variants}
by_name = {variant.__name__: variant for variant in variants}

_encoder = msgspec.json.Encoder()
_variant_name = re.compile(r"^[A-Z][A-Za-z0-9]*$")


def tag_for(name: str) -> str:
    """Event-type suffix for a variant name: ``ActorStarted`` becomes
    ``actor_started``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def encode(event) -> bytes:
    """Serialize an event body in the hosts' wire shape: a single key naming
    the variant, holding the host id for host events and an object of the
    identifying fields for every other variant, for example
    ``{"ActorStarted": {"actor": "M1", "host": "N1"}}``."""

    if isinstance(event, UnknownEvent):
        return _encoder.encode(event.raw)

    if isinstance(event, _HostEvent):
        body = event.host
    else:
        body = msgspec.structs.asdict(event)

    return _encoder.encode({type(event).__name__: body})


def decode(data) -> LifecycleEvent:
    """Decode one event body. Both the hosts' single-key shape and a flat
    object carrying a ``type`` tag are accepted. Known variants must
    validate; unknown ones become :class:`UnknownEvent`."""

    try:
        raw = msgspec.json.decode(data)
    except msgspec.DecodeError as exc:
        raise DecodeError(f"event body is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise DecodeError(f"event body must be an object, not {type(raw).__name__}")

    if "type" in raw:
        return _decode_tagged(raw)

    if len(raw) != 1:
        raise DecodeError("event body has neither a 'type' tag nor a single variant key")

    ((name, body),) = raw.items()

    if not _variant_name.match(name):
        raise DecodeError(f"event body has no variant key, found {name!r}")

    variant = by_name.get(name)
    if variant is None:
        return UnknownEvent(type_name=f"{fields.EVENT_TYPE_PREFIX}.{tag_for(name)}", raw=raw)

    tag = variant.__struct_config__.tag

    if issubclass(variant, _HostEvent):
        if not isinstance(body, str):
            raise DecodeError(f"invalid {name} event: expected a host id string")
        body = {"host": body}
    elif not isinstance(body, dict):
        raise DecodeError(f"invalid {name} event: expected an object")

    return _convert(dict(body, type=tag), variant)


def _decode_tagged(raw):

    tag = raw["type"]
    if not isinstance(tag, str) or tag == "":
        raise DecodeError("event body has an empty or non-string 'type' tag")

    variant = by_tag.get(tag)
    if variant is None:
        return UnknownEvent(type_name=f"{fields.EVENT_TYPE_PREFIX}.{tag}", raw=raw)

    return _convert(raw, variant)


def _convert(raw, variant):
    try:
        return msgspec.convert(raw, variant)
    except msgspec.ValidationError as exc:
        raise DecodeError(f"invalid {variant.__struct_config__.tag} event: {exc}") from exc
