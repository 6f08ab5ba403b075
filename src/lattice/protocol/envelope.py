"""Versioned envelope for lifecycle events.

The envelope follows the CloudEvents 1.0 attribute names, serialized as
JSON. Publishers build one with :meth:`Envelope.wrap` for every event they
emit; each subscriber decodes it independently with :func:`decode` and
:meth:`Envelope.unwrap`. Nothing is persisted.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Optional

import msgspec

from . import events
from . import fields
from .errors import DecodeError


class Envelope(msgspec.Struct, frozen=True, omit_defaults=True):

    spec_version: str = msgspec.field(name="specversion")
    event_type: str = msgspec.field(name="type")
    type_version: str = msgspec.field(name="typeversion")
    source: str
    event_id: str = msgspec.field(name="id")
    time: datetime.datetime
    content_type: str = msgspec.field(name="datacontenttype")
    data: str
    subject: Optional[str] = None

    @classmethod
    def wrap(cls, event) -> "Envelope":
        """One-way conversion from a lifecycle event to a fresh envelope."""

        subject = event.subject() or None

        return cls(
            spec_version=fields.SPEC_VERSION,
            event_type=event.event_type(),
            type_version=fields.TYPE_VERSION,
            source=fields.EVENT_SOURCE,
            event_id=str(uuid.uuid4()),
            time=datetime.datetime.now(datetime.timezone.utc),
            content_type=fields.CONTENT_TYPE,
            data=events.encode(event).decode(),
            subject=subject,
        )

    def unwrap(self):
        """Decode the carried event.

        Raises :class:`DecodeError` for an unrecognized content type, an
        incompatible major spec version, or a body that does not validate
        against its variant.
        """

        if self.content_type.split(";")[0].strip().lower() != fields.CONTENT_TYPE:
            raise DecodeError(f"unsupported content type: {self.content_type!r}")

        major = self.spec_version.split(".")[0]
        if major != fields.SPEC_VERSION.split(".")[0]:
            raise DecodeError(f"unsupported envelope spec version: {self.spec_version!r}")

        return events.decode(self.data.encode())


_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder(Envelope)


def encode(envelope: Envelope) -> bytes:
    return _encoder.encode(envelope)


def decode(data: bytes) -> Envelope:
    try:
        return _decoder.decode(data)
    except msgspec.DecodeError as exc:
        raise DecodeError(f"invalid event envelope: {exc}") from exc


def publishable(event) -> bytes:
    """Shorthand used by anything that emits events: wrap and encode."""
    return encode(Envelope.wrap(event))
