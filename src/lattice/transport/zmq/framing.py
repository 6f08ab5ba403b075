"""ZMQ multipart framing for bus messages.

Publish (PUB -> broker -> SUB)
    subject_with_trailing_dot, version, reply_subject, payload

The trailing dot keeps ZeroMQ's prefix-matching subscriptions from picking
up longer subjects: a subscription to ``wasmbus.events.`` does not match
``wasmbus.eventsfoo.``. It does still match ``wasmbus.events.x.``, so the
receiving side compares subjects exactly before delivering.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from ..base import Message


# Version of the framing implemented here, identified by a single byte.
version = b"1"


def topic(subject: str) -> bytes:
    return (subject + ".").encode()


def to_frames(subject: str, data: bytes, reply: Optional[str] = None) -> Tuple[bytes, ...]:
    reply_b = reply.encode() if reply else b""
    return (topic(subject), version, reply_b, bytes(data))


def from_frames(parts: Sequence[bytes]) -> Message:
    if len(parts) != 4:
        raise ValueError(f"expected 4 frames, got {len(parts)}")

    their_version = parts[1]
    if their_version != version:
        raise ValueError(f"message is framing version {their_version!r}, recipient expects {version!r}")

    subject = parts[0].decode()
    if not subject.endswith("."):
        raise ValueError(f"malformed topic frame: {parts[0]!r}")
    subject = subject[:-1]

    reply = parts[2].decode() if parts[2] else None
    return Message(subject=subject, data=parts[3], reply=reply)
