# pyright: standard
"""
Immutable message model and its content-derived identity.

A message's identifier is the SHA-1 of its canonical body: the compact JSON object
`{"role", "content", "parent"}` in that field order. Identical triples always share
an identifier, so storing the same turn twice is an idempotent overwrite.
"""

import hashlib
from typing import Literal

from msgspec import Struct, structs

from chatchain.serialization import from_json, to_json

Role = Literal["user", "assistant"]


class MessageBody(Struct, frozen=True):
    """Canonical, identifier-less wire form of a message."""

    role: Role
    content: str
    parent: str | None


class Message(Struct, frozen=True):
    role: Role
    content: str
    parent: str | None = None
    id: str | None = None

    @property
    def is_stored(self) -> bool:
        return self.id is not None


class Turn(Struct, frozen=True):
    user: Message
    assistant: Message


def fingerprint(data: bytes) -> str:
    """Lowercase hex SHA-1 of raw bytes; the key a content-addressed backend assigns."""
    return hashlib.sha1(data).hexdigest()


def _canonical_body(role: Role, content: str, parent: str | None) -> bytes:
    return to_json(MessageBody(role=role, content=content, parent=parent))


def derive_identity(role: Role, content: str, parent: str | None) -> str:
    return fingerprint(_canonical_body(role, content, parent))


def encode_body(message: Message) -> bytes:
    """
    Serialize the identity-relevant part of a message. The identifier itself never
    travels to the store; it is derived from these bytes.
    """
    return _canonical_body(message.role, message.content, message.parent)


def decode_body(data: bytes | str) -> Message:
    body = from_json(MessageBody, data)
    return Message(role=body.role, content=body.content, parent=body.parent)


def new_message(role: Role, content: str, parent: str | None = None) -> Message:
    return Message(role=role, content=content, parent=parent)


def attach_identity(message: Message, message_id: str) -> Message:
    return structs.replace(message, id=message_id)
