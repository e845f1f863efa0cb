# pyright: standard
"""
Request/response envelopes of the key/value collaborator.

Requests:  {"type": "request", "data": {"Get": "<key>"}}
           {"type": "request", "data": {"Put": [<byte>, ...]}}
Responses: {"status": "ok", "key": "<key>"}          (put)
           {"status": "ok", "value": [<byte>, ...]}   (get)
Any other status is a failure. Byte payloads travel as JSON arrays of integers.
"""

from typing import Any, Protocol, runtime_checkable

import msgspec
from msgspec import Struct

from chatchain.serialization import from_json, to_json

STATUS_OK = "ok"


@runtime_checkable
class KeyValueTransport(Protocol):
    def request(self, payload: bytes) -> bytes:
        """Send one encoded request envelope and return the raw response envelope."""
        ...


class RequestEnvelope(Struct, kw_only=True):
    type: str = "request"
    data: dict[str, Any]


class StoreResponse(Struct, omit_defaults=True):
    """`key` and `value` are only meaningful (and only type-checked) on an ok status."""

    status: str
    key: Any = None
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


class GetRequest(Struct, frozen=True):
    key: str


class PutRequest(Struct, frozen=True):
    value: bytes


def encode_get(key: str) -> bytes:
    return to_json(RequestEnvelope(data={"Get": key}))


def encode_put(value: bytes) -> bytes:
    return to_json(RequestEnvelope(data={"Put": list(value)}))


def decode_response(payload: bytes) -> StoreResponse:
    """Raises msgspec.DecodeError / msgspec.ValidationError on malformed envelopes."""
    return from_json(StoreResponse, payload)


def bytes_from_wire(value: object) -> bytes:
    """Raises TypeError unless `value` is a list of ints, ValueError if one is outside 0..255."""
    if not isinstance(value, list):
        raise TypeError(f"expected a byte array, got {type(value).__name__}")
    return bytes(value)


# ---------- Backend side ----------


def decode_request(payload: bytes) -> GetRequest | PutRequest:
    """
    Parse a request envelope as a backend would.

    Raises ValueError for anything that is not a single Get or Put action.
    """
    try:
        envelope = from_json(RequestEnvelope, payload)
    except msgspec.MsgspecError as e:
        raise ValueError(f"Invalid request envelope: {e}") from e

    if envelope.type != "request" or len(envelope.data) != 1:
        raise ValueError("Request envelope must carry exactly one action.")

    match envelope.data:
        case {"Get": str(key)}:
            return GetRequest(key=key)
        case {"Put": list(raw)}:
            try:
                return PutRequest(value=bytes(raw))
            except (TypeError, ValueError) as e:
                raise ValueError(f"Put payload is not a byte array: {e}") from e
        case _:
            raise ValueError(f"Unsupported action: {sorted(envelope.data)!r}")


def encode_ok(key: str | None = None, value: bytes | None = None) -> bytes:
    return to_json(
        StoreResponse(
            status=STATUS_OK,
            key=key,
            value=list(value) if value is not None else None,
        )
    )


def encode_failure(error: str) -> bytes:
    return to_json(StoreResponse(status="error", error=error))
