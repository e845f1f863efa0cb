from __future__ import annotations

import msgspec
import structlog

from chatchain.exceptions import (
    MalformedStoreResponseError,
    MessageNotFoundError,
    StoreRejectedError,
)
from chatchain.models import Message, attach_identity, decode_body, encode_body

from .protocol import KeyValueTransport, StoreResponse, bytes_from_wire, decode_response, encode_get, encode_put

logger = structlog.get_logger("chatchain.historystore")


class HistoryStoreClient:
    """
    Get/put adapter between Message records and the key/value collaborator.

    - Only the canonical body (role, content, parent) is stored; the identifier is the
      key the backend reports back, and is filled in again on every read.
    - Putting an identical body twice yields the same key. Whether the entry was new or
      already present is deliberately the same outcome.
    - No retries; transport failures surface as StoreUnavailableError from the transport.
    """

    transport: KeyValueTransport

    def __init__(self, transport: KeyValueTransport) -> None:
        self.transport = transport

    def put(self, message: Message) -> str:
        """
        Stores a message and returns its assigned identifier.

        Raises:
            StoreUnavailableError: the transport failed.
            StoreRejectedError: the backend answered with a non-ok status.
            MalformedStoreResponseError: the envelope is undecodable, or a success lacks a key.
        """
        response = self._send(encode_put(encode_body(message)))
        if not response.ok:
            raise StoreRejectedError(f"Key/value backend rejected put (status={response.status!r}).")
        if not isinstance(response.key, str) or not response.key:
            raise MalformedStoreResponseError("Put succeeded but the response carries no key.")

        logger.debug("message_stored", id=response.key, role=message.role, parent=message.parent)
        return response.key

    def get(self, message_id: str) -> Message:
        """
        Fetches a message by identifier, with `id` populated.

        Raises:
            StoreUnavailableError: the transport failed.
            MessageNotFoundError: the backend answered with a non-ok status.
            MalformedStoreResponseError: the envelope or stored payload cannot be decoded.
        """
        response = self._send(encode_get(message_id))
        if not response.ok:
            raise MessageNotFoundError(message_id)
        if response.value is None:
            raise MalformedStoreResponseError(f"Get for {message_id!r} succeeded but carries no value.")

        try:
            message = decode_body(bytes_from_wire(response.value))
        except (TypeError, ValueError, msgspec.MsgspecError) as e:
            raise MalformedStoreResponseError(f"Stored payload for {message_id!r} is not a message: {e}") from e

        logger.debug("message_loaded", id=message_id, role=message.role)
        return attach_identity(message, message_id)

    def save(self, message: Message) -> Message:
        """Stores a message and returns the identifier-bearing copy."""
        return attach_identity(message, self.put(message))

    def _send(self, payload: bytes) -> StoreResponse:
        raw = self.transport.request(payload)
        try:
            return decode_response(raw)
        except msgspec.MsgspecError as e:
            raise MalformedStoreResponseError(f"Undecodable key/value response: {e}") from e
