from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar, override

import httpx
import structlog

from chatchain.exceptions import StoreUnavailableError
from chatchain.lib.atomic_io import atomic_write_bytes
from chatchain.models import fingerprint

from .protocol import GetRequest, PutRequest, decode_request, encode_failure, encode_ok

logger = structlog.get_logger("chatchain.historystore")

DEFAULT_TIMEOUT = 30.0


class HttpKeyValueTransport:
    """
    Sends request envelopes to a key/value collaborator reachable over HTTP.

    Every envelope is POSTed as-is; the response body is returned untouched so the
    client can interpret the collaborator's own status field.

    A 4xx answer means the collaborator was reached and refused the request, so it is
    turned into a failure envelope (surfacing as rejected/not found). Connection
    errors, timeouts and 5xx answers are StoreUnavailableError.
    """

    url: str
    _client: httpx.Client

    def __init__(self, url: str, client: httpx.Client | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)

    def request(self, payload: bytes) -> bytes:
        try:
            response = self._client.post(
                self.url,
                content=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"Key/value collaborator at {self.url} is unavailable: {e}") from e

        if response.is_client_error:
            logger.warning("kv_request_refused", url=self.url, status_code=response.status_code)
            return encode_failure(f"HTTP {response.status_code}: {response.text}")
        if not response.is_success:
            raise StoreUnavailableError(
                f"Key/value collaborator at {self.url} is unavailable: HTTP {response.status_code}"
            )
        return response.content

    def close(self) -> None:
        self._client.close()


class ContentAddressedBackend(ABC):
    """
    In-process key/value collaborator speaking the request/response envelope.

    Keys are the fingerprint of the stored bytes, so writing identical bytes twice
    lands on the same key and leaves the existing entry untouched.
    """

    def request(self, payload: bytes) -> bytes:
        try:
            action = decode_request(payload)
        except ValueError as e:
            logger.warning("kv_request_invalid", error=str(e))
            return encode_failure(str(e))

        match action:
            case GetRequest(key=key):
                value = self._read(key)
                if value is None:
                    return encode_failure(f"no entry for key {key}")
                return encode_ok(value=value)
            case PutRequest(value=value):
                key = fingerprint(value)
                if not self._contains(key):
                    self._write(key, value)
                return encode_ok(key=key)

    def _contains(self, key: str) -> bool:
        return self._read(key) is not None

    @abstractmethod
    def _read(self, key: str) -> bytes | None: ...

    @abstractmethod
    def _write(self, key: str, value: bytes) -> None: ...


class InMemoryKeyValueBackend(ContentAddressedBackend):
    entries: dict[str, bytes]

    def __init__(self) -> None:
        self.entries = {}

    @override
    def _read(self, key: str) -> bytes | None:
        return self.entries.get(key)

    @override
    def _write(self, key: str, value: bytes) -> None:
        self.entries[key] = value


class DirectoryKeyValueBackend(ContentAddressedBackend):
    """
    One file per entry, fanned out by the first two key characters:
    <root>/ab/abcdef....json

    Disk failures surface as StoreUnavailableError, the same as a lost connection to a
    remote collaborator.
    """

    _KEY_RE: ClassVar[re.Pattern[str]] = re.compile(r"^[0-9a-f]{40}$")

    root: Path

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    @override
    def _contains(self, key: str) -> bool:
        return self._path_for(key).is_file()

    @override
    def _read(self, key: str) -> bytes | None:
        if not self._KEY_RE.match(key):
            return None
        path = self._path_for(key)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise StoreUnavailableError(f"Cannot read message file {path}: {e}") from e

    @override
    def _write(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        try:
            atomic_write_bytes(path, value)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write message file {path}: {e}") from e

    def _path_for(self, key: str) -> Path:
        return self.root / key[:2] / f"{key}.json"
