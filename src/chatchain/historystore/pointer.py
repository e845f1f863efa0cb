from pathlib import Path
from typing import final

import msgspec
from msgspec import Struct

from chatchain.exceptions import ChatError
from chatchain.lib.atomic_io import atomic_write_bytes
from chatchain.serialization import from_json, to_json


class ConversationMetadata(Struct):
    head: str | None = None


@final
class InvalidMetadataError(ChatError):
    """Raised when the conversation metadata file exists but cannot be parsed."""

    def __init__(self, metadata_file: Path, details: object | None = None) -> None:
        msg = f"Not a valid conversation metadata file: {metadata_file}"
        if details is not None:
            msg = f"{msg} ({details})"
        super().__init__(msg)
        self.metadata_file = metadata_file
        self.details = details


@final
class MetadataWriteError(ChatError):
    """Raised when the conversation metadata file cannot be written."""

    def __init__(self, metadata_file: Path, details: object) -> None:
        super().__init__(f"Cannot write conversation metadata file {metadata_file}: {details}")
        self.metadata_file = metadata_file


def load_metadata(metadata_file: Path) -> ConversationMetadata:
    """
    Load the durable conversation metadata. A missing file is an empty conversation.

    Raises:
        InvalidMetadataError: if the file cannot be parsed as ConversationMetadata.
        OSError: if the file exists but cannot be read.
    """
    if not metadata_file.is_file():
        return ConversationMetadata()

    raw = metadata_file.read_bytes()
    try:
        return from_json(ConversationMetadata, raw)
    except msgspec.MsgspecError as e:
        raise InvalidMetadataError(metadata_file, e) from e


def save_metadata(metadata_file: Path, metadata: ConversationMetadata) -> None:
    """
    Atomically write the metadata as compact single-line JSON.

    Raises:
        MetadataWriteError: if the file cannot be written.
    """
    try:
        atomic_write_bytes(metadata_file, to_json(metadata))
    except OSError as e:
        raise MetadataWriteError(metadata_file, e) from e
