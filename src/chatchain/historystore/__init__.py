"""
Content-addressed message persistence.

Provides:
- The key/value collaborator envelope (protocol) and transports/backends speaking it
- HistoryStoreClient for get/put of Message records
- Reconstruction of the linear history from a head identifier
- Durable conversation metadata (the head pointer)
"""

from .backends import (
    ContentAddressedBackend,
    DirectoryKeyValueBackend,
    HttpKeyValueTransport,
    InMemoryKeyValueBackend,
)
from .client import HistoryStoreClient
from .pointer import (
    ConversationMetadata,
    InvalidMetadataError,
    MetadataWriteError,
    load_metadata,
    save_metadata,
)
from .protocol import KeyValueTransport
from .reconstruct import DEFAULT_MAX_HISTORY_DEPTH, reconstruct_history

__all__ = [
    "DEFAULT_MAX_HISTORY_DEPTH",
    "ContentAddressedBackend",
    "ConversationMetadata",
    "DirectoryKeyValueBackend",
    "HistoryStoreClient",
    "HttpKeyValueTransport",
    "InMemoryKeyValueBackend",
    "InvalidMetadataError",
    "KeyValueTransport",
    "MetadataWriteError",
    "load_metadata",
    "reconstruct_history",
    "save_metadata",
]
