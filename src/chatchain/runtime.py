from __future__ import annotations

import threading
from pathlib import Path

import httpx
import structlog

from chatchain.config import Settings, load_settings
from chatchain.conversation import ConversationState, get_history, handle_user_turn
from chatchain.exceptions import TurnError
from chatchain.historystore import (
    ConversationMetadata,
    DirectoryKeyValueBackend,
    HistoryStoreClient,
    HttpKeyValueTransport,
    KeyValueTransport,
    MetadataWriteError,
    load_metadata,
    save_metadata,
)
from chatchain.llm.providers.anthropic import AnthropicProvider
from chatchain.llm.providers.base import CompletionProvider
from chatchain.logs import configure_logging
from chatchain.models import Message, Turn

logger = structlog.get_logger("chatchain.runtime")


class ConversationRuntime:
    """
    Sole owner of the conversation state.

    Events are handled one at a time under a lock: each call takes the current state,
    runs to completion (including every external round-trip) and installs the state it
    returns. Whenever the head moves, it is written to the metadata file, including
    after a partially failed turn.
    """

    _state: ConversationState
    provider: CompletionProvider
    metadata_path: Path | None
    _lock: threading.Lock

    def __init__(
        self,
        state: ConversationState,
        provider: CompletionProvider,
        metadata_path: Path | None = None,
    ) -> None:
        self._state = state
        self.provider = provider
        self.metadata_path = metadata_path
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, transport: KeyValueTransport | None = None) -> ConversationRuntime:
        if transport is None:
            if settings.kv_url:
                transport = HttpKeyValueTransport(settings.kv_url, timeout=settings.timeout)
            else:
                transport = DirectoryKeyValueBackend(settings.messages_dir)

        metadata = load_metadata(settings.metadata_path)
        state = ConversationState(
            head=metadata.head,
            api_key=settings.api_key,
            store=HistoryStoreClient(transport),
            max_history_depth=settings.max_history_depth,
        )
        provider = AnthropicProvider(
            api_url=settings.api_url,
            model=settings.model,
            max_tokens=settings.max_tokens,
            timeout=httpx.Timeout(settings.timeout),
        )
        logger.info("conversation_loaded", head=metadata.head, metadata_path=str(settings.metadata_path))
        return cls(state, provider, settings.metadata_path)

    @property
    def state(self) -> ConversationState:
        return self._state

    def send_message(self, content: str) -> Turn:
        """
        Runs one user turn.

        Raises:
            TurnError: after installing (and, where possible, persisting) the state it
                carries. A failed head write is logged and the TurnError still surfaces.
            MetadataWriteError: the turn completed but the new head could not be written.
                The in-memory state already holds the new head.
        """
        with self._lock:
            try:
                new_state, turn = handle_user_turn(content, self._state, self.provider)
            except TurnError as e:
                try:
                    self._commit(e.state)
                except MetadataWriteError as write_error:
                    logger.error("head_persist_failed", error=write_error.message, stage=e.stage.value)
                raise
            self._commit(new_state)
            return turn

    def history(self) -> list[Message]:
        """
        Raises:
            StoreError: reconstruction failed.
        """
        with self._lock:
            return get_history(self._state)

    def _commit(self, state: ConversationState) -> None:
        """Installs `state`, then writes the head if it moved. Raises MetadataWriteError."""
        previous = self._state
        self._state = state
        if state.head == previous.head:
            return
        if self.metadata_path is not None:
            save_metadata(self.metadata_path, ConversationMetadata(head=state.head))
        logger.info("head_advanced", head=state.head, version=state.version)


def open_runtime(**overrides: object) -> tuple[Settings, ConversationRuntime]:
    """
    Load settings (environment plus non-None overrides), configure logging and build
    the runtime.

    Raises:
        ConfigurationError: invalid or incomplete settings.
        InvalidMetadataError: the stored head pointer is unreadable.
    """
    settings = load_settings(**overrides)
    configure_logging(settings.log_level, settings.log_json)
    return settings, ConversationRuntime.from_settings(settings)
