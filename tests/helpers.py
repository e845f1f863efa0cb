# pyright: standard
from collections.abc import Sequence
from typing import override

from chatchain.conversation import ConversationState
from chatchain.exceptions import ChatError
from chatchain.historystore import HistoryStoreClient, InMemoryKeyValueBackend, KeyValueTransport
from chatchain.llm.providers.base import CompletionProvider
from chatchain.models import Message


class ScriptedProvider(CompletionProvider):
    """
    Completion provider returning queued replies (or raising queued errors), then a
    default reply. Records every history it was asked to complete.
    """

    def __init__(self, replies: Sequence[str | ChatError] = (), default: str = "ok") -> None:
        self.replies: list[str | ChatError] = list(replies)
        self.default = default
        self.calls: list[list[Message]] = []
        self.credentials: list[str] = []

    @override
    def complete(self, history: Sequence[Message], credential: str) -> str:
        self.calls.append(list(history))
        self.credentials.append(credential)
        if not self.replies:
            return self.default
        match self.replies.pop(0):
            case ChatError() as error:
                raise error
            case str(text):
                return text


def make_state(
    backend: KeyValueTransport | None = None,
    head: str | None = None,
    api_key: str = "test-key",
    max_history_depth: int = 10_000,
) -> ConversationState:
    return ConversationState(
        head=head,
        api_key=api_key,
        store=HistoryStoreClient(backend if backend is not None else InMemoryKeyValueBackend()),
        max_history_depth=max_history_depth,
    )
