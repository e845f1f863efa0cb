from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TypedDict

from chatchain.models import Message, Role


class CompletionTurn(TypedDict):
    role: Role
    content: str


def to_completion_turns(history: Sequence[Message]) -> list[CompletionTurn]:
    """Identifiers and parents are storage details and never reach the completion API."""
    return [{"role": msg.role, "content": msg.content} for msg in history]


class CompletionProvider(ABC):
    @abstractmethod
    def complete(self, history: Sequence[Message], credential: str) -> str:
        """
        Returns the reply text for the given oldest-first history.

        An empty history is forwarded as-is.

        Raises:
            CompletionTransportError: the request could not complete.
            MalformedCompletionError: the reply lacks the expected text.
        """
        ...
