from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chatchain.conversation import ConversationState


class ChatError(Exception):
    """Base exception for all expected chatchain errors."""

    message: str
    exit_code: int

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class ConfigurationError(ChatError):
    """Configuration related errors (env vars, credential files)."""


# ---------- Store ----------


class StoreError(ChatError):
    """Failures talking to the key/value collaborator."""


class StoreUnavailableError(StoreError):
    """The transport to the key/value collaborator failed."""


class StoreRejectedError(StoreError):
    """The backend answered a put with a non-ok status."""


class MessageNotFoundError(StoreError):
    """The backend answered a get with a non-ok status."""

    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message not found: {message_id!r}")
        self.message_id = message_id


class MalformedStoreResponseError(StoreError):
    """The backend answered with an envelope or payload that cannot be decoded."""


class CycleSuspectedError(StoreError):
    """History traversal revisited a message or exceeded the depth cap."""


# ---------- Completion ----------


class CompletionError(ChatError):
    """Failures calling the completion endpoint."""


class CompletionTransportError(CompletionError):
    """The completion request could not complete."""


class MalformedCompletionError(CompletionError):
    """The completion reply lacks the expected text field."""


# ---------- Turn ----------


class TurnStage(str, Enum):
    PERSIST_USER = "persist_user"
    RECONSTRUCT_HISTORY = "reconstruct_history"
    COMPLETION = "completion"
    PERSIST_ASSISTANT = "persist_assistant"


class TurnError(ChatError):
    """
    A user turn failed at `stage`.

    `state` is the state the caller must continue with: unchanged when the user message
    was never stored, otherwise with the head advanced to the stored user message.
    The underlying error is chained as `__cause__`.
    """

    stage: TurnStage
    state: ConversationState

    def __init__(self, stage: TurnStage, state: ConversationState, cause: ChatError) -> None:
        super().__init__(f"Turn failed at {stage.value}: {cause.message}")
        self.stage = stage
        self.state = state
        self.cause = cause
