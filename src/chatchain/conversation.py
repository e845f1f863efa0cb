"""
The turn state machine.

    Idle -> AwaitingUserPersist -> AwaitingContext -> AwaitingCompletion
         -> AwaitingReplyPersist -> Idle

Every awaiting state falls straight back to Idle on failure. Nothing already stored
is rolled back: once the user message is persisted the head stays on it, even when
the rest of the turn fails.
"""

from dataclasses import dataclass, replace

import structlog

from chatchain.exceptions import ChatError, TurnError, TurnStage
from chatchain.historystore import DEFAULT_MAX_HISTORY_DEPTH, HistoryStoreClient, reconstruct_history
from chatchain.llm.providers.base import CompletionProvider
from chatchain.models import Message, Turn, new_message

logger = structlog.get_logger("chatchain.conversation")


@dataclass(slots=True, frozen=True)
class ConversationState:
    head: str | None
    api_key: str
    store: HistoryStoreClient
    version: int = 0
    max_history_depth: int = DEFAULT_MAX_HISTORY_DEPTH

    def with_head(self, head: str) -> "ConversationState":
        return replace(self, head=head, version=self.version + 1)


def handle_user_turn(
    content: str,
    state: ConversationState,
    provider: CompletionProvider,
) -> tuple[ConversationState, Turn]:
    """
    Appends a user message, asks the provider for a reply over the full history and
    appends the reply.

    Returns the new state (head on the assistant message) and both stored messages.

    Raises:
        TurnError: carrying the failed stage and the state to continue with.
    """
    log = logger.bind(head=state.head, version=state.version)

    user_draft = new_message("user", content, parent=state.head)
    try:
        user = state.store.save(user_draft)
    except ChatError as e:
        log.warning("turn_failed", stage=TurnStage.PERSIST_USER.value, error=e.message)
        raise TurnError(TurnStage.PERSIST_USER, state, e) from e

    state = state.with_head(_stored_id(user))
    log = log.bind(user_id=user.id)

    try:
        history = reconstruct_history(state.store, state.head, state.max_history_depth)
    except ChatError as e:
        log.warning("turn_failed", stage=TurnStage.RECONSTRUCT_HISTORY.value, error=e.message)
        raise TurnError(TurnStage.RECONSTRUCT_HISTORY, state, e) from e

    try:
        reply = provider.complete(history, state.api_key)
    except ChatError as e:
        log.warning("turn_failed", stage=TurnStage.COMPLETION.value, error=e.message)
        raise TurnError(TurnStage.COMPLETION, state, e) from e

    assistant_draft = new_message("assistant", reply, parent=user.id)
    try:
        assistant = state.store.save(assistant_draft)
    except ChatError as e:
        log.warning("turn_failed", stage=TurnStage.PERSIST_ASSISTANT.value, error=e.message)
        raise TurnError(TurnStage.PERSIST_ASSISTANT, state, e) from e

    state = state.with_head(_stored_id(assistant))
    log.info("turn_completed", assistant_id=assistant.id, history_length=len(history) + 1)
    return state, Turn(user=user, assistant=assistant)


def get_history(state: ConversationState) -> list[Message]:
    """
    The conversation up to the current head, oldest first.

    Raises:
        StoreError: propagated unchanged from reconstruction.
    """
    return reconstruct_history(state.store, state.head, state.max_history_depth)


def _stored_id(message: Message) -> str:
    assert message.id is not None, "stored messages always carry an identifier"
    return message.id
