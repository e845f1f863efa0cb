"""
Rebuilds the linear conversation by following parent pointers back from the head.
"""

import structlog

from chatchain.exceptions import CycleSuspectedError
from chatchain.models import Message

from .client import HistoryStoreClient

DEFAULT_MAX_HISTORY_DEPTH = 10_000

logger = structlog.get_logger("chatchain.historystore")


def reconstruct_history(
    store: HistoryStoreClient,
    head: str | None,
    max_depth: int = DEFAULT_MAX_HISTORY_DEPTH,
) -> list[Message]:
    """
    Returns the chain ending at `head`, oldest first.

    An unset head is an empty conversation and never touches the store. Any store
    failure aborts the walk; a truncated prefix is never returned.

    Raises:
        StoreError: propagated from the store client.
        CycleSuspectedError: an identifier was visited twice or the chain exceeds max_depth.
    """
    if head is None:
        return []

    messages: list[Message] = []
    seen: set[str] = set()
    current: str | None = head

    while current is not None:
        if current in seen:
            raise CycleSuspectedError(f"History revisits message {current!r}; the parent chain forms a cycle.")
        if len(messages) >= max_depth:
            raise CycleSuspectedError(f"History from {head!r} exceeds {max_depth} messages.")
        seen.add(current)

        message = store.get(current)
        messages.append(message)
        current = message.parent

    # Traversal is newest first
    messages.reverse()
    logger.debug("history_reconstructed", head=head, length=len(messages))
    return messages
