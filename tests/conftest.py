# pyright: standard
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from chatchain.conversation import ConversationState
from chatchain.historystore import HistoryStoreClient, InMemoryKeyValueBackend
from chatchain.runtime import ConversationRuntime
from tests.helpers import ScriptedProvider, make_state


@pytest.fixture
def backend() -> InMemoryKeyValueBackend:
    return InMemoryKeyValueBackend()


@pytest.fixture
def store(backend: InMemoryKeyValueBackend) -> HistoryStoreClient:
    return HistoryStoreClient(backend)


@pytest.fixture
def state(backend: InMemoryKeyValueBackend) -> ConversationState:
    return make_state(backend)


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider(default="assistant reply")


@pytest.fixture
def runtime(state: ConversationState, provider: ScriptedProvider, tmp_path: Path) -> ConversationRuntime:
    return ConversationRuntime(state, provider, tmp_path / "chats" / "chat.json")


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure no ambient configuration leaks into tests."""
    for var in [
        "CHATCHAIN_API_KEY",
        "CHATCHAIN_API_KEY_FILE",
        "ANTHROPIC_API_KEY",
        "CHATCHAIN_DATA_DIR",
        "CHATCHAIN_KV_URL",
        "CHATCHAIN_MAX_TOKENS",
        "CHATCHAIN_LOG_LEVEL",
    ]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """configure_logging binds the current stderr; undo it so no test logs into a stale stream."""
    yield
    structlog.reset_defaults()
