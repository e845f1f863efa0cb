# pyright: standard
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from chatchain.config import load_settings
from chatchain.exceptions import MalformedCompletionError, StoreUnavailableError, TurnError, TurnStage
from chatchain.historystore import (
    DirectoryKeyValueBackend,
    HttpKeyValueTransport,
    MetadataWriteError,
    load_metadata,
)
from chatchain.lib.atomic_io import atomic_write_bytes
from chatchain.llm.providers.anthropic import AnthropicProvider
from chatchain.runtime import ConversationRuntime
from tests.helpers import ScriptedProvider, make_state


def test_send_message_advances_and_persists_head(runtime: ConversationRuntime, tmp_path: Path) -> None:
    # GIVEN a runtime on an empty conversation
    # WHEN a message is sent
    turn = runtime.send_message("hello")

    # THEN the in-memory head and the metadata file both point at the reply
    assert runtime.state.head == turn.assistant.id
    assert load_metadata(tmp_path / "chats" / "chat.json").head == turn.assistant.id


def test_failed_turn_still_persists_user_head(runtime: ConversationRuntime, tmp_path: Path) -> None:
    # GIVEN a provider that fails the next completion
    assert isinstance(runtime.provider, ScriptedProvider)
    runtime.provider.replies.append(MalformedCompletionError("no text"))

    # WHEN a message is sent
    with pytest.raises(TurnError):
        _ = runtime.send_message("hello")

    # THEN the runtime adopted the partial state and persisted it
    history = runtime.history()
    assert [m.role for m in history] == ["user"]
    assert load_metadata(tmp_path / "chats" / "chat.json").head == history[0].id


def test_history_does_not_change_state(runtime: ConversationRuntime) -> None:
    _ = runtime.send_message("hello")
    before = runtime.state

    _ = runtime.history()

    assert runtime.state is before


def test_from_settings_restores_head_across_restarts(tmp_path: Path) -> None:
    # GIVEN settings backed by a local data directory
    settings = load_settings({}, api_key="k", data_dir=tmp_path / "data")
    first = ConversationRuntime.from_settings(settings)
    first.provider = ScriptedProvider(default="persisted reply")
    turn = first.send_message("hello")

    # WHEN a new runtime is built from the same settings
    second = ConversationRuntime.from_settings(settings)

    # THEN it resumes at the stored head with the full history
    assert second.state.head == turn.assistant.id
    assert [m.content for m in second.history()] == ["hello", "persisted reply"]
    assert isinstance(second.state.store.transport, DirectoryKeyValueBackend)
    assert isinstance(second.provider, AnthropicProvider)


def test_from_settings_uses_http_collaborator_when_configured(tmp_path: Path) -> None:
    settings = load_settings({}, api_key="k", data_dir=tmp_path, kv_url="http://kv.test/rpc")

    runtime = ConversationRuntime.from_settings(settings)

    assert isinstance(runtime.state.store.transport, HttpKeyValueTransport)
    assert runtime.state.head is None


def test_disk_failure_on_reply_keeps_head_on_user_message(tmp_path: Path, mocker: MockerFixture) -> None:
    # GIVEN a directory-backed runtime whose disk fills up after the first write
    writes: list[Path] = []

    def fill_disk_after_first_write(path: Path, data: bytes) -> None:
        writes.append(path)
        if len(writes) == 2:
            raise OSError(28, "No space left on device")
        atomic_write_bytes(path, data)

    _ = mocker.patch("chatchain.historystore.backends.atomic_write_bytes", side_effect=fill_disk_after_first_write)
    runtime = ConversationRuntime(
        make_state(DirectoryKeyValueBackend(tmp_path / "messages")),
        ScriptedProvider(default="reply"),
        tmp_path / "chats" / "chat.json",
    )

    # WHEN a turn is sent and the reply cannot be stored
    with pytest.raises(TurnError) as exc_info:
        _ = runtime.send_message("hello")

    # THEN the turn fails at the reply stage with the disk error as a store failure
    assert exc_info.value.stage is TurnStage.PERSIST_ASSISTANT
    assert isinstance(exc_info.value.cause, StoreUnavailableError)

    # AND the runtime head (in memory and on disk) stays on the stored user message
    user_id = exc_info.value.state.head
    assert user_id is not None
    assert runtime.state.head == user_id
    assert load_metadata(tmp_path / "chats" / "chat.json").head == user_id
    assert [(m.role, m.content) for m in runtime.history()] == [("user", "hello")]


def test_head_write_failure_after_failed_turn_keeps_turn_error(
    runtime: ConversationRuntime, mocker: MockerFixture
) -> None:
    # GIVEN a failing completion and an unwritable metadata file
    assert isinstance(runtime.provider, ScriptedProvider)
    runtime.provider.replies.append(MalformedCompletionError("no text"))
    _ = mocker.patch("chatchain.historystore.pointer.atomic_write_bytes", side_effect=OSError(30, "Read-only"))

    # WHEN a message is sent
    with pytest.raises(TurnError) as exc_info:
        _ = runtime.send_message("hello")

    # THEN the turn error is reported and the in-memory head still moved
    assert exc_info.value.stage is TurnStage.COMPLETION
    assert runtime.state.head == exc_info.value.state.head
    assert runtime.state.head is not None


def test_head_write_failure_after_completed_turn(runtime: ConversationRuntime, mocker: MockerFixture) -> None:
    _ = mocker.patch("chatchain.historystore.pointer.atomic_write_bytes", side_effect=OSError(30, "Read-only"))

    with pytest.raises(MetadataWriteError):
        _ = runtime.send_message("hello")

    assert [m.role for m in runtime.history()] == ["user", "assistant"]
