# pyright: standard
from pathlib import Path

from fastapi.testclient import TestClient
from pytest_mock import MockerFixture

from chatchain.config import load_settings
from chatchain.exceptions import StoreUnavailableError
from chatchain.runtime import ConversationRuntime
from chatchain.server import create_app


def test_messages_endpoint_on_empty_conversation(runtime: ConversationRuntime) -> None:
    client = TestClient(create_app(runtime))

    r = client.get("/api/messages")

    assert r.status_code == 200
    assert r.json() == {"status": "success", "messages": []}


def test_messages_endpoint_returns_history(runtime: ConversationRuntime) -> None:
    # GIVEN a conversation with one completed turn
    turn = runtime.send_message("hello")
    client = TestClient(create_app(runtime))

    # WHEN the history is requested
    r = client.get("/api/messages")

    # THEN both messages come back oldest-first with ids and parents
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "success"
    assert body["messages"] == [
        {"role": "user", "content": "hello", "parent": None, "id": turn.user.id},
        {"role": "assistant", "content": "assistant reply", "parent": turn.user.id, "id": turn.assistant.id},
    ]


def test_messages_endpoint_failure_is_500(runtime: ConversationRuntime, mocker: MockerFixture) -> None:
    _ = runtime.send_message("hello")
    _ = mocker.patch.object(runtime.state.store, "get", side_effect=StoreUnavailableError("down"))
    client = TestClient(create_app(runtime))

    r = client.get("/api/messages")

    assert r.status_code == 500
    assert r.text == "Failed to load messages"


def test_websocket_send_and_get(runtime: ConversationRuntime) -> None:
    client = TestClient(create_app(runtime))

    with client.websocket_connect("/ws") as ws:
        # WHEN sending a message
        ws.send_text('{"type": "send_message", "content": "hello"}')
        update = ws.receive_json()

        # THEN the turn comes back as one message_update frame
        assert update["type"] == "message_update"
        assert [m["role"] for m in update["messages"]] == ["user", "assistant"]

        # WHEN an unknown frame is followed by a history request
        ws.send_text('{"type": "nonsense"}')
        ws.send_text('{"type": "get_messages"}')
        history = ws.receive_json()

        # THEN the unknown frame was skipped and the history frame is the next reply
        assert history["type"] == "message_update"
        assert [m["content"] for m in history["messages"]] == ["hello", "assistant reply"]

def test_websocket_ignores_binary_frames(runtime: ConversationRuntime) -> None:
    client = TestClient(create_app(runtime))

    with client.websocket_connect("/ws") as ws:
        # WHEN a binary frame arrives before a history request
        ws.send_bytes(b'{"type": "get_messages"}')
        ws.send_text('{"type": "get_messages"}')

        # THEN the binary frame is skipped and the session keeps answering
        reply = ws.receive_json()
        assert reply == {"type": "message_update", "messages": []}



def test_health_reports_head(runtime: ConversationRuntime) -> None:
    turn = runtime.send_message("hello")
    client = TestClient(create_app(runtime))

    r = client.get("/health")

    assert r.status_code == 200
    assert r.json()["head"] == turn.assistant.id


def test_static_dir_is_served(runtime: ConversationRuntime, tmp_path: Path) -> None:
    # GIVEN a static directory with an index page
    static = tmp_path / "static"
    static.mkdir()
    _ = (static / "index.html").write_text("<h1>chat</h1>", encoding="utf-8")
    settings = load_settings({}, api_key="k", static_dir=static)
    client = TestClient(create_app(runtime, settings))

    # WHEN requesting the root
    r = client.get("/")

    # THEN the page is served and the API keeps working
    assert r.status_code == 200
    assert "<h1>chat</h1>" in r.text
    assert client.get("/api/messages").status_code == 200
