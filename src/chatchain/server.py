"""FastAPI application exposing the conversation over HTTP (read-only) and WebSocket."""

from __future__ import annotations

from contextlib import suppress
from typing import Any

import structlog
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from msgspec import Struct
from starlette.concurrency import run_in_threadpool

from chatchain.channel import handle_frame
from chatchain.config import Settings
from chatchain.exceptions import StoreError
from chatchain.models import Message
from chatchain.runtime import ConversationRuntime
from chatchain.serialization import to_json

logger = structlog.get_logger("chatchain.server")


class HistoryResponse(Struct, kw_only=True):
    status: str = "success"
    messages: list[Message]


def create_app(runtime: ConversationRuntime, settings: Settings | None = None) -> FastAPI:
    app = FastAPI(title="chatchain", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        state = runtime.state
        return {"ok": True, "head": state.head, "version": state.version}

    @app.get("/api/messages")
    def messages() -> Response:
        try:
            history = runtime.history()
        except StoreError as e:
            logger.error("history_request_failed", error=e.message)
            return PlainTextResponse("Failed to load messages", status_code=500)
        return Response(to_json(HistoryResponse(messages=history)), media_type="application/json")

    @app.websocket("/ws")
    async def session(websocket: WebSocket) -> None:
        await websocket.accept()
        logger.info("session_opened", client=str(websocket.client))
        with suppress(WebSocketDisconnect):
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    logger.info("non_text_frame_ignored", client=str(websocket.client))
                    continue
                reply = await run_in_threadpool(handle_frame, runtime, text)
                if reply is not None:
                    await websocket.send_text(reply)
        logger.info("session_closed", client=str(websocket.client))

    # Mounted last so the API routes above take precedence
    if settings is not None and settings.static_dir is not None:
        if settings.static_dir.is_dir():
            app.mount("/", StaticFiles(directory=str(settings.static_dir), html=True), name="static")
        else:
            logger.warning("static_dir_missing", path=str(settings.static_dir))

    return app
