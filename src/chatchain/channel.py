"""
Session channel frames.

Inbound text frames are decoded once into a closed set of commands; everything the
orchestrator sees past this point is typed.
"""

from contextlib import suppress

import msgspec
import structlog
from msgspec import Struct

from chatchain.exceptions import StoreError, TurnError
from chatchain.historystore import MetadataWriteError
from chatchain.models import Message
from chatchain.runtime import ConversationRuntime
from chatchain.serialization import from_json, to_json

logger = structlog.get_logger("chatchain.channel")


class SendMessage(Struct, frozen=True, tag="send_message", tag_field="type"):
    content: str


class GetMessages(Struct, frozen=True, tag="get_messages", tag_field="type"):
    pass


class UnknownCommand(Struct, frozen=True):
    type: str | None = None
    reason: str | None = None


type Command = SendMessage | GetMessages | UnknownCommand


class _FrameType(Struct):
    type: str | None = None


class MessageUpdate(Struct, frozen=True, tag="message_update", tag_field="type"):
    messages: list[Message]


class ErrorFrame(Struct, frozen=True, tag="error", tag_field="type"):
    error: str
    detail: str


def decode_command(text: str | bytes) -> Command:
    try:
        return from_json(SendMessage | GetMessages, text)  # pyright: ignore[reportArgumentType]
    except msgspec.MsgspecError as e:
        frame_type: str | None = None
        with suppress(msgspec.MsgspecError):
            frame_type = from_json(_FrameType, text).type
        return UnknownCommand(type=frame_type, reason=str(e))


def encode_frame(frame: MessageUpdate | ErrorFrame) -> str:
    return to_json(frame).decode("utf-8")


def dispatch(runtime: ConversationRuntime, command: Command) -> MessageUpdate | ErrorFrame | None:
    """
    Runs a decoded command against the runtime. Returns the frame to send back, or
    None when nothing should be sent.
    """
    match command:
        case SendMessage(content=content):
            try:
                turn = runtime.send_message(content)
            except TurnError as e:
                return ErrorFrame(error=e.stage.value, detail=e.cause.message)
            except MetadataWriteError as e:
                logger.error("head_persist_failed", error=e.message)
                return ErrorFrame(error="persist_head", detail=e.message)
            return MessageUpdate(messages=[turn.user, turn.assistant])
        case GetMessages():
            try:
                messages = runtime.history()
            except StoreError as e:
                logger.warning("history_failed", error=e.message)
                return ErrorFrame(error="get_history", detail=e.message)
            return MessageUpdate(messages=messages)
        case UnknownCommand(type=frame_type, reason=reason):
            logger.info("unknown_command_ignored", type=frame_type, reason=reason)
            return None


def handle_frame(runtime: ConversationRuntime, text: str | bytes) -> str | None:
    frame = dispatch(runtime, decode_command(text))
    return encode_frame(frame) if frame is not None else None
