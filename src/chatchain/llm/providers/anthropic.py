from collections.abc import Sequence
from typing import Any, override

import httpx
import msgspec
import structlog

from chatchain.exceptions import CompletionTransportError, MalformedCompletionError
from chatchain.llm.providers.base import CompletionProvider, to_completion_turns
from chatchain.models import Message

DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_MAX_TOKENS = 1024
API_VERSION = "2023-06-01"
DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=120.0, write=30.0, pool=10.0)

logger = structlog.get_logger("chatchain.llm")


def extract_reply_text(body: Any) -> str:  # pyright: ignore[reportExplicitAny, reportAny]
    """Reads `content[0].text` from a Messages API reply body."""
    match body:
        case {"content": [{"text": str(text)}, *_]}:
            return text
        case _:
            raise MalformedCompletionError("Completion reply has no text in its first content block.")


class AnthropicProvider(CompletionProvider):
    """
    One synchronous Messages API call per turn: fixed model, token limit and
    versioned protocol header; the reply is the first content block's text.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        api_version: str = API_VERSION,
        client: httpx.Client | None = None,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_url = api_url
        self.model = model
        self.max_tokens = max_tokens
        self.api_version = api_version
        self._client = client or httpx.Client(timeout=timeout)

    def build_request_body(self, history: Sequence[Message]) -> dict[str, object]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": to_completion_turns(history),
        }

    @override
    def complete(self, history: Sequence[Message], credential: str) -> str:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": credential,
            "anthropic-version": self.api_version,
        }
        logger.info("completion_requested", model=self.model, turns=len(history))

        try:
            response = self._client.post(
                self.api_url,
                content=msgspec.json.encode(self.build_request_body(history)),
                headers=headers,
            )
            _ = response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CompletionTransportError(
                f"Completion endpoint answered with HTTP {e.response.status_code}."
            ) from e
        except httpx.HTTPError as e:
            raise CompletionTransportError(f"Completion request failed: {e}") from e

        try:
            body = msgspec.json.decode(response.content)  # pyright: ignore[reportAny]
        except msgspec.DecodeError as e:
            raise MalformedCompletionError(f"Completion reply is not JSON: {e}") from e

        text = extract_reply_text(body)
        logger.info("completion_received", model=self.model, chars=len(text))
        return text

    def close(self) -> None:
        self._client.close()
