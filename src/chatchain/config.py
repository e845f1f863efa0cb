"""
Settings are read from the environment (CHATCHAIN_*), with explicit overrides from the
command line taking precedence.

The completion credential comes from CHATCHAIN_API_KEY, ANTHROPIC_API_KEY, or the
trimmed contents of the file named by CHATCHAIN_API_KEY_FILE, in that order.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from chatchain.exceptions import ConfigurationError
from chatchain.historystore import DEFAULT_MAX_HISTORY_DEPTH
from chatchain.llm.providers.anthropic import DEFAULT_API_URL, DEFAULT_MAX_TOKENS, DEFAULT_MODEL

ENV_PREFIX = "CHATCHAIN_"

LogLevel = Literal["debug", "info", "warning", "error"]


class Settings(BaseModel):
    api_key: str = Field(..., min_length=1)
    data_dir: Path = Path(".chatchain")
    kv_url: str | None = None
    model: str = DEFAULT_MODEL
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    api_url: str = DEFAULT_API_URL
    timeout: float = Field(default=120.0, gt=0)
    max_history_depth: int = Field(default=DEFAULT_MAX_HISTORY_DEPTH, ge=1)
    static_dir: Path | None = None
    log_level: LogLevel = "info"
    log_json: bool = False

    @property
    def metadata_path(self) -> Path:
        return self.data_dir / "chats" / "chat.json"

    @property
    def messages_dir(self) -> Path:
        return self.data_dir / "messages"


def _read_api_key(environ: Mapping[str, str]) -> str:
    for var in (f"{ENV_PREFIX}API_KEY", "ANTHROPIC_API_KEY"):
        if val := environ.get(var, "").strip():
            return val

    if key_file := environ.get(f"{ENV_PREFIX}API_KEY_FILE"):
        try:
            val = Path(key_file).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ConfigurationError(f"Could not read API key file '{key_file}': {e}") from e
        if val:
            return val

    raise ConfigurationError(
        f"No completion credential configured. Set {ENV_PREFIX}API_KEY, ANTHROPIC_API_KEY "
        + f"or {ENV_PREFIX}API_KEY_FILE."
    )


def load_settings(environ: Mapping[str, str] | None = None, **overrides: object) -> Settings:
    """
    Build Settings from the environment. Overrides whose value is None are ignored so
    unset CLI options fall through to the environment.

    Raises:
        ConfigurationError: missing credential or invalid values.
    """
    env = os.environ if environ is None else environ

    raw: dict[str, object] = {}
    for field_name in Settings.model_fields:
        if field_name == "api_key":
            continue
        if (val := env.get(f"{ENV_PREFIX}{field_name.upper()}")) is not None:
            raw[field_name] = val
    raw.update({k: v for k, v in overrides.items() if v is not None})

    if "api_key" not in raw:
        raw["api_key"] = _read_api_key(env)

    try:
        return Settings.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
