from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown

from chatchain.console import is_terminal
from chatchain.runtime import open_runtime


def send(content: str, data_dir: Path | None = None, kv_url: str | None = None) -> None:
    _, runtime = open_runtime(data_dir=data_dir, kv_url=kv_url)
    turn = runtime.send_message(content)

    if is_terminal():
        Console().print(Markdown(turn.assistant.content))
    else:
        print(turn.assistant.content)
