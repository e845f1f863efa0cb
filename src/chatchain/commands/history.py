from pathlib import Path

from rich.console import Console

from chatchain.console import render_history
from chatchain.runtime import open_runtime
from chatchain.server import HistoryResponse
from chatchain.serialization import to_json


def history(json_output: bool, data_dir: Path | None = None, kv_url: str | None = None) -> None:
    _, runtime = open_runtime(data_dir=data_dir, kv_url=kv_url)
    messages = runtime.history()

    if json_output:
        print(to_json(HistoryResponse(messages=messages)).decode("utf-8"))
        return

    render_history(Console(), messages)
