from collections.abc import Sequence
from pathlib import Path
from sys import exit
from typing import Annotated, Any, final, override

import typer
from typer.core import TyperGroup

from chatchain.exceptions import ChatError


@final
class ErrorReportingGroup(TyperGroup):
    @override
    def main(  # pyright: ignore[reportAny]
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        windows_expand_args: bool = True,
        **extra: Any,  # pyright: ignore[reportAny, reportExplicitAny]
    ) -> Any:  # pyright: ignore[reportExplicitAny]
        try:
            return super().main(args, prog_name, complete_var, standalone_mode, windows_expand_args, **extra)  # pyright: ignore[reportAny]
        except ChatError as e:
            typer.secho(f"Error: {e.message}", err=True, fg=typer.colors.RED)
            exit(e.exit_code)


app = typer.Typer(cls=ErrorReportingGroup, no_args_is_help=True)

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", help="Directory for conversation metadata and local message storage."),
]
KvUrlOption = Annotated[
    str | None,
    typer.Option("--kv-url", help="URL of an external key/value collaborator. Defaults to local storage."),
]


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Host to bind the server to.")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Port to bind the server to.")] = 8000,
    static_dir: Annotated[
        Path | None,
        typer.Option("--static-dir", help="Directory of static files (index.html, chat.js, ...) served at /."),
    ] = None,
    data_dir: DataDirOption = None,
    kv_url: KvUrlOption = None,
) -> None:
    """
    Run the HTTP and WebSocket server.
    """
    from chatchain.commands import serve

    serve.serve(host, port, static_dir=static_dir, data_dir=data_dir, kv_url=kv_url)


@app.command("history")
def history(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the conversation as JSON."),
    ] = False,
    data_dir: DataDirOption = None,
    kv_url: KvUrlOption = None,
) -> None:
    """
    Display the conversation, oldest message first.
    """
    from chatchain.commands import history

    history.history(json_output, data_dir=data_dir, kv_url=kv_url)


@app.command("send")
def send(
    content: Annotated[str, typer.Argument(help="The user message to send.")],
    data_dir: DataDirOption = None,
    kv_url: KvUrlOption = None,
) -> None:
    """
    Append one user turn, wait for the reply and print it.
    """
    from chatchain.commands import send

    send.send(content, data_dir=data_dir, kv_url=kv_url)


if __name__ == "__main__":
    app()
