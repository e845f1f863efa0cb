"""Terminal rendering of the conversation."""

import sys
from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from chatchain.models import Message

ROLE_LABELS = {
    "user": "[blue]user[/blue]",
    "assistant": "[green]assistant[/green]",
}


def first_line(content: str) -> str:
    lines = content.strip().splitlines()
    return lines[0] if lines else ""


def render_history(console: Console, messages: Sequence[Message]) -> None:
    if not messages:
        console.print("Conversation is empty.")
        return

    table = Table(title="Conversation", show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("ID", no_wrap=True)
    table.add_column("Role")
    table.add_column("Message Snippet", overflow="ellipsis", min_width=20)

    for i, msg in enumerate(messages):
        table.add_row(
            (msg.id or "")[:10],
            ROLE_LABELS[msg.role],
            first_line(msg.content),
            end_section=(msg.role == "assistant" and i < len(messages) - 1),
        )
    console.print(table)

    if messages[-1].role == "user":
        console.print()
        console.print("[yellow]The last user message has no reply.[/yellow]")


def is_terminal() -> bool:
    """Checks if stdout is a TTY."""
    return sys.stdout.isatty()
