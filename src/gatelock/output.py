"""Human and JSON output for gatelock commands.

Every command reports through an OutputContext so `--json` switches the
whole CLI to one JSON document per invocation on stdout.
"""

import json
from dataclasses import dataclass
from typing import Any

from rich.console import Console
from rich.markup import escape


@dataclass
class OutputContext:
    """Where and how command results are written."""

    console: Console
    json_mode: bool = False

    def print(self, message: str, style: str | None = None) -> None:
        """Print a human-only line (dropped in JSON mode)."""
        if not self.json_mode:
            self.console.print(message, style=style)

    def field(self, label: str, value: object) -> None:
        """Print a `Label: value` line; value is not parsed as markup."""
        self.print(f"[bold]{label}:[/bold] {escape(str(value))}")

    def print_json(self, data: dict[str, Any]) -> None:
        if self.json_mode:
            print(json.dumps(data, indent=2, default=str))

    def result(self, data: dict[str, Any], message: str = "") -> None:
        """Emit a command result: data as JSON, or message as text."""
        if self.json_mode:
            self.print_json(data)
        elif message:
            self.console.print(message)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Emit an error; extra data is merged into the JSON document.

        The message is plain text, never parsed as markup.
        """
        if self.json_mode:
            self.print_json({"error": message, **(data or {})})
        else:
            self.console.print(f"[red]Error: {escape(message)}[/red]")


# Set by the cli.py callback for the current invocation
_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Current output context, or a plain console one outside the CLI."""
    return _ctx if _ctx is not None else OutputContext(Console())


def set_output_context(ctx: OutputContext | None) -> None:
    global _ctx
    _ctx = ctx
