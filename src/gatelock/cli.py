"""Gatelock CLI: single-instance gateway coordination."""

import typer
from rich.console import Console

from gatelock import __version__

from .commands import gateway_app, init
from .logging import configure_logging
from .output import OutputContext, set_output_context

app = typer.Typer(
    name="gatelock",
    help="Keep a single gateway instance running per configuration",
    no_args_is_help=True,
)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"gatelock {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_show_version, is_eager=True, help="Show version"
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Log lock decisions (-v), with sources (-vv)"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
    json_output: bool = typer.Option(
        False, "--json", help="Print one JSON document per command on stdout"
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Plain text output"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging with timestamps"),
) -> None:
    """Single-instance gateway coordination."""
    configure_logging(verbosity=verbose, quiet=quiet, no_color=no_color, debug=debug)
    set_output_context(
        OutputContext(console=Console(no_color=no_color), json_mode=json_output)
    )


app.command()(init)
app.add_typer(gateway_app, name="gateway")
