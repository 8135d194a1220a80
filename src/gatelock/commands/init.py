"""Init command implementation."""

import typer

from ..config import write_config_template
from ..output import get_output_context
from ..paths import resolve_gateway_lock_path


def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
) -> None:
    """Write a gateway config template with the default lock policy."""
    ctx = get_output_context()
    lock_path, config_path = resolve_gateway_lock_path()

    if config_path.exists() and not force:
        ctx.result(
            {"config_path": str(config_path), "created": False},
            f"[yellow]Config already exists:[/yellow] {config_path}",
        )
        return

    try:
        write_config_template(config_path)
    except OSError as e:
        ctx.error(f"Cannot write config {config_path}: {e}")
        raise typer.Exit(1) from None

    ctx.result(
        {"config_path": str(config_path), "lock_path": str(lock_path), "created": True},
        f"[green]Created config template:[/green] {config_path}",
    )
    ctx.print(f"  Lock file: {lock_path}")
