"""Gateway command implementations: run, stop, status."""

import logging
import signal
import subprocess
import threading
import tomllib
from types import FrameType

import typer
from pydantic import ValidationError
from rich.markup import escape

from ..config import GatelockConfig, load_config
from ..core import (
    Acquired,
    GatewayLockHandle,
    IoFailure,
    LockDisabled,
    TimedOut,
    acquire_gateway_lock,
    probe,
    read_lock_payload,
    stop_foreground_gateway,
)
from ..models import StopResult
from ..output import OutputContext, get_output_context
from ..paths import resolve_gateway_lock_path

logger = logging.getLogger(__name__)

# Seconds between checks while idling without a child process
IDLE_POLL_INTERVAL = 0.5
FORWARDED_SIGNALS = (signal.SIGTERM, signal.SIGINT)

gateway_app = typer.Typer(
    help="Single-instance gateway commands",
    no_args_is_help=True,
)


def _load_settings(ctx: OutputContext) -> GatelockConfig:
    _, config_path = resolve_gateway_lock_path()
    try:
        return load_config(config_path)
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        ctx.error(f"Invalid config {config_path}: {e}")
        raise typer.Exit(1) from None


def _acquire_or_exit(
    ctx: OutputContext, timeout: float, poll_interval: float, stale_after: float
) -> GatewayLockHandle | None:
    result = acquire_gateway_lock(
        timeout=timeout, poll_interval=poll_interval, stale_after=stale_after
    )
    match result:
        case Acquired(handle=handle):
            ctx.result(
                {"acquired": True, "lock_path": str(handle.lock_path)},
                f"[green]Acquired gateway lock[/green] {escape(str(handle.lock_path))}",
            )
            return handle
        case LockDisabled():
            ctx.result(
                {"acquired": False, "disabled": True},
                "[yellow]Gateway locking disabled; running without a lock[/yellow]",
            )
            return None
        case TimedOut(owner_pid=owner_pid):
            owner = f" (pid {owner_pid})" if owner_pid else ""
            ctx.error(
                f"Gateway already running{owner}; lock timeout after {timeout:g}s",
                data={"pid": owner_pid, "lock_path": str(result.lock_path)},
            )
            if owner_pid:
                ctx.print(f"  Stop it with: gatelock gateway stop (pid {owner_pid})")
            raise typer.Exit(2)
        case IoFailure(lock_path=lock_path, cause=cause):
            ctx.error(
                f"Failed to acquire gateway lock at {lock_path}: {cause}",
                data={"lock_path": str(lock_path)},
            )
            raise typer.Exit(1)


def _supervise(command: list[str] | None) -> int:
    """Run the gateway command (or idle) until it exits or is signalled."""
    stop_requested = threading.Event()
    child: subprocess.Popen[bytes] | None = None

    def _handle_signal(signum: int, frame: FrameType | None) -> None:
        repeated = stop_requested.is_set()
        logger.info(f"Received signal {signum}, shutting down gateway")
        stop_requested.set()
        if child is None or child.poll() is not None:
            return
        if repeated:
            logger.warning(f"Second signal, killing gateway pid {child.pid}")
            child.kill()
        else:
            child.send_signal(signum)

    original_handlers = {sig: signal.signal(sig, _handle_signal) for sig in FORWARDED_SIGNALS}
    try:
        if not command:
            logger.info("Holding gateway lock until SIGTERM/SIGINT")
            while not stop_requested.wait(IDLE_POLL_INTERVAL):
                pass
            return 0

        logger.debug(f"Starting gateway command: {' '.join(command)}")
        child = subprocess.Popen(command)
        code = child.wait()
        # Killed by a signal: report it the way a shell does
        return 128 - code if code < 0 else code
    finally:
        for sig, handler in original_handlers.items():
            signal.signal(sig, handler)


@gateway_app.command(
    "run",
    context_settings={"ignore_unknown_options": True},
)
def gateway_run(
    command: list[str] | None = typer.Argument(
        None,
        help="Gateway command to run while holding the lock (after --)",
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for a running gateway"
    ),
    poll_interval: float | None = typer.Option(
        None, "--poll-interval", help="Seconds between lock attempts"
    ),
    stale_after: float | None = typer.Option(
        None, "--stale-after", help="Age in seconds after which an unverified lock is reclaimed"
    ),
) -> None:
    """Hold the single-instance gateway lock while running the gateway."""
    ctx = get_output_context()
    config = _load_settings(ctx)
    command = command or config.gateway.command

    handle = _acquire_or_exit(
        ctx,
        timeout=timeout if timeout is not None else config.lock.timeout,
        poll_interval=poll_interval if poll_interval is not None else config.lock.poll_interval,
        stale_after=stale_after if stale_after is not None else config.lock.stale_after,
    )
    try:
        code = _supervise(command)
    except OSError as e:
        ctx.error(f"Failed to start gateway command: {e}")
        raise typer.Exit(1) from None
    finally:
        if handle is not None:
            handle.release()

    if code != 0:
        raise typer.Exit(code)


@gateway_app.command("stop")
def gateway_stop(
    grace_period: float | None = typer.Option(
        None, "--grace-period", "-g", help="Seconds to wait after SIGTERM before SIGKILL"
    ),
) -> None:
    """Stop a foreground gateway using its lock file."""
    ctx = get_output_context()
    config = _load_settings(ctx)

    outcome = stop_foreground_gateway(
        grace_period=grace_period if grace_period is not None else config.stop.grace_period,
        poll_interval=config.stop.poll_interval,
        kill_settle=config.stop.kill_settle,
    )
    messages = {
        StopResult.STOPPED: f"[green]Gateway stopped[/green] (pid {outcome.pid})",
        StopResult.NOT_RUNNING: (
            f"[yellow]Gateway not running[/yellow] (stale lock for pid {outcome.pid} removed)"
        ),
        StopResult.NO_LOCK: "[yellow]No gateway lock found[/yellow]",
    }
    ctx.result(outcome.model_dump(mode="json"), messages[outcome.result])


@gateway_app.command("status")
def gateway_status() -> None:
    """Show the gateway lock and whether its owner is alive."""
    ctx = get_output_context()
    lock_path, config_path = resolve_gateway_lock_path()
    data: dict[str, object] = {"lock_path": str(lock_path), "config_path": str(config_path)}

    payload = read_lock_payload(lock_path)
    status = probe(payload.pid, payload) if payload is not None else None
    if payload is None:
        data.update(locked=False, unreadable=lock_path.exists())
    else:
        data.update(locked=True, owner_status=status.value, **payload.model_dump(by_alias=True))
    if ctx.json_mode:
        ctx.print_json(data)
        return

    ctx.field("Config", config_path)
    ctx.field("Lock", lock_path)
    if payload is None:
        if data["unreadable"]:
            ctx.print("[yellow]Status: lock file present but unreadable[/yellow]")
        else:
            ctx.print("Status: no gateway lock")
        return

    ctx.field("PID", payload.pid)
    ctx.field("Created", payload.created_at)
    if payload.start_time is not None:
        ctx.field("Start time", payload.start_time)
    style = {"alive": "green", "dead": "red"}.get(status.value, "yellow")
    ctx.print(f"[{style}]Owner: {status.value}[/{style}]")
