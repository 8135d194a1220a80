"""Foreground gateway stop.

Stops a gateway that runs in the foreground (no service manager) by
reading its lock file and signalling the recorded owner: SIGTERM first,
then SIGKILL once the grace period runs out.
"""

import logging
import os
import signal
import time
from collections.abc import Mapping
from pathlib import Path

from ..constants import STOP_GRACE_PERIOD, STOP_KILL_SETTLE, STOP_POLL_INTERVAL
from ..models import OwnerStatus, StopOutcome, StopResult
from ..paths import resolve_gateway_lock_path
from .liveness import LivenessEvidence, is_pid_alive, select_evidence
from .lock_manager import read_lock_payload

logger = logging.getLogger(__name__)

# Windows has no SIGKILL; TerminateProcess is what SIGTERM maps to there
FORCE_SIGNAL = getattr(signal, "SIGKILL", signal.SIGTERM)


def _remove_lock(lock_path: Path) -> None:
    lock_path.unlink(missing_ok=True)


def _wait_for_exit(pid: int, grace_period: float, poll_interval: float) -> bool:
    """Poll until pid exits or grace_period elapses. Returns True if it exited."""
    deadline = time.monotonic() + grace_period
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        time.sleep(min(poll_interval, remaining))
        if not is_pid_alive(pid):
            return True


def stop_foreground_gateway(
    env: Mapping[str, str] | None = None,
    grace_period: float = STOP_GRACE_PERIOD,
    poll_interval: float = STOP_POLL_INTERVAL,
    kill_settle: float = STOP_KILL_SETTLE,
    evidence: LivenessEvidence | None = None,
) -> StopOutcome:
    """Stop the gateway recorded in the active config's lock file.

    Args:
        env: Environment used for lock path resolution (defaults to os.environ)
        grace_period: Seconds to wait after SIGTERM before escalating to SIGKILL
        poll_interval: Seconds between liveness checks during the grace period
        kill_settle: Seconds to wait for SIGKILL to take effect
        evidence: Liveness strategy (defaults to the platform's strongest)

    Returns:
        StopOutcome: STOPPED if the owner was signalled, NOT_RUNNING if the
        lock's owner was already gone (lock removed), NO_LOCK if there is no
        readable lock
    """
    env = os.environ if env is None else env
    evidence = evidence or select_evidence()
    lock_path, _ = resolve_gateway_lock_path(env)

    payload = read_lock_payload(lock_path)
    if payload is None:
        return StopOutcome(result=StopResult.NO_LOCK)
    pid = payload.pid

    if evidence.probe(pid, payload) is OwnerStatus.DEAD:
        logger.info(f"Gateway pid {pid} is not running, removing stale lock")
        _remove_lock(lock_path)
        return StopOutcome(result=StopResult.NOT_RUNNING, pid=pid)

    logger.info(f"Sending SIGTERM to gateway pid {pid}")
    try:
        os.kill(pid, signal.SIGTERM)
    except OSError as e:
        # Exited between the check and the signal
        logger.debug(f"SIGTERM to pid {pid} failed: {e}")
        _remove_lock(lock_path)
        return StopOutcome(result=StopResult.NOT_RUNNING, pid=pid)

    if _wait_for_exit(pid, grace_period, poll_interval):
        logger.info(f"Gateway pid {pid} exited")
        _remove_lock(lock_path)
        return StopOutcome(result=StopResult.STOPPED, pid=pid)

    logger.warning(f"Gateway pid {pid} did not exit after {grace_period:g}s, sending SIGKILL")
    try:
        os.kill(pid, FORCE_SIGNAL)
    except OSError as e:
        logger.debug(f"SIGKILL to pid {pid} failed: {e}")
    time.sleep(kill_settle)
    _remove_lock(lock_path)
    return StopOutcome(result=StopResult.STOPPED, pid=pid)
