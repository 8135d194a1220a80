"""Liveness probing for gateway lock owners.

A pid in a lock file is only a belief. Before trusting it we check the
live process table, and where the platform allows it we also check that
the process behind the pid is still the one that wrote the lock:

- ByStartTime: compare the process creation time
- ByCommandLine: look for a gateway invocation in the process argv
- ExistenceOnly: the pid exists, nothing more is known

The strategy is picked once per process by select_evidence().
"""

import logging
import os
from functools import lru_cache

import psutil

from ..constants import START_TIME_TOLERANCE_MS
from ..models import LockPayload, OwnerStatus

logger = logging.getLogger(__name__)

GATEWAY_TOKEN = "gateway"
ENTRY_SUFFIXES = (
    "gatelock/__main__.py",
    "gatelock/cli.py",
    "bin/gatelock",
)
EXECUTABLE_NAME = "gatelock"


def is_pid_alive(pid: int) -> bool:
    """Check if a process with given PID exists.

    A zombie counts as dead: it has exited and only waits to be reaped.
    """
    if pid <= 0:
        return False
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # Exists, owned by another user
        return True


def read_start_time(pid: int) -> int | None:
    """Process creation time in milliseconds since the epoch.

    Returns None if the process is gone or its details are not readable.
    """
    try:
        return round(psutil.Process(pid).create_time() * 1000)
    except psutil.Error as e:
        logger.debug(f"Cannot read start time of pid {pid}: {e}")
        return None


def read_cmdline(pid: int) -> list[str] | None:
    """Read a process's argv, or None if it is gone or not readable."""
    try:
        args = psutil.Process(pid).cmdline()
    except psutil.Error as e:
        logger.debug(f"Cannot read command line of pid {pid}: {e}")
        return None
    return [arg.strip() for arg in args if arg.strip()]

def _normalize_arg(arg: str) -> str:
    return arg.replace("\\", "/").lower()


def is_gateway_argv(args: list[str]) -> bool:
    """Check whether argv looks like a gatelock gateway invocation."""
    normalized = [_normalize_arg(arg) for arg in args]
    if GATEWAY_TOKEN not in normalized:
        return False

    if any(arg.endswith(suffix) for arg in normalized for suffix in ENTRY_SUFFIXES):
        return True

    for flag, module in zip(normalized, normalized[1:], strict=False):
        if flag == "-m" and module == EXECUTABLE_NAME:
            return True

    exe = normalized[0] if normalized else ""
    return exe == EXECUTABLE_NAME or exe.endswith(f"/{EXECUTABLE_NAME}")


class LivenessEvidence:
    """Strategy deciding whether a lock owner is still the live holder."""

    name = "existence"
    # Whether an ALIVE verdict proves the pid is still the original holder
    confirms_identity = False

    def probe(self, pid: int, payload: LockPayload | None) -> OwnerStatus:
        """Compute the owner status for pid, given its lock payload."""
        if not is_pid_alive(pid):
            return OwnerStatus.DEAD
        return self._verify(pid, payload)

    def _verify(self, pid: int, payload: LockPayload | None) -> OwnerStatus:
        return OwnerStatus.ALIVE

    def own_start_time(self) -> int | None:
        """Start time to record for the current process, if any."""
        return None


class ExistenceOnly(LivenessEvidence):
    """Process existence is the only evidence available."""


class ByCommandLine(LivenessEvidence):
    """Verify the owner by matching its argv against a gateway invocation."""

    name = "cmdline"
    confirms_identity = True

    def _verify(self, pid: int, payload: LockPayload | None) -> OwnerStatus:
        args = read_cmdline(pid)
        if args is None:
            return OwnerStatus.UNKNOWN
        if is_gateway_argv(args):
            return OwnerStatus.ALIVE
        logger.debug(f"PID {pid} is not a gateway process: {' '.join(args)[:120]}")
        return OwnerStatus.DEAD


class ByStartTime(ByCommandLine):
    """Verify the owner by its creation time, falling back to argv.

    Locks written without a start time (older or foreign formats) are
    checked with the command line heuristic instead.
    """

    name = "start-time"

    def _verify(self, pid: int, payload: LockPayload | None) -> OwnerStatus:
        if payload is None or payload.start_time is None:
            return super()._verify(pid, payload)
        current = read_start_time(pid)
        if current is None:
            return OwnerStatus.UNKNOWN
        if abs(current - payload.start_time) > START_TIME_TOLERANCE_MS:
            logger.debug(
                f"PID {pid} started at {current}, lock records {payload.start_time} (pid reused)"
            )
            return OwnerStatus.DEAD
        return OwnerStatus.ALIVE

    def own_start_time(self) -> int | None:
        return read_start_time(os.getpid())


@lru_cache(maxsize=1)
def select_evidence() -> LivenessEvidence:
    """Pick the strongest liveness strategy psutil supports here."""
    if read_start_time(os.getpid()) is not None:
        evidence: LivenessEvidence = ByStartTime()
    else:
        evidence = ExistenceOnly()
    logger.debug(f"Using {evidence.name} liveness evidence")
    return evidence


def probe(pid: int, payload: LockPayload | None) -> OwnerStatus:
    """Probe a lock owner using the platform's default evidence."""
    return select_evidence().probe(pid, payload)
