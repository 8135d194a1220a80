"""Lock manager for single-instance gateway coordination.

Provides PID-based file locking so at most one gateway runs per config.
Uses atomic file creation (O_CREAT | O_EXCL) as the only synchronization
primitive. On contention the recorded owner is re-verified against the
live process table; dead or stale owners are reclaimed, live ones are
waited on until the timeout.
"""

import contextlib
import logging
import os
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from ..constants import (
    ENV_ALLOW_MULTI,
    ENV_MODE,
    ENV_PYTEST,
    LOCK_POLL_INTERVAL,
    LOCK_STALE_AFTER,
    LOCK_TIMEOUT,
    TOMBSTONE_SUFFIX,
)
from ..models import LockPayload, OwnerStatus
from ..paths import resolve_gateway_lock_path
from .liveness import LivenessEvidence, select_evidence

logger = logging.getLogger(__name__)


class GatewayLockError(Exception):
    """Error acquiring or managing the gateway lock."""


class GatewayLockTimeoutError(GatewayLockError):
    """Another gateway instance held the lock for the whole timeout."""

    def __init__(self, owner_pid: int | None, timeout: float) -> None:
        self.owner_pid = owner_pid
        self.timeout = timeout
        owner = f" (pid {owner_pid})" if owner_pid else ""
        super().__init__(f"gateway already running{owner}; lock timeout after {timeout:g}s")


class GatewayLockIOError(GatewayLockError):
    """Filesystem failure unrelated to lock contention."""

    def __init__(self, lock_path: Path, cause: OSError) -> None:
        self.lock_path = lock_path
        self.cause = cause
        super().__init__(f"failed to acquire gateway lock at {lock_path}: {cause}")


@dataclass
class GatewayLockHandle:
    """Held gateway lock. Only the acquiring process ever has one."""

    lock_path: Path
    config_path: Path
    _fd: int | None = field(default=None, repr=False)

    @property
    def released(self) -> bool:
        return self._fd is None

    def _owns_lock_file(self, fd: int) -> bool:
        """Check the lock path still names the file this handle created.

        The open descriptor pins our inode, so a lock file created by
        another process after a reclaim can never compare equal.
        """
        try:
            return os.path.samestat(os.fstat(fd), os.stat(self.lock_path))
        except FileNotFoundError:
            return False

    def release(self) -> None:
        """Close the lock descriptor and remove the lock file. Idempotent.

        A lock file that another process has since reclaimed and recreated
        is left in place.
        """
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            owned = self._owns_lock_file(fd)
        except OSError as e:
            logger.debug(f"Cannot compare gateway lock {self.lock_path}: {e}")
            owned = False
        with contextlib.suppress(OSError):
            os.close(fd)
        if not owned:
            logger.warning(f"Gateway lock {self.lock_path} was removed or replaced, leaving it")
            return
        with contextlib.suppress(OSError):
            self.lock_path.unlink(missing_ok=True)
        logger.debug(f"Released gateway lock {self.lock_path}")

    def __enter__(self) -> "GatewayLockHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


@dataclass(frozen=True)
class Acquired:
    """The lock was created by this process."""

    handle: GatewayLockHandle
    ok = True

    def unwrap(self) -> GatewayLockHandle:
        return self.handle


@dataclass(frozen=True)
class LockDisabled:
    """Locking is turned off for this environment; no lock is held."""

    ok = True

    def unwrap(self) -> None:
        return None


@dataclass(frozen=True)
class TimedOut:
    """The lock stayed held by another owner until the deadline."""

    lock_path: Path
    timeout: float
    owner_pid: int | None = None
    ok = False

    def unwrap(self) -> GatewayLockHandle:
        raise GatewayLockTimeoutError(self.owner_pid, self.timeout)


@dataclass(frozen=True)
class IoFailure:
    """The lock file could not be created or reclaimed."""

    lock_path: Path
    cause: OSError
    ok = False

    def unwrap(self) -> GatewayLockHandle:
        raise GatewayLockIOError(self.lock_path, self.cause) from self.cause


AcquireResult = Acquired | LockDisabled | TimedOut | IoFailure


def is_locking_disabled(env: Mapping[str, str], allow_in_tests: bool = False) -> bool:
    """Check whether the environment opts out of gateway locking."""
    if env.get(ENV_ALLOW_MULTI) == "1":
        return True
    if allow_in_tests:
        return False
    return bool(env.get(ENV_PYTEST)) or env.get(ENV_MODE) == "test"


def read_lock_payload(lock_path: Path) -> LockPayload | None:
    """Read the lock payload at lock_path.

    Returns:
        LockPayload if the file holds a valid payload, None if it is absent,
        unreadable, truncated or missing required fields
    """
    try:
        content = lock_path.read_text(encoding="utf-8")
    except OSError:
        return None
    try:
        return LockPayload.model_validate_json(content)
    except ValidationError:
        # Corrupted or mid-write - weak evidence only
        return None


def is_stale_lock(lock_path: Path, payload: LockPayload | None, stale_after: float) -> bool:
    """Check if a lock is older than stale_after seconds.

    Age comes from the payload's createdAt when it parses, otherwise from
    the lock file's mtime. A lock file that has vanished is stale.
    """
    created = payload.created_at_datetime() if payload else None
    if created is not None:
        age = (datetime.now(UTC) - created).total_seconds()
        return age > stale_after
    try:
        mtime = lock_path.stat().st_mtime
    except FileNotFoundError:
        return True
    return time.time() - mtime > stale_after


def _may_reclaim_by_age(status: OwnerStatus, evidence: LivenessEvidence) -> bool:
    if status is OwnerStatus.UNKNOWN:
        return True
    # A confirmed live gateway is never reclaimed on age alone
    return status is OwnerStatus.ALIVE and not evidence.confirms_identity


def _reclaim(lock_path: Path, judged: LockPayload | None) -> None:
    """Remove a stale lock, provided it is still the one that was judged.

    The lock is first renamed to a unique tombstone, so only one reclaimer
    can take a given lock file. A lock that turns out to have been replaced
    since it was judged is linked back into place.
    """
    tombstone = lock_path.with_name(f"{lock_path.name}.{uuid.uuid4().hex[:12]}{TOMBSTONE_SUFFIX}")
    try:
        os.rename(lock_path, tombstone)
    except FileNotFoundError:
        logger.debug(f"Gateway lock {lock_path} already reclaimed")
        return
    try:
        if read_lock_payload(tombstone) == judged:
            return
        logger.debug(f"Gateway lock {lock_path} changed before reclaim, restoring it")
        with contextlib.suppress(FileExistsError):
            os.link(tombstone, lock_path)
    finally:
        tombstone.unlink(missing_ok=True)


def _try_exclusive_create(
    lock_path: Path, config_path: Path, evidence: LivenessEvidence
) -> GatewayLockHandle | None:
    """Attempt atomic lock file creation.

    Returns:
        GatewayLockHandle if the lock was created, None if the file already exists

    Raises:
        OSError: For any failure other than the file already existing
    """
    try:
        fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        return None

    payload = LockPayload(
        pid=os.getpid(),
        created_at=datetime.now(UTC).isoformat(),
        config_path=str(config_path),
        start_time=evidence.own_start_time(),
    )
    handle = GatewayLockHandle(lock_path=lock_path, config_path=config_path, _fd=fd)
    try:
        os.write(fd, payload.to_json().encode("utf-8"))
        os.fsync(fd)
    except OSError:
        handle.release()
        raise
    return handle


def acquire_gateway_lock(
    env: Mapping[str, str] | None = None,
    timeout: float = LOCK_TIMEOUT,
    poll_interval: float = LOCK_POLL_INTERVAL,
    stale_after: float = LOCK_STALE_AFTER,
    allow_in_tests: bool = False,
    evidence: LivenessEvidence | None = None,
) -> AcquireResult:
    """Acquire the single-instance lock for the active gateway config.

    Args:
        env: Environment used for path resolution and opt-outs (defaults to os.environ)
        timeout: Total seconds to keep trying while another owner holds the lock
        poll_interval: Seconds to sleep between attempts while the owner looks alive
        stale_after: Age in seconds after which an unverified owner is reclaimed
        allow_in_tests: Lock even when a test runner is detected
        evidence: Liveness strategy (defaults to the platform's strongest)

    Returns:
        Acquired with a handle, LockDisabled if the environment opts out,
        TimedOut with the last seen owner pid, or IoFailure for filesystem errors
    """
    env = os.environ if env is None else env
    if is_locking_disabled(env, allow_in_tests):
        logger.debug("Gateway locking disabled by environment")
        return LockDisabled()

    evidence = evidence or select_evidence()
    lock_path, config_path = resolve_gateway_lock_path(env)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return IoFailure(lock_path=lock_path, cause=e)

    deadline = time.monotonic() + timeout
    owner_pid: int | None = None

    while True:
        try:
            handle = _try_exclusive_create(lock_path, config_path, evidence)
        except OSError as e:
            logger.error(f"Cannot create gateway lock {lock_path}: {e}")
            return IoFailure(lock_path=lock_path, cause=e)
        if handle is not None:
            logger.info(f"Acquired gateway lock {lock_path}")
            return Acquired(handle=handle)

        payload = read_lock_payload(lock_path)
        if payload is not None:
            owner_pid = payload.pid
            status = evidence.probe(payload.pid, payload)
        else:
            status = OwnerStatus.UNKNOWN

        reclaim = status is OwnerStatus.DEAD
        if not reclaim and _may_reclaim_by_age(status, evidence):
            reclaim = is_stale_lock(lock_path, payload, stale_after)

        if reclaim:
            logger.info(
                f"Reclaiming gateway lock {lock_path} (owner pid {owner_pid}, {status.value})"
            )
            try:
                _reclaim(lock_path, payload)
            except OSError as e:
                return IoFailure(lock_path=lock_path, cause=e)
            continue

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug(f"Gateway lock {lock_path} still held by pid {owner_pid}")
            return TimedOut(lock_path=lock_path, timeout=timeout, owner_pid=owner_pid)
        logger.debug(f"Gateway lock held by pid {owner_pid} ({status.value}), waiting")
        time.sleep(min(poll_interval, remaining))
