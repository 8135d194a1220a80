"""Core single-instance coordination logic for gatelock.

This package contains:
- liveness: Owner liveness probing and evidence strategies
- lock_manager: Exclusive lock acquisition, release and stale reclaim
- stopper: Foreground gateway stop with SIGTERM/SIGKILL escalation
"""

from .liveness import (
    ByCommandLine,
    ByStartTime,
    ExistenceOnly,
    LivenessEvidence,
    is_gateway_argv,
    is_pid_alive,
    probe,
    select_evidence,
)
from .lock_manager import (
    AcquireResult,
    Acquired,
    GatewayLockError,
    GatewayLockHandle,
    GatewayLockIOError,
    GatewayLockTimeoutError,
    IoFailure,
    LockDisabled,
    TimedOut,
    acquire_gateway_lock,
    read_lock_payload,
)
from .stopper import stop_foreground_gateway

__all__ = [
    "AcquireResult",
    "Acquired",
    "ByCommandLine",
    "ByStartTime",
    "ExistenceOnly",
    "GatewayLockError",
    "GatewayLockHandle",
    "GatewayLockIOError",
    "GatewayLockTimeoutError",
    "IoFailure",
    "LivenessEvidence",
    "LockDisabled",
    "TimedOut",
    "acquire_gateway_lock",
    "is_gateway_argv",
    "is_pid_alive",
    "probe",
    "read_lock_payload",
    "select_evidence",
    "stop_foreground_gateway",
]
