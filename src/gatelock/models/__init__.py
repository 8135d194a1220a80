"""Pydantic data models for gatelock.

This package defines:
- The on-disk lock record (LockPayload)
- Owner liveness verdicts (OwnerStatus)
- Foreground stop results (StopResult, StopOutcome)

Example:
    >>> from gatelock.models import LockPayload
    >>> LockPayload(pid=100, created_at="2024-01-01T00:00:00+00:00", config_path="/cfg").to_json()
    '{"pid":100,"createdAt":"2024-01-01T00:00:00+00:00","configPath":"/cfg"}'
"""

from .lock import LockPayload, OwnerStatus, StopOutcome, StopResult

__all__ = [
    "LockPayload",
    "OwnerStatus",
    "StopOutcome",
    "StopResult",
]
