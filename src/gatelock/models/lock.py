"""Lock models for single-instance gateway coordination.

The lock file content is the JSON form of LockPayload, using camelCase
keys so locks written by other gateway builds stay readable.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LockPayload(BaseModel):
    """Ownership record written to the gateway lock file.

    Attributes:
        pid: Process ID of the lock holder.
        created_at: ISO-8601 timestamp of acquisition.
        config_path: Absolute path of the config this lock protects.
        start_time: Holder creation time (ms since epoch), when readable.
    """

    model_config = ConfigDict(populate_by_name=True, strict=True, frozen=True)

    pid: int = Field(description="Process ID holding the lock")
    created_at: str = Field(alias="createdAt", description="Acquisition time (ISO-8601)")
    config_path: str = Field(alias="configPath", description="Protected config path")
    start_time: int | None = Field(
        default=None, alias="startTime", description="Holder creation time (ms since epoch)"
    )

    def created_at_datetime(self) -> datetime | None:
        """Parse created_at, or None if it is not a valid ISO-8601 timestamp."""
        try:
            created = datetime.fromisoformat(self.created_at)
        except ValueError:
            return None
        if created.tzinfo is None:
            return created.astimezone()
        return created

    def to_json(self) -> str:
        """Serialize to the on-disk lock file format."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class OwnerStatus(str, Enum):
    """Liveness verdict for a lock owner, computed fresh on every check."""

    ALIVE = "alive"
    DEAD = "dead"
    UNKNOWN = "unknown"


class StopResult(str, Enum):
    """Outcome of a foreground stop request."""

    STOPPED = "stopped"
    NOT_RUNNING = "not-running"
    NO_LOCK = "no-lock"


class StopOutcome(BaseModel):
    """Result of a foreground stop with the recorded owner pid."""

    result: StopResult
    pid: int | None = None
