"""Configuration management for gatelock.

Policy settings live in the gateway config file itself (the file whose
path identifies the lock). Tables gatelock does not know are ignored, so
the gateway can keep its own settings alongside.
"""

import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field

from .constants import (
    LOCK_POLL_INTERVAL,
    LOCK_STALE_AFTER,
    LOCK_TIMEOUT,
    STOP_GRACE_PERIOD,
    STOP_KILL_SETTLE,
    STOP_POLL_INTERVAL,
)


class LockSettings(BaseModel):
    """Acquisition policy (seconds)."""

    timeout: float = Field(default=LOCK_TIMEOUT, gt=0, description="Total wait for the lock")
    poll_interval: float = Field(default=LOCK_POLL_INTERVAL, gt=0)
    stale_after: float = Field(
        default=LOCK_STALE_AFTER,
        gt=0,
        description="Age after which an unverified owner's lock is reclaimed",
    )


class StopSettings(BaseModel):
    """Foreground stop policy (seconds)."""

    grace_period: float = Field(default=STOP_GRACE_PERIOD, gt=0)
    poll_interval: float = Field(default=STOP_POLL_INTERVAL, gt=0)
    kill_settle: float = Field(default=STOP_KILL_SETTLE, ge=0)


class GatewaySettings(BaseModel):
    """How `gatelock gateway run` starts the gateway."""

    command: list[str] = Field(default_factory=list, description="Default gateway command")


class GatelockConfig(BaseModel):
    """Root configuration for gatelock."""

    lock: LockSettings = Field(default_factory=LockSettings)
    stop: StopSettings = Field(default_factory=StopSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)


def load_config(config_path: Path) -> GatelockConfig:
    """Load gatelock settings from the gateway config file.

    Args:
        config_path: Path to the gateway TOML config

    Returns:
        Loaded configuration, or defaults if the file doesn't exist

    Raises:
        tomllib.TOMLDecodeError: If the file is not valid TOML
        pydantic.ValidationError: If a setting has an invalid value
    """
    if not config_path.exists():
        return GatelockConfig()
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    known = {key: data[key] for key in GatelockConfig.model_fields if key in data}
    return GatelockConfig.model_validate(known)


def write_config_template(config_path: Path) -> Path:
    """Write a default gateway config template.

    Args:
        config_path: Where to write the config

    Returns:
        Path to the written config file
    """
    template = {
        "lock": {
            "timeout": LOCK_TIMEOUT,
            "poll_interval": LOCK_POLL_INTERVAL,
            "stale_after": LOCK_STALE_AFTER,
        },
        "stop": {
            "grace_period": STOP_GRACE_PERIOD,
            "poll_interval": STOP_POLL_INTERVAL,
            "kill_settle": STOP_KILL_SETTLE,
        },
        # Command started by `gatelock gateway run` when none is given
        "gateway": {"command": []},
    }
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path
