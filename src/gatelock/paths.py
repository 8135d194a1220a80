"""Lock path resolution.

The lock file name embeds a short digest of the absolute gateway config
path, so the same config always maps to the same lock and different
configs map to different locks.
"""

import hashlib
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import NamedTuple

from .constants import (
    CONFIG_FILE_NAME,
    ENV_CONFIG_PATH,
    ENV_LOCK_DIR,
    ENV_STATE_DIR,
    LOCK_FILE_PREFIX,
    LOCK_HASH_LENGTH,
    STATE_DIR_NAME,
)


class GatewayLockPath(NamedTuple):
    """Resolved lock file location and the config it protects."""

    lock_path: Path
    config_path: Path


def _absolute(raw: str) -> Path:
    return Path(os.path.abspath(os.path.expanduser(raw)))


def resolve_state_dir(env: Mapping[str, str] | None = None) -> Path:
    """Get the gatelock state directory."""
    env = os.environ if env is None else env
    override = env.get(ENV_STATE_DIR, "").strip()
    if override:
        return _absolute(override)
    return Path.home() / STATE_DIR_NAME


def resolve_config_path(
    env: Mapping[str, str] | None = None, state_dir: Path | None = None
) -> Path:
    """Get the absolute path of the active gateway config file."""
    env = os.environ if env is None else env
    override = env.get(ENV_CONFIG_PATH, "").strip()
    if override:
        return _absolute(override)
    if state_dir is None:
        state_dir = resolve_state_dir(env)
    return _absolute(str(state_dir / CONFIG_FILE_NAME))


def resolve_lock_dir(env: Mapping[str, str] | None = None) -> Path:
    """Get the per-host, per-user directory holding gateway lock files."""
    env = os.environ if env is None else env
    override = env.get(ENV_LOCK_DIR, "").strip()
    if override:
        return _absolute(override)
    getuid = getattr(os, "getuid", None)
    name = f"gatelock-{getuid()}" if getuid is not None else "gatelock"
    return Path(tempfile.gettempdir()) / name


def config_digest(config_path: Path) -> str:
    """Short hex digest identifying a config path."""
    return hashlib.sha1(str(config_path).encode()).hexdigest()[:LOCK_HASH_LENGTH]


def resolve_gateway_lock_path(env: Mapping[str, str] | None = None) -> GatewayLockPath:
    """Resolve the lock file path for the active configuration.

    Args:
        env: Environment to read overrides from (defaults to os.environ)

    Returns:
        GatewayLockPath with the lock file path and the absolute config path
    """
    env = os.environ if env is None else env
    config_path = resolve_config_path(env, resolve_state_dir(env))
    lock_name = f"{LOCK_FILE_PREFIX}.{config_digest(config_path)}.lock"
    return GatewayLockPath(lock_path=resolve_lock_dir(env) / lock_name, config_path=config_path)
