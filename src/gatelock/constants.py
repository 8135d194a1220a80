"""Constants for gatelock."""

# Acquisition policy (seconds)
LOCK_TIMEOUT = 5.0
LOCK_POLL_INTERVAL = 0.1
LOCK_STALE_AFTER = 30.0

# Foreground stop policy (seconds)
STOP_GRACE_PERIOD = 3.0
STOP_POLL_INTERVAL = 0.1
STOP_KILL_SETTLE = 0.2

# Lock file naming
LOCK_FILE_PREFIX = "gateway"
LOCK_HASH_LENGTH = 8
CONFIG_FILE_NAME = "gateway.toml"
STATE_DIR_NAME = ".gatelock"

# Environment variables
ENV_STATE_DIR = "GATELOCK_STATE_DIR"
ENV_CONFIG_PATH = "GATELOCK_CONFIG_PATH"
ENV_LOCK_DIR = "GATELOCK_LOCK_DIR"
ENV_ALLOW_MULTI = "GATELOCK_ALLOW_MULTI_GATEWAY"
ENV_MODE = "GATELOCK_ENV"
ENV_PYTEST = "PYTEST_CURRENT_TEST"

# Recorded and observed owner start times (ms since epoch) may differ by
# wall clock adjustments between the two reads
START_TIME_TOLERANCE_MS = 1000

# Suffix of a lock file renamed aside while it is being reclaimed
TOMBSTONE_SUFFIX = ".stale"
