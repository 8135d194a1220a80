"""Logging setup for the gatelock CLI.

Library modules log through `logging.getLogger(__name__)`, all of them
children of the `gatelock` logger configured here. Records go to stderr so
`--json` output on stdout stays parseable.
"""

import logging
from enum import IntEnum

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "gatelock"


class LogLevel(IntEnum):
    """Levels selectable from the command line."""

    QUIET = logging.WARNING
    NORMAL = logging.INFO
    VERBOSE = logging.DEBUG


def resolve_level(verbosity: int = 0, quiet: bool = False, debug: bool = False) -> int:
    """Map CLI flags to a log level; --quiet wins over --debug and -v."""
    if quiet:
        return LogLevel.QUIET
    if debug or verbosity >= 1:
        return LogLevel.VERBOSE
    return LogLevel.NORMAL


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    debug: bool = False,
) -> Console:
    """Attach a stderr RichHandler to the gatelock logger.

    Safe to call once per CLI invocation in the same process: an earlier
    RichHandler is replaced rather than stacked.

    Returns:
        The stderr console the handler writes to
    """
    detailed = debug or verbosity >= 2
    stderr = Console(stderr=True, no_color=no_color, highlight=False)
    handler = RichHandler(console=stderr, show_time=detailed, show_path=detailed)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(LOGGER_NAME)
    for old in [h for h in logger.handlers if isinstance(h, RichHandler)]:
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(resolve_level(verbosity=verbosity, quiet=quiet, debug=debug))
    return stderr
