"""CLI command implementations for gatelock.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .gateway import gateway_app, gateway_run, gateway_status, gateway_stop
from .init import init

__all__ = [
    "gateway_app",
    "gateway_run",
    "gateway_status",
    "gateway_stop",
    "init",
]
