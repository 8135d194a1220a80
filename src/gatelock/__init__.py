"""Gatelock: single-instance gateway coordination."""

__version__ = "0.1.0"
