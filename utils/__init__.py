"""Shared utilities package for the vault client"""

from .log_setup import configure_logging

__all__ = [
    "configure_logging",
]
