"""CLI package for the Pulse vault client

This package provides the command-line interface for logging in to a vault,
inspecting the session and managing upload destinations.
"""

from cli.main import main

__all__ = [
    "main",
]
