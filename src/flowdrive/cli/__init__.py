"""Command-line interface for flowdrive.

Provides commands for running the admin server, checking credential status
and inspecting configuration.
"""

from .main import cli, main

__all__ = ["cli", "main"]
