"""
CLI module for Otter.

Typer-based command-line interface with Rich output.
"""

from .main import app

__all__ = ["app"]
