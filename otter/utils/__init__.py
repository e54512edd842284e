"""
Utility functions for Otter.

Logging, retry logic and the exception hierarchy shared by every layer.
"""

from . import exceptions, logging, retry

__all__ = ["exceptions", "logging", "retry"]
