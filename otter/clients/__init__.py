"""
HTTP client modules for external APIs.

Functional approach to client implementations with async functions.
"""

from . import sheets

__all__ = ["sheets"]
