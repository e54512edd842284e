"""
Local storage for Otter.
"""

from .cache import CACHE_FILES, EnterpriseCache

__all__ = ["CACHE_FILES", "EnterpriseCache"]
