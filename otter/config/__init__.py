"""
Configuration management for Otter.

Environment settings plus per-enterprise JSON configuration files.
"""

from .enterprise import EnterpriseConfig, SheetConfig, load_enterprise_config, resolve_enterprise
from .settings import Settings, get_settings

__all__ = [
    "EnterpriseConfig",
    "Settings",
    "SheetConfig",
    "get_settings",
    "load_enterprise_config",
    "resolve_enterprise",
]
