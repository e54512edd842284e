"""
Otter - registration, enrollment and certificate reports.

Pulls an enterprise's registrants and submissions sheets from Google Sheets,
caches them as JSON and summarizes them by date range and organization.
"""

from . import cli, clients, config, core, storage, utils

__version__ = "0.1.0"
__all__ = ["cli", "clients", "config", "core", "storage", "utils"]
