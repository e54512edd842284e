"""
Core business logic functions for Otter.

Pure functional implementations of date handling, filtering, aggregation and
dashboard tables. Orchestration lives in :mod:`otter.core.refresh`, which is
imported explicitly since it depends on the HTTP clients.
"""

from . import columns, dashboard, dates, filters, mappers

__all__ = ["columns", "dashboard", "dates", "filters", "mappers"]
