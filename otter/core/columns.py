"""
Sheet column maps.

Maps logical column names to zero-based row indices (Google Sheets column
A is index 0). Enterprises may override individual indices per sheet.
"""

import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from ..utils.exceptions import ConfigurationError

DEFAULT_COLUMNS: Mapping[str, int] = MappingProxyType(
    {
        "DAYS_TO_CLOSE": 0,  # A
        "INVITED": 1,  # B
        "ENROLLED": 2,  # C
        "COHORT": 3,  # D
        "YEAR": 4,  # E
        "FIRST": 5,  # F
        "LAST": 6,  # G
        "EMAIL": 7,  # H
        "ROLE": 8,  # I
        "ORGANIZATION": 9,  # J
        "CERTIFICATE": 10,  # K
        "ISSUED": 11,  # L
        "CLOSING_DATE": 12,  # M
        "COMPLETED": 13,  # N
        "ID": 14,  # O
        "SUBMITTED": 15,  # P
        "STATUS": 16,  # Q
    }
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def is_row(value: Any) -> bool:
    return isinstance(value, list | tuple)


def normalize_column_name(name: str) -> str:
    """``DaysToClose``, ``days_to_close`` and ``DAYS_TO_CLOSE`` all name one column."""
    return _CAMEL_BOUNDARY.sub("_", name.strip()).replace(" ", "_").upper()


def _override_index(column: str, value: Any, config_key: str) -> int:
    # Enterprise configs write either a bare index or {"index": N, "type": ...}
    if isinstance(value, Mapping):
        value = value.get("index")
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ConfigurationError(
            f"Column index for '{column}' must be a non-negative integer",
            config_key=f"{config_key}.{column}",
            actual_value=str(value),
        )
    return value


def normalize_overrides(
    overrides: Mapping[str, Any] | None,
    known: Mapping[str, int] = DEFAULT_COLUMNS,
    config_key: str = "google_sheets.columns",
) -> dict[str, int]:
    """
    Validate column overrides into ``{LOGICAL_NAME: index}``.

    Names are matched case- and style-insensitively against ``known``;
    anything else raises :class:`ConfigurationError`.
    """
    normalized: dict[str, int] = {}
    for column, value in (overrides or {}).items():
        if not isinstance(column, str) or column.startswith("_"):
            continue
        name = normalize_column_name(column)
        if name not in known:
            raise ConfigurationError(
                f"Unknown column '{column}' in column overrides",
                config_key=f"{config_key}.{column}",
                actual_value=column,
                troubleshooting_hints=[
                    f"Valid columns: {', '.join(known)}",
                    "Check the spelling of the override in the enterprise .config file",
                ],
            )
        normalized[name] = _override_index(column, value, config_key)
    return normalized


class ColumnMap:
    """Logical-name access to the cells of a sheet row."""

    def __init__(self, indices: Mapping[str, int] | None = None, name: str = "sheet"):
        self._indices = dict(indices if indices is not None else DEFAULT_COLUMNS)
        self.name = name

    def __repr__(self) -> str:
        return f"ColumnMap({self.name!r})"

    def index(self, column: str) -> int:
        try:
            return self._indices[normalize_column_name(column)]
        except KeyError:
            raise ConfigurationError(
                f"Unknown column '{column}' for {self.name} sheet",
                config_key=f"google_sheets.{self.name}.columns",
                actual_value=column,
            ) from None

    def cell(self, row: Any, column: str) -> str:
        """Cell value for ``column``; ``""`` when the row is short or not a row."""
        if not is_row(row):
            return ""
        idx = self.index(column)
        if idx >= len(row) or row[idx] is None:
            return ""
        return str(row[idx])

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> "ColumnMap":
        """Return a copy with some indices replaced."""
        merged = dict(self._indices)
        merged.update(
            normalize_overrides(
                overrides, self._indices, f"google_sheets.{self.name}.columns"
            )
        )
        return ColumnMap(merged, self.name)

    def as_dict(self) -> dict[str, int]:
        return dict(self._indices)


REGISTRANTS_COLUMNS = ColumnMap(DEFAULT_COLUMNS, "registrants")
SUBMISSIONS_COLUMNS = ColumnMap(DEFAULT_COLUMNS, "submissions")
