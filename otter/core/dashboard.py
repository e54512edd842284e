"""
Per-organization dashboard tables.

Dashboards always cover the full cached history (no date filtering) of one
organization's registrants. The all-organizations overview only counts rows
with activity between the enterprise start date and today.
"""

from collections.abc import Iterable
from typing import Any

from .columns import REGISTRANTS_COLUMNS, ColumnMap, is_row
from .dates import in_range
from .filters import has_certificate, is_enrolled
from .mappers import abbreviate_organization_name

CLOSED = "closed"


class _Desc(str):
    """String wrapper that sorts in reverse order."""

    def __lt__(self, other: str) -> bool:
        return str.__gt__(self, other)

    def __gt__(self, other: str) -> bool:
        return str.__lt__(self, other)


def _organization_rows(
    rows: Iterable[Any], organization: str, columns: ColumnMap
) -> list[list[str]]:
    return [
        row
        for row in rows
        if is_row(row) and columns.cell(row, "ORGANIZATION") == organization
    ]


def _person(row: list[str], columns: ColumnMap) -> dict[str, str]:
    return {
        "cohort": columns.cell(row, "COHORT"),
        "year": columns.cell(row, "YEAR"),
        "first": columns.cell(row, "FIRST"),
        "last": columns.cell(row, "LAST"),
        "email": columns.cell(row, "EMAIL"),
    }


def _cohort_then_name(entry: dict[str, str]) -> tuple:
    return (
        _Desc(entry["year"]),
        _Desc(entry["cohort"]),
        entry["last"],
        entry["first"],
    )


def enrollment_summary(
    rows: Iterable[Any], organization: str, columns: ColumnMap = REGISTRANTS_COLUMNS
) -> list[dict[str, Any]]:
    """Cohort/year groups with at least one enrollment, newest first."""
    grouped: dict[tuple[str, str], dict[str, Any]] = {}

    for row in _organization_rows(rows, organization, columns):
        cohort = columns.cell(row, "COHORT")
        year = columns.cell(row, "YEAR")
        if not cohort or not year or not is_enrolled(columns.cell(row, "ENROLLED")):
            continue

        entry = grouped.setdefault(
            (cohort, year),
            {"cohort": cohort, "year": year, "enrollments": 0, "completed": 0, "certificates": 0},
        )
        entry["enrollments"] += 1
        entry["completed"] += columns.cell(row, "COMPLETED") == "Yes"
        entry["certificates"] += has_certificate(columns.cell(row, "CERTIFICATE"))

    return sorted(
        grouped.values(), key=lambda e: (_Desc(e["year"]), _Desc(e["cohort"]))
    )


def enrolled_participants(
    rows: Iterable[Any], organization: str, columns: ColumnMap = REGISTRANTS_COLUMNS
) -> list[dict[str, str]]:
    """Participants whose enrollment window is still open."""
    participants = []
    for row in _organization_rows(rows, organization, columns):
        days_to_close = columns.cell(row, "DAYS_TO_CLOSE")
        if not days_to_close or days_to_close == CLOSED:
            continue
        participants.append(
            {
                "daystoclose": days_to_close,
                **_person(row, columns),
                "completed": "1" if columns.cell(row, "COMPLETED") == "Yes" else "0",
                "certificate": "1"
                if has_certificate(columns.cell(row, "CERTIFICATE"))
                else "0",
            }
        )
    return sorted(participants, key=_cohort_then_name)


def invited_participants(
    rows: Iterable[Any], organization: str, columns: ColumnMap = REGISTRANTS_COLUMNS
) -> list[dict[str, str]]:
    """Invited registrants that have not enrolled yet."""
    invited = [
        {"invited": columns.cell(row, "INVITED"), **_person(row, columns)}
        for row in _organization_rows(rows, organization, columns)
        if not is_enrolled(columns.cell(row, "ENROLLED"))
    ]
    return sorted(
        invited,
        key=lambda e: (
            _Desc(e["year"]),
            _Desc(e["cohort"]),
            _Desc(e["invited"]),
            e["last"],
            e["first"],
        ),
    )


def certificates_earned(
    rows: Iterable[Any], organization: str, columns: ColumnMap = REGISTRANTS_COLUMNS
) -> list[dict[str, str]]:
    earners = [
        _person(row, columns)
        for row in _organization_rows(rows, organization, columns)
        if has_certificate(columns.cell(row, "CERTIFICATE"))
    ]
    return sorted(earners, key=_cohort_then_name)


def get_organization_dashboard_data(
    rows: Iterable[Any], organization: str, columns: ColumnMap = REGISTRANTS_COLUMNS
) -> dict[str, Any]:
    """All four dashboard tables for one organization."""
    rows = list(rows)
    return {
        "organization": organization,
        "organization_display": abbreviate_organization_name(organization),
        "enrollment_summary": enrollment_summary(rows, organization, columns),
        "enrolled_participants": enrolled_participants(rows, organization, columns),
        "invited_participants": invited_participants(rows, organization, columns),
        "certificates_earned": certificates_earned(rows, organization, columns),
    }


def has_activity(
    row: Any, start: str, end: str, columns: ColumnMap = REGISTRANTS_COLUMNS
) -> bool:
    """Invited in ``[start, end]``, or holds a certificate issued in it."""
    if in_range(columns.cell(row, "INVITED"), start, end):
        return True
    return has_certificate(columns.cell(row, "CERTIFICATE")) and in_range(
        columns.cell(row, "ISSUED"), start, end
    )


def get_all_organizations_data(
    rows: Iterable[Any],
    configured_organizations: Iterable[str] = (),
    columns: ColumnMap = REGISTRANTS_COLUMNS,
    start: str | None = None,
    end: str | None = None,
) -> list[dict[str, Any]]:
    """
    Registrations, enrollments and certificates per organization.

    With ``start``/``end`` only rows that have activity in that window are
    counted; their enrollments and certificates then count regardless of
    date. Without a window every row counts.
    """
    windowed = start is not None and end is not None
    counts: dict[str, dict[str, Any]] = {}

    def entry(name: str) -> dict[str, Any]:
        return counts.setdefault(
            name,
            {
                "organization": name,
                "organization_display": abbreviate_organization_name(name),
                "registrations": 0,
                "enrollments": 0,
                "certificates": 0,
            },
        )

    for name in configured_organizations:
        if name:
            entry(name)

    for row in rows:
        organization = columns.cell(row, "ORGANIZATION")
        if not organization:
            continue
        if windowed and not has_activity(row, start, end, columns):
            continue
        current = entry(organization)
        current["registrations"] += 1
        current["enrollments"] += is_enrolled(columns.cell(row, "ENROLLED"))
        current["certificates"] += has_certificate(columns.cell(row, "CERTIFICATE"))

    return sorted(counts.values(), key=lambda e: e["organization"].lower())
