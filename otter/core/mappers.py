"""
Mapping functions for Otter.

Pure functions that turn filtered rows into report tables (systemwide,
per-organization and per-group counts) and normalize raw sheet rows.
"""

from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any

from .columns import REGISTRANTS_COLUMNS, ColumnMap, is_row

Row = list[str]

ABBREVIATION_RULES = (
    ("Community College District", "CCD"),
    ("Junior College District", "JCD"),
    ("Community College", "CC"),
    ("Continuing Education", "Cont Ed"),
)

DEMO_SUFFIX = " Demo"


def abbreviate_organization_name(name: str) -> str:
    """Apply the first matching abbreviation rule only."""
    for pattern, abbreviation in ABBREVIATION_RULES:
        if pattern in name:
            return name.replace(pattern, abbreviation)
    return name


def demo_organization_name(name: str) -> str:
    """Append the demo suffix unless the name already carries it."""
    name = name.strip()
    if not name or name.endswith(DEMO_SUFFIX):
        return name
    return name + DEMO_SUFFIX


def trim_row(row: Iterable[Any]) -> Row:
    """Stringify and strip every cell of a sheet row."""
    return ["" if cell is None else str(cell).strip() for cell in row]


def count_by_organization(
    rows: Iterable[Any], columns: ColumnMap = REGISTRANTS_COLUMNS
) -> Counter:
    """Count rows per non-empty ORGANIZATION value."""
    counts: Counter = Counter()
    for row in rows:
        organization = columns.cell(row, "ORGANIZATION")
        if organization != "":
            counts[organization] += 1
    return counts


def process_organization_data(
    registrations: Iterable[Any],
    enrollments: Iterable[Any],
    certificates: Iterable[Any],
    configured_organizations: Iterable[str] = (),
    columns: ColumnMap = REGISTRANTS_COLUMNS,
) -> list[dict[str, Any]]:
    """
    Per-organization counts for the organizations table.

    Every configured organization is listed, even with all-zero counts, plus
    any organization that only appears in the data. Sorted by name.
    """
    registration_counts = count_by_organization(registrations, columns)
    enrollment_counts = count_by_organization(enrollments, columns)
    certificate_counts = count_by_organization(certificates, columns)

    organizations = {name for name in configured_organizations if name}
    organizations.update(registration_counts, enrollment_counts, certificate_counts)

    return [
        {
            "organization": name,
            "organization_display": abbreviate_organization_name(name),
            "registrations": registration_counts[name],
            "enrollments": enrollment_counts[name],
            "certificates": certificate_counts[name],
        }
        for name in sorted(organizations)
    ]


def process_systemwide_data(
    registrations: list[Any],
    enrollments: list[Any],
    certificates: list[Any],
    enrollment_mode: str = "tou_completion",
) -> dict[str, Any]:
    return {
        "registrations_count": len(registrations),
        "enrollments_count": len(enrollments),
        "certificates_count": len(certificates),
        "enrollment_mode": enrollment_mode,
    }


def process_groups_data(
    registrations: Iterable[Any],
    enrollments: Iterable[Any],
    certificates: Iterable[Any],
    groups: Mapping[str, Iterable[str]] | None,
    columns: ColumnMap = REGISTRANTS_COLUMNS,
) -> list[dict[str, Any]]:
    """Counts per group of organizations, in the group map's order."""
    if not groups:
        return []

    organization_to_group: dict[str, str] = {}
    for group, members in groups.items():
        for organization in members:
            organization_to_group[organization] = group

    def group_counts(rows: Iterable[Any]) -> Counter:
        counts: Counter = Counter()
        for organization, count in count_by_organization(rows, columns).items():
            group = organization_to_group.get(organization)
            if group is not None:
                counts[group] += count
        return counts

    registration_counts = group_counts(registrations)
    enrollment_counts = group_counts(enrollments)
    certificate_counts = group_counts(certificates)

    return [
        {
            "group": group,
            "registrations": registration_counts[group],
            "enrollments": enrollment_counts[group],
            "certificates": certificate_counts[group],
        }
        for group in groups
    ]


def process_all_tables(
    registrations: list[Any],
    enrollments: list[Any],
    certificates: list[Any],
    enrollment_mode: str = "tou_completion",
    configured_organizations: Iterable[str] = (),
    groups: Mapping[str, Iterable[str]] | None = None,
    columns: ColumnMap = REGISTRANTS_COLUMNS,
) -> dict[str, Any]:
    """Build the systemwide, organizations and groups tables together."""
    return {
        "systemwide": process_systemwide_data(
            registrations, enrollments, certificates, enrollment_mode
        ),
        "organizations": process_organization_data(
            registrations, enrollments, certificates, configured_organizations, columns
        ),
        "groups": process_groups_data(
            registrations, enrollments, certificates, groups, columns
        ),
    }


def transform_demo_rows(
    rows: Iterable[Any], columns: ColumnMap = REGISTRANTS_COLUMNS
) -> list[Row]:
    """
    Anonymize rows for the demo enterprise.

    LAST becomes ``Demo``, the EMAIL local part becomes ``demo`` and
    ORGANIZATION gets a ``" Demo"`` suffix (added once).
    """
    last_idx = columns.index("LAST")
    email_idx = columns.index("EMAIL")
    org_idx = columns.index("ORGANIZATION")

    transformed: list[Row] = []
    for row in rows:
        if not is_row(row):
            continue
        row = list(row)

        if last_idx < len(row) and row[last_idx]:
            row[last_idx] = "Demo"

        if email_idx < len(row) and "@" in row[email_idx]:
            _, domain = row[email_idx].strip().split("@", 1)
            row[email_idx] = f"demo@{domain}"

        if org_idx < len(row) and row[org_idx]:
            row[org_idx] = demo_organization_name(row[org_idx])

        transformed.append(row)

    return transformed
