"""
Filtering functions for Otter.

Pure functions that select sheet rows by date range. Inputs are lists of
rows (lists of strings); entries that are not rows are skipped and rows with
missing or malformed dates are excluded rather than raising.
"""

from collections.abc import Iterable
from typing import Any

from ..utils.exceptions import ValidationError
from .columns import REGISTRANTS_COLUMNS, SUBMISSIONS_COLUMNS, ColumnMap, is_row
from .dates import in_range, is_cohort_year_in_range, parse_mmddyy

Row = list[str]

ENROLLMENT_MODES = ("tou_completion", "registration_date")
REPORT_MODES = ("date", "cohort")


def _rows(rows: Iterable[Any] | None) -> list[Row]:
    if not rows:
        return []
    return [row for row in rows if is_row(row)]


def is_enrolled(value: str) -> bool:
    """Enrolled cells hold ``Yes`` or the enrollment date; ``-`` means not enrolled."""
    return value == "Yes" or parse_mmddyy(value) is not None


def has_certificate(value: str) -> bool:
    return value == "Yes"


def filter_by_date_column(
    rows: Iterable[Any] | None,
    column: str,
    start: str,
    end: str,
    columns: ColumnMap = SUBMISSIONS_COLUMNS,
) -> list[Row]:
    """Rows whose ``column`` date falls inside ``[start, end]``."""
    return [
        row for row in _rows(rows) if in_range(columns.cell(row, column), start, end)
    ]


def process_registrants_data(
    rows: Iterable[Any] | None,
    start: str,
    end: str,
    columns: ColumnMap = REGISTRANTS_COLUMNS,
) -> dict[str, list[Row]]:
    """
    Bucket registrant rows into registrations, enrollments and certificates.

    - registrations: INVITED date in range
    - enrollments: INVITED date in range and the row is enrolled
    - certificates: CERTIFICATE is ``Yes`` and ISSUED date in range
    """
    registrations: list[Row] = []
    enrollments: list[Row] = []
    certificates: list[Row] = []

    for row in _rows(rows):
        invited_in_range = in_range(columns.cell(row, "INVITED"), start, end)

        if invited_in_range:
            registrations.append(row)
            if is_enrolled(columns.cell(row, "ENROLLED")):
                enrollments.append(row)

        if has_certificate(columns.cell(row, "CERTIFICATE")) and in_range(
            columns.cell(row, "ISSUED"), start, end
        ):
            certificates.append(row)

    return {
        "registrations": registrations,
        "enrollments": enrollments,
        "certificates": certificates,
    }


def process_registrations_data(
    rows: Iterable[Any] | None,
    start: str,
    end: str,
    columns: ColumnMap = SUBMISSIONS_COLUMNS,
) -> list[Row]:
    """Registrations are submissions whose SUBMITTED date is in range."""
    return filter_by_date_column(rows, "SUBMITTED", start, end, columns)


def process_submissions_data(
    rows: Iterable[Any] | None,
    start: str,
    end: str,
    columns: ColumnMap = SUBMISSIONS_COLUMNS,
) -> list[Row]:
    """Submissions whose SUBMITTED date is in range."""
    return filter_by_date_column(rows, "SUBMITTED", start, end, columns)


def filter_enrollments(
    rows: Iterable[Any] | None, columns: ColumnMap = REGISTRANTS_COLUMNS
) -> list[Row]:
    """All enrolled registrants, regardless of date."""
    return [row for row in _rows(rows) if is_enrolled(columns.cell(row, "ENROLLED"))]


def filter_certificates(
    rows: Iterable[Any] | None, columns: ColumnMap = REGISTRANTS_COLUMNS
) -> list[Row]:
    """All certificate earners, regardless of date."""
    return [
        row for row in _rows(rows) if has_certificate(columns.cell(row, "CERTIFICATE"))
    ]


def validate_enrollment_mode(mode: str) -> str:
    if mode not in ENROLLMENT_MODES:
        raise ValidationError(
            f"Enrollment mode must be one of: {', '.join(ENROLLMENT_MODES)}",
            field_name="enrollment_mode",
            field_value=mode,
        )
    return mode


def validate_report_mode(mode: str) -> str:
    if mode not in REPORT_MODES:
        raise ValidationError(
            f"Mode must be one of: {', '.join(REPORT_MODES)}",
            field_name="mode",
            field_value=mode,
        )
    return mode


def process_enrollments_data(
    rows: Iterable[Any] | None,
    start: str,
    end: str,
    mode: str = "tou_completion",
    columns: ColumnMap = REGISTRANTS_COLUMNS,
) -> list[Row]:
    """
    Enrolled registrants in range.

    ``tou_completion`` dates an enrollment by its SUBMITTED (terms of use
    completion) column; ``registration_date`` by its INVITED column.
    """
    validate_enrollment_mode(mode)
    date_column = "SUBMITTED" if mode == "tou_completion" else "INVITED"
    return filter_by_date_column(
        filter_enrollments(rows, columns), date_column, start, end, columns
    )


def process_cohort_data(
    rows: Iterable[Any] | None,
    start: str,
    end: str,
    columns: ColumnMap = REGISTRANTS_COLUMNS,
) -> dict[str, list[Row]]:
    """Registrations and enrollments whose COHORT/YEAR falls in the range."""
    registrations = [
        row
        for row in _rows(rows)
        if is_cohort_year_in_range(
            columns.cell(row, "COHORT"), columns.cell(row, "YEAR"), start, end
        )
    ]
    return {
        "registrations": registrations,
        "enrollments": filter_enrollments(registrations, columns),
    }
