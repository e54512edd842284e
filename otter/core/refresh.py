"""
Report orchestration for Otter.

Loads sheet rows through the cache, applies the demo transform and runs the
pure filters and aggregations to build reports and dashboards.
"""

import time
from typing import Any

import httpx

from ..clients import sheets
from ..config import EnterpriseConfig, Settings
from ..storage import EnterpriseCache
from ..utils.exceptions import ValidationError
from ..utils.logging import generate_correlation_id, get_logger, operation_logger
from . import dashboard, filters, mappers
from .columns import REGISTRANTS_COLUMNS, SUBMISSIONS_COLUMNS, ColumnMap
from .dates import today_mmddyy, validate_date_range

logger = get_logger(__name__)

SHEET_KINDS = ("registrants", "submissions")

_BASE_COLUMNS = {
    "registrants": REGISTRANTS_COLUMNS,
    "submissions": SUBMISSIONS_COLUMNS,
}


def columns_for(enterprise: EnterpriseConfig, kind: str) -> ColumnMap:
    """Default column map for ``kind`` with the enterprise's overrides."""
    return _BASE_COLUMNS[kind].with_overrides(enterprise.sheet(kind).columns)


def configured_organizations(enterprise: EnterpriseConfig) -> list[str]:
    if enterprise.is_demo:
        return [mappers.demo_organization_name(name) for name in enterprise.organizations]
    return list(enterprise.organizations)


def configured_groups(enterprise: EnterpriseConfig) -> dict[str, list[str]]:
    groups = enterprise.active_groups()
    if enterprise.is_demo:
        return {
            group: [mappers.demo_organization_name(name) for name in members]
            for group, members in groups.items()
        }
    return groups


def _cache_for(enterprise: EnterpriseConfig, settings: Settings) -> EnterpriseCache:
    return EnterpriseCache(settings.cache_dir, enterprise.code)


async def load_sheet_rows(
    kind: str,
    enterprise: EnterpriseConfig,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
    cache: EnterpriseCache | None = None,
    force_refresh: bool = False,
) -> list[list[str]]:
    """
    Rows of the ``registrants`` or ``submissions`` sheet.

    Served from the cache while it is younger than the enterprise TTL,
    otherwise fetched from Google Sheets and written back (unless dry run).
    """
    if kind not in SHEET_KINDS:
        raise ValidationError(
            f"Sheet must be one of: {', '.join(SHEET_KINDS)}",
            field_name="sheet",
            field_value=kind,
        )

    cache = cache or _cache_for(enterprise, settings)
    tz = enterprise.settings.timezone
    ttl = enterprise.cache_ttl(settings)

    if not force_refresh and cache.is_fresh(kind, ttl, tz):
        rows = cache.read_rows(kind) or []
        logger.debug("Using cached sheet rows", sheet=kind, rows=len(rows))
        return rows

    sheet = enterprise.sheet(kind)
    rows = await sheets.fetch_sheet_values(
        sheet.workbook_id,
        sheet.sheet_name,
        sheet.start_row,
        enterprise.google_api_key(settings),
        settings,
        client,
    )

    if settings.dry_run:
        logger.info("Dry run: not writing cache", sheet=kind, rows=len(rows))
    else:
        cache.write_rows(kind, rows, tz)

    return rows


async def _load_all(
    enterprise: EnterpriseConfig,
    settings: Settings,
    client: httpx.AsyncClient | None,
    force_refresh: bool,
) -> dict[str, list[list[str]]]:
    cache = _cache_for(enterprise, settings)

    async def load(http: httpx.AsyncClient) -> dict[str, list[list[str]]]:
        return {
            kind: await load_sheet_rows(kind, enterprise, settings, http, cache, force_refresh)
            for kind in SHEET_KINDS
        }

    if client is not None:
        return await load(client)

    async with httpx.AsyncClient(timeout=settings.http_timeout) as http:
        return await load(http)


def _demo_rows(
    enterprise: EnterpriseConfig, kind: str, rows: list[list[str]]
) -> list[list[str]]:
    if not enterprise.is_demo:
        return rows
    return mappers.transform_demo_rows(rows, columns_for(enterprise, kind))


async def build_report(
    start: str,
    end: str,
    enterprise: EnterpriseConfig,
    settings: Settings,
    mode: str = "date",
    enrollment_mode: str = "tou_completion",
    force_refresh: bool = False,
    client: httpx.AsyncClient | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Build the systemwide, organizations and groups tables for a date range."""
    validate_date_range(start, end)
    filters.validate_report_mode(mode)
    filters.validate_enrollment_mode(enrollment_mode)

    correlation_id = correlation_id or generate_correlation_id()

    with operation_logger(
        "build_report",
        correlation_id,
        enterprise=enterprise.code,
        start=start,
        end=end,
        mode=mode,
    ) as op_logger:
        data = await _load_all(enterprise, settings, client, force_refresh)

        reg_columns = columns_for(enterprise, "registrants")
        sub_columns = columns_for(enterprise, "submissions")
        registrants = _demo_rows(enterprise, "registrants", data["registrants"])
        submissions = _demo_rows(enterprise, "submissions", data["submissions"])

        buckets = filters.process_registrants_data(registrants, start, end, reg_columns)
        if mode == "cohort":
            cohort = filters.process_cohort_data(registrants, start, end, reg_columns)
            registrations = cohort["registrations"]
            enrollments = cohort["enrollments"]
        else:
            registrations = buckets["registrations"]
            enrollments = filters.process_enrollments_data(
                registrants, start, end, enrollment_mode, reg_columns
            )
        certificates = buckets["certificates"]

        submitted = filters.process_submissions_data(submissions, start, end, sub_columns)

        tables = mappers.process_all_tables(
            registrations,
            enrollments,
            certificates,
            enrollment_mode,
            configured_organizations(enterprise),
            configured_groups(enterprise),
            reg_columns,
        )

        op_logger.info(
            "Report built",
            registrations=len(registrations),
            enrollments=len(enrollments),
            certificates=len(certificates),
            submissions=len(submitted),
            organizations=len(tables["organizations"]),
        )

        return {
            "success": True,
            "enterprise": {"code": enterprise.code, "display_name": enterprise.display_name},
            "range": {
                "start_date": start,
                "end_date": end,
                "mode": mode,
                "enrollment_mode": enrollment_mode,
            },
            **tables,
            "registrants": {
                "total": len(registrants),
                "registrations": len(registrations),
                "enrollments": len(enrollments),
                "certificates": len(certificates),
            },
            "submissions": {"total": len(submissions), "in_range": len(submitted)},
        }


async def build_dashboard(
    organization: str,
    enterprise: EnterpriseConfig,
    settings: Settings,
    force_refresh: bool = False,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Undated dashboard tables for a single organization."""
    with operation_logger(
        "build_dashboard", enterprise=enterprise.code, organization=organization
    ):
        rows = await load_sheet_rows(
            "registrants", enterprise, settings, client, force_refresh=force_refresh
        )
        rows = _demo_rows(enterprise, "registrants", rows)
        columns = columns_for(enterprise, "registrants")

        known = set(configured_organizations(enterprise))
        known.update(mappers.count_by_organization(rows, columns))
        if organization not in known:
            raise ValidationError(
                f"Unknown organization: {organization}",
                field_name="organization",
                field_value=organization,
                troubleshooting_hints=["Run 'otter organizations' to list valid names"],
            )

        return dashboard.get_organization_dashboard_data(rows, organization, columns)


async def build_organizations_overview(
    enterprise: EnterpriseConfig,
    settings: Settings,
    force_refresh: bool = False,
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """
    Counts for every organization of the enterprise.

    Rows count when they have activity between the enterprise start date and
    today; enterprises without a start date count every row.
    """
    rows = await load_sheet_rows(
        "registrants", enterprise, settings, client, force_refresh=force_refresh
    )
    rows = _demo_rows(enterprise, "registrants", rows)

    start = enterprise.settings.start_date or None
    end = today_mmddyy(enterprise.settings.timezone) if start else None
    return dashboard.get_all_organizations_data(
        rows,
        configured_organizations(enterprise),
        columns_for(enterprise, "registrants"),
        start=start,
        end=end,
    )


async def refresh_data(
    enterprise: EnterpriseConfig,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Force a reload of both sheets and report what was cached."""
    correlation_id = correlation_id or generate_correlation_id()
    start_time = time.time()

    with operation_logger(
        "refresh_data", correlation_id, enterprise=enterprise.code, dry_run=settings.dry_run
    ):
        data = await _load_all(enterprise, settings, client, force_refresh=True)

        logger.audit(
            "cache_refreshed",
            enterprise=enterprise.code,
            dry_run=settings.dry_run,
            **{kind: len(rows) for kind, rows in data.items()},
        )

        # A dry run writes nothing, so there is no new stamp to report
        stamp = None
        if not settings.dry_run:
            stamp = (_cache_for(enterprise, settings).read("registrants") or {}).get(
                "global_timestamp"
            )

        return {
            "success": True,
            "enterprise": enterprise.code,
            "dry_run": settings.dry_run,
            "rows": {kind: len(rows) for kind, rows in data.items()},
            "global_timestamp": stamp,
            "duration_ms": round((time.time() - start_time) * 1000, 2),
        }


def cache_status(enterprise: EnterpriseConfig, settings: Settings) -> dict[str, Any]:
    """Timestamps, row counts and freshness of the enterprise's cache files."""
    cache = _cache_for(enterprise, settings)
    ttl = enterprise.cache_ttl(settings)
    tz = enterprise.settings.timezone

    files = {}
    for kind in SHEET_KINDS:
        info = cache.file_info(kind)
        info["fresh"] = cache.is_fresh(kind, ttl, tz)
        files[kind] = info

    return {
        "enterprise": enterprise.code,
        "directory": str(cache.directory),
        "ttl": ttl,
        "timezone": tz,
        "files": files,
    }
