"""
Google Sheets API client functions.

Functional async client for the Sheets v4 ``values`` endpoint.
"""

from typing import Any
from urllib.parse import quote

import httpx

from ..config import Settings
from ..core.mappers import trim_row
from ..utils.exceptions import ConfigurationError, DataMappingError, parse_api_error
from ..utils.logging import get_logger
from ..utils.retry import RetryConfig, as_network_error, with_enhanced_retry

logger = get_logger(__name__)

SHEETS_HOST = "sheets.googleapis.com"


def build_values_url(
    base_url: str, workbook_id: str, sheet_name: str, start_row: int = 1
) -> str:
    """URL for columns A..Z of ``sheet_name`` starting at ``start_row``."""
    value_range = quote(f"{sheet_name}!A{start_row}:Z", safe="!:")
    return f"{base_url.rstrip('/')}/v4/spreadsheets/{workbook_id}/values/{value_range}"


def parse_values_response(payload: Any, sheet_name: str = "") -> list[list[str]]:
    """Extract trimmed rows from a ``values`` response body."""
    if not isinstance(payload, dict) or "values" not in payload:
        raise DataMappingError(
            f"Google Sheets response for '{sheet_name}' has no values",
            expected_format='{"values": [[...], ...]}',
            sheet=sheet_name,
        )

    return [trim_row(row) for row in payload["values"] if isinstance(row, list)]


async def _get_values(
    client: httpx.AsyncClient, url: str, api_key: str, sheet_name: str
) -> list[list[str]]:
    try:
        response = await client.get(url, params={"key": api_key})
    except httpx.TransportError as e:
        raise as_network_error(e, SHEETS_HOST) from e

    if response.is_error:
        raise parse_api_error(
            response.text,
            response.status_code,
            service="google_sheets",
            endpoint=url,
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise DataMappingError(
            f"Google Sheets returned invalid JSON for '{sheet_name}'",
            expected_format="JSON",
            sheet=sheet_name,
        ) from e

    return parse_values_response(payload, sheet_name)


async def fetch_sheet_values(
    workbook_id: str,
    sheet_name: str,
    start_row: int,
    api_key: str | None,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> list[list[str]]:
    """
    Fetch every row of a sheet from ``start_row`` down.

    Transient failures (network errors, 429, 5xx) are retried with backoff.
    The API key is sent as a query parameter and never logged.
    """
    if not api_key:
        raise ConfigurationError(
            "Google Sheets API key not configured",
            config_key="api.google_api_key",
            troubleshooting_hints=[
                "Set api.google_api_key in the enterprise configuration",
                "Or set OTTER_GOOGLE_API_KEY in your environment",
            ],
        )

    url = build_values_url(settings.sheets_base_url, workbook_id, sheet_name, start_row)

    should_close_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.http_timeout)

    fetch = with_enhanced_retry(
        RetryConfig(max_attempts=settings.http_retries),
        operation_name=f"fetch_sheet:{sheet_name}",
    )(_get_values)

    try:
        logger.debug("Fetching Google Sheets values", sheet=sheet_name, url=url)
        rows = await fetch(client, url, api_key, sheet_name)
        logger.info("Fetched Google Sheets values", sheet=sheet_name, rows=len(rows))
        return rows
    finally:
        if should_close_client:
            await client.aclose()
