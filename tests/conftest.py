"""
Pytest configuration and fixtures
"""

import json
from pathlib import Path

import httpx
import pytest
import structlog

from otter.config import Settings, load_enterprise_config
from otter.core.columns import DEFAULT_COLUMNS
from otter.utils.logging import clear_context

ROW_WIDTH = len(DEFAULT_COLUMNS)


def make_row(**cells: str) -> list[str]:
    """Full-width sheet row with the named columns filled in."""
    row = [""] * ROW_WIDTH
    for column, value in cells.items():
        row[DEFAULT_COLUMNS[column.upper()]] = value
    return row


@pytest.fixture
def registrant_rows() -> list:
    """Registrants sheet sample, checked against the 01-01-24..06-30-24 range."""
    return [
        make_row(
            days_to_close="closed",
            invited="01-15-24",
            enrolled="Yes",
            cohort="01",
            year="24",
            first="Ada",
            last="Lovelace",
            email="ada@alpha.edu",
            organization="Alpha College",
            certificate="Yes",
            issued="03-01-24",
            completed="Yes",
            submitted="01-20-24",
        ),
        make_row(
            days_to_close="12",
            invited="02-10-24",
            enrolled="-",
            cohort="02",
            year="24",
            first="Alan",
            last="Turing",
            email="alan@alpha.edu",
            organization="Alpha College",
            certificate="No",
        ),
        make_row(
            days_to_close="closed",
            invited="12-20-23",
            enrolled="12-21-23",
            cohort="12",
            year="23",
            first="Grace",
            last="Hopper",
            email="grace@beta.edu",
            organization="Beta Community College",
            certificate="Yes",
            issued="02-01-24",
            completed="Yes",
            submitted="12-22-23",
        ),
        make_row(
            days_to_close="30",
            invited="05-05-24",
            enrolled="Yes",
            cohort="05",
            year="24",
            first="Edsger",
            last="Dijkstra",
            email="edsger@beta.edu",
            organization="Beta Community College",
            certificate="No",
            submitted="05-07-24",
        ),
        make_row(invited="13-45-24", organization="Gamma College", enrolled="Yes"),
        "not a row",
        ["", "03-03-24"],
    ]


@pytest.fixture
def submission_rows() -> list:
    return [
        make_row(submitted="01-02-24", organization="Alpha College"),
        make_row(submitted="06-30-24", organization="Beta Community College"),
        make_row(submitted="07-01-24", organization="Alpha College"),
        make_row(submitted="", organization="Alpha College"),
    ]


@pytest.fixture
def enterprise_document() -> dict:
    return {
        "enterprise": {"code": "tst", "name": "Test System", "display_name": "TST"},
        "google_sheets": {
            "registrants": {
                "workbook_id": "wb-registrants",
                "sheet_name": "Registrants",
                "start_row": 2,
            },
            "submissions": {
                "workbook_id": "wb-submissions",
                "sheet_name": "Submissions",
                "start_row": 2,
            },
        },
        "settings": {"start_date": "08-01-23", "cache_ttl": 21600, "has_groups": True},
        "api": {"google_api_key": "test-key"},
        "organizations": ["Alpha College", "Beta Community College", "Zeta College"],
        "groups": {
            "North": ["Alpha College"],
            "South": ["Beta Community College", "Zeta College"],
        },
    }


def write_config(config_dir: Path, document: dict) -> Path:
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / f"{document['enterprise']['code']}.config"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.fixture
def config_dir(tmp_path, enterprise_document) -> Path:
    directory = tmp_path / "config"
    write_config(directory, enterprise_document)
    return directory


@pytest.fixture
def settings(tmp_path, config_dir) -> Settings:
    return Settings(
        _env_file=None,
        config_dir=config_dir,
        cache_dir=tmp_path / "cache",
        google_api_key=None,
        http_retries=3,
        cache_ttl=None,
        dry_run=False,
    )


@pytest.fixture
def enterprise(settings):
    return load_enterprise_config("tst", settings.config_dir)


@pytest.fixture
def no_backoff(monkeypatch):
    """Skip retry sleeps."""
    monkeypatch.setattr(
        "otter.utils.retry.calculate_backoff_with_jitter", lambda *args, **kwargs: 0.0
    )


@pytest.fixture
def sheets_transport(registrant_rows, submission_rows):
    """Mock Google Sheets serving the sample rows; records every request."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if "Registrants" in request.url.path:
            values = registrant_rows
        elif "Submissions" in request.url.path:
            values = submission_rows
        else:
            return httpx.Response(404, json={"error": {"code": 404, "message": "Not found"}})
        return httpx.Response(200, json={"range": "A2:Z", "values": values})

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest.fixture(autouse=True)
def reset_logging():
    """CLI runs bind structlog to a captured stream and set context vars."""
    yield
    structlog.reset_defaults()
    clear_context()
