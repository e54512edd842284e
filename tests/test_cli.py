import json

import pytest
from typer.testing import CliRunner

from otter.cli.main import ExitCodes, app, get_exit_code_for_error
from otter.storage import EnterpriseCache
from otter.utils.exceptions import (
    CacheError,
    ConfigurationError,
    DataMappingError,
    NetworkError,
    RetryExhaustedError,
    ValidationError,
)

from .conftest import write_config

runner = CliRunner()


@pytest.fixture
def cli_env(settings):
    return {
        "OTTER_CONFIG_DIR": str(settings.config_dir),
        "OTTER_CACHE_DIR": str(settings.cache_dir),
        "OTTER_ENTERPRISE": "tst",
        "OTTER_GOOGLE_API_KEY": "",
        "OTTER_LOG_FORMAT": "console",
        "OTTER_DRY_RUN": "false",
    }


@pytest.fixture
def warm_cache(settings, registrant_rows, submission_rows):
    cache = EnterpriseCache(settings.cache_dir, "tst")
    cache.write_rows("registrants", [row for row in registrant_rows if isinstance(row, list)])
    cache.write_rows("submissions", submission_rows)
    return cache


@pytest.mark.parametrize(
    "error,code",
    [
        (ConfigurationError("x"), ExitCodes.CONFIGURATION_ERROR),
        (ValidationError("x"), ExitCodes.VALIDATION_ERROR),
        (NetworkError("x"), ExitCodes.NETWORK_ERROR),
        (DataMappingError("x"), ExitCodes.DATA_ERROR),
        (CacheError("x"), ExitCodes.CACHE_ERROR),
        (RetryExhaustedError("x", last_error=NetworkError("y")), ExitCodes.NETWORK_ERROR),
        (KeyboardInterrupt(), ExitCodes.USER_INTERRUPTED),
        (RuntimeError("x"), ExitCodes.GENERAL_ERROR),
    ],
)
def test_exit_codes(error, code):
    assert get_exit_code_for_error(error) == code


def test_report_json(cli_env, warm_cache):
    result = runner.invoke(
        app,
        ["-q", "report", "01-01-24", "06-30-24", "--json", "--enrollment-mode", "registration_date"],
        env=cli_env,
    )

    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["systemwide"]["registrations_count"] == 4
    assert report["systemwide"]["certificates_count"] == 2
    assert report["organizations"][1]["organization_display"] == "Beta CC"


def test_report_table(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "-e", "tst", "report", "01-01-24", "06-30-24"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "Organizations" in result.stdout
    assert "Beta CC" in result.stdout
    assert "North" in result.stdout


def test_report_invalid_dates(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "report", "2024-01-01", "06-30-24"], env=cli_env)

    assert result.exit_code == ExitCodes.VALIDATION_ERROR
    assert "Report failed" in result.stdout


def test_missing_enterprise(cli_env):
    cli_env["OTTER_ENTERPRISE"] = ""

    result = runner.invoke(app, ["-q", "cache-status"], env=cli_env)

    assert result.exit_code == ExitCodes.CONFIGURATION_ERROR
    assert "No enterprise selected" in result.stdout


def test_dashboard_json(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "dashboard", "Alpha College", "--json"], env=cli_env)

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["organization"] == "Alpha College"
    assert data["invited_participants"][0]["last"] == "Turing"


def test_dashboard_unknown_organization(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "dashboard", "Nowhere"], env=cli_env)

    assert result.exit_code == ExitCodes.VALIDATION_ERROR


def test_organizations(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "organizations", "--json"], env=cli_env)

    assert result.exit_code == 0, result.output
    names = [row["organization"] for row in json.loads(result.stdout)]
    assert names == ["Alpha College", "Beta Community College", "Zeta College"]


def test_refresh(cli_env, monkeypatch):
    async def fake_fetch(workbook_id, sheet_name, start_row, api_key, settings, client=None):
        assert api_key == "test-key"
        return [["a"], ["b"]] if sheet_name == "Registrants" else [["c"]]

    monkeypatch.setattr("otter.clients.sheets.fetch_sheet_values", fake_fetch)

    result = runner.invoke(app, ["-q", "refresh"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "2 registrants, 1 submissions" in result.stdout


def test_refresh_dry_run_leaves_cache_empty(cli_env, settings, monkeypatch):
    async def fake_fetch(*args, **kwargs):
        return [["a"]]

    monkeypatch.setattr("otter.clients.sheets.fetch_sheet_values", fake_fetch)

    result = runner.invoke(app, ["-q", "--dry-run", "refresh"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "Dry run" in result.stdout
    assert EnterpriseCache(settings.cache_dir, "tst").read("registrants") is None


def test_cache_status(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "cache-status"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "Fresh" in result.stdout
    assert "Registrants" in result.stdout


def test_clear_cache(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "clear-cache", "--yes"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "Removed 2 cache file(s)" in result.stdout
    assert not warm_cache.directory.exists()


def test_clear_cache_declined(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "clear-cache"], env=cli_env, input="n\n")

    assert result.exit_code == ExitCodes.USER_INTERRUPTED
    assert warm_cache.directory.exists()


def test_config_validate(cli_env):
    result = runner.invoke(app, ["-q", "config-validate"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "Configuration Validation" in result.stdout
    assert "test-key" not in result.stdout


def test_config_validate_without_api_key(cli_env, settings, enterprise_document):
    enterprise_document["api"]["google_api_key"] = ""
    write_config(settings.config_dir, enterprise_document)

    result = runner.invoke(app, ["-q", "config-validate"], env=cli_env)

    assert result.exit_code == ExitCodes.CONFIGURATION_ERROR


def test_report_defaults_to_enterprise_start_date(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "report", "--json"], env=cli_env)

    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["range"]["start_date"] == "08-01-23"
    assert report["systemwide"]["registrations_count"] == 5


def test_report_without_any_start_date(cli_env, settings, enterprise_document, warm_cache):
    enterprise_document["settings"]["start_date"] = ""
    write_config(settings.config_dir, enterprise_document)

    result = runner.invoke(app, ["-q", "report"], env=cli_env)

    assert result.exit_code == ExitCodes.VALIDATION_ERROR
    assert "start_date" in result.stdout


def test_json_failure_prints_error_envelope(cli_env, warm_cache):
    result = runner.invoke(app, ["-q", "dashboard", "Nowhere", "--json"], env=cli_env)

    assert result.exit_code == ExitCodes.VALIDATION_ERROR
    envelope = json.loads(result.stdout)
    assert envelope["success"] is False
    assert envelope["exit_code"] == ExitCodes.VALIDATION_ERROR
    assert envelope["error"]["error_type"] == "ValidationError"
    assert envelope["error"]["details"]["field_name"] == "organization"
