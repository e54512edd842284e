import json

import pytest

from otter.config import Settings, load_enterprise_config, resolve_enterprise
from otter.config.enterprise import parse_enterprise_config, validate_enterprise_code
from otter.core.columns import DEFAULT_COLUMNS, REGISTRANTS_COLUMNS, ColumnMap
from otter.utils.exceptions import ConfigurationError, ValidationError

from .conftest import write_config


def test_load_enterprise_config(enterprise):
    assert enterprise.code == "tst"
    assert enterprise.display_name == "TST"
    assert not enterprise.is_demo
    assert enterprise.sheet("registrants").start_row == 2
    assert enterprise.settings.timezone == "America/Los_Angeles"
    assert enterprise.active_groups() == {
        "North": ["Alpha College"],
        "South": ["Beta Community College", "Zeta College"],
    }


def test_groups_disabled_without_has_groups(tmp_path, enterprise_document):
    enterprise_document["settings"]["has_groups"] = False
    write_config(tmp_path, enterprise_document)

    config = load_enterprise_config("tst", tmp_path)

    assert config.active_groups() == {}


def test_settings_override_api_key_and_ttl(enterprise, settings):
    assert enterprise.google_api_key(settings) == "test-key"
    assert enterprise.cache_ttl(settings) == 21600

    overridden = settings.model_copy(update={"google_api_key": "env-key", "cache_ttl": 60})

    assert enterprise.google_api_key(overridden) == "env-key"
    assert enterprise.cache_ttl(overridden) == 60


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_enterprise_config("abc", tmp_path)


def test_invalid_json(tmp_path):
    (tmp_path / "abc.config").write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid JSON"):
        load_enterprise_config("abc", tmp_path)


@pytest.mark.parametrize("section", ["enterprise", "google_sheets", "settings", "api"])
def test_missing_required_section(enterprise_document, section):
    del enterprise_document[section]

    with pytest.raises(ConfigurationError) as exc_info:
        parse_enterprise_config(enterprise_document)

    assert exc_info.value.details["config_key"] == section


def test_code_mismatch(tmp_path, enterprise_document):
    (tmp_path / "abc.config").write_text(json.dumps(enterprise_document), encoding="utf-8")

    with pytest.raises(ConfigurationError, match="does not match"):
        load_enterprise_config("abc", tmp_path)


def test_missing_sheet(enterprise_document):
    del enterprise_document["google_sheets"]["submissions"]
    config = parse_enterprise_config(enterprise_document)

    with pytest.raises(ConfigurationError):
        config.sheet("submissions")


@pytest.mark.parametrize("code", ["csu", "demo", "ccc"])
def test_valid_enterprise_codes(code):
    assert validate_enterprise_code(code) == code


@pytest.mark.parametrize("code", ["", "CSU", "ab", "toolong", "c1u", None])
def test_invalid_enterprise_codes(code):
    with pytest.raises(ValidationError):
        validate_enterprise_code(code)


def test_resolve_enterprise_requires_a_code(settings):
    with pytest.raises(ConfigurationError, match="No enterprise selected"):
        resolve_enterprise(settings.model_copy(update={"enterprise": None}))

    assert resolve_enterprise(settings, "tst").code == "tst"


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("OTTER_ENTERPRISE", "csu")
    monkeypatch.setenv("OTTER_CACHE_DIR", str(tmp_path))
    monkeypatch.setenv("OTTER_HTTP_RETRIES", "5")

    settings = Settings(_env_file=None)

    assert settings.enterprise == "csu"
    assert settings.cache_dir == tmp_path
    assert settings.http_retries == 5


def test_column_map_cell_access():
    row = ["10", "01-02-24"]

    assert REGISTRANTS_COLUMNS.cell(row, "INVITED") == "01-02-24"
    assert REGISTRANTS_COLUMNS.cell(row, "organization") == ""
    assert REGISTRANTS_COLUMNS.cell("not a row", "INVITED") == ""
    assert REGISTRANTS_COLUMNS.index("SUBMITTED") == 15


def test_column_map_unknown_column():
    with pytest.raises(ConfigurationError):
        REGISTRANTS_COLUMNS.index("FAVORITE_COLOR")


def test_column_map_overrides():
    columns = ColumnMap(DEFAULT_COLUMNS, "submissions").with_overrides({"submitted": 3})

    assert columns.index("SUBMITTED") == 3
    assert REGISTRANTS_COLUMNS.index("SUBMITTED") == 15

    with pytest.raises(ConfigurationError):
        columns.with_overrides({"SUBMITTED": -1})


def test_config_column_overrides_are_loaded(enterprise_document):
    enterprise_document["google_sheets"]["registrants"]["columns"] = {"INVITED": 15}

    config = parse_enterprise_config(enterprise_document)

    assert config.sheet("registrants").columns == {"INVITED": 15}


def test_column_overrides_accept_config_style_names():
    columns = REGISTRANTS_COLUMNS.with_overrides(
        {"DaysToClose": 5, "closing_date": 2, "Invited": {"index": 15, "type": "string"}}
    )

    assert columns.index("DAYS_TO_CLOSE") == 5
    assert columns.index("CLOSING_DATE") == 2
    assert columns.index("INVITED") == 15
    assert columns.index("DaysToClose") == 5
    assert set(columns.as_dict()) == set(DEFAULT_COLUMNS)


def test_column_override_typo_is_rejected():
    with pytest.raises(ConfigurationError, match="Invitd"):
        REGISTRANTS_COLUMNS.with_overrides({"DaysToClose": 5, "Invitd": 15})


def test_column_override_entry_without_index_is_rejected():
    with pytest.raises(ConfigurationError, match="non-negative integer"):
        REGISTRANTS_COLUMNS.with_overrides({"Invited": {"type": "string"}})


def test_config_with_generated_column_block(enterprise_document):
    sheets = enterprise_document["google_sheets"]
    sheets["_comment"] = "Google Sheets uses 1-based column indexing"
    sheets["registrants"]["columns"] = {
        "DaysToClose": {"index": 0, "type": "string", "_sheets_column": "A"},
        "Invited": {"index": 1, "type": "string", "_sheets_column": "B"},
        "ClosingDate": {"index": 12, "type": "string", "_sheets_column": "M"},
        "ID": {"index": 14, "type": "string", "_sheets_column": "O"},
        "Submitted": {"index": 15, "type": "string", "_sheets_column": "P"},
    }

    config = parse_enterprise_config(enterprise_document)

    assert set(config.google_sheets) == {"registrants", "submissions"}
    assert config.sheet("registrants").columns == {
        "DAYS_TO_CLOSE": 0,
        "INVITED": 1,
        "CLOSING_DATE": 12,
        "ID": 14,
        "SUBMITTED": 15,
    }


def test_config_with_unknown_column_is_rejected(enterprise_document):
    enterprise_document["google_sheets"]["submissions"]["columns"] = {"Submited": 15}

    with pytest.raises(ConfigurationError, match="Submited"):
        parse_enterprise_config(enterprise_document)


def test_config_start_date_must_be_mmddyy(enterprise_document):
    enterprise_document["settings"]["start_date"] = "2023-08-01"

    with pytest.raises(ConfigurationError, match="start_date"):
        parse_enterprise_config(enterprise_document)
