"""
Enterprise configuration loading.

Each enterprise is described by ``<config_dir>/<code>.config``, a JSON
document with ``enterprise``, ``google_sheets``, ``settings`` and ``api``
sections plus optional ``organizations`` and ``groups``.
"""

import json
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.columns import normalize_overrides
from ..core.dates import is_valid_mmddyy
from ..utils.exceptions import ConfigurationError, ValidationError
from ..utils.logging import get_logger
from .settings import Settings

logger = get_logger(__name__)

ENTERPRISE_CODE_PATTERN = re.compile(r"^[a-z]{3,4}$")
REQUIRED_SECTIONS = ("enterprise", "google_sheets", "settings", "api")
DEMO_ENTERPRISE = "demo"


class EnterpriseInfo(BaseModel):
    code: str
    name: str = ""
    display_name: str = ""


class SheetConfig(BaseModel):
    """Location of one sheet and optional column index overrides."""

    workbook_id: str
    sheet_name: str
    start_row: int = Field(default=1, ge=1)
    columns: dict[str, int] = Field(default_factory=dict)

    @field_validator("columns", mode="before")
    @classmethod
    def _normalize_columns(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return normalize_overrides(value)
        return value


class EnterpriseSettings(BaseModel):
    start_date: str = ""
    cache_ttl: int = 21600
    timezone: str = "America/Los_Angeles"
    has_groups: bool = False

    model_config = {"extra": "allow"}

    @field_validator("start_date")
    @classmethod
    def _check_start_date(cls, value: str) -> str:
        if value and not is_valid_mmddyy(value):
            raise ValueError(f"start_date must be MM-DD-YY, got '{value}'")
        return value


class ApiConfig(BaseModel):
    google_api_key: str = ""

    model_config = {"extra": "allow"}


class EnterpriseConfig(BaseModel):
    """Validated contents of an enterprise ``.config`` file."""

    enterprise: EnterpriseInfo
    google_sheets: dict[str, SheetConfig]
    settings: EnterpriseSettings
    api: ApiConfig
    organizations: list[str] = Field(default_factory=list)
    groups: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("google_sheets", mode="before")
    @classmethod
    def _drop_comment_keys(cls, value: Any) -> Any:
        # Config files annotate sections with "_comment" style entries
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if not str(k).startswith("_")}
        return value

    @property
    def code(self) -> str:
        return self.enterprise.code

    @property
    def display_name(self) -> str:
        return self.enterprise.display_name or self.enterprise.name or self.code.upper()

    @property
    def is_demo(self) -> bool:
        return self.code == DEMO_ENTERPRISE

    def sheet(self, sheet_type: str) -> SheetConfig:
        """Return the sheet config for ``registrants`` or ``submissions``."""
        try:
            return self.google_sheets[sheet_type]
        except KeyError:
            raise ConfigurationError(
                f"Enterprise '{self.code}' has no '{sheet_type}' sheet configured",
                config_key=f"google_sheets.{sheet_type}",
            ) from None

    def active_groups(self) -> dict[str, list[str]]:
        """Groups map, or empty when the enterprise does not use groups."""
        return self.groups if self.settings.has_groups else {}

    def google_api_key(self, settings: Settings | None = None) -> str:
        if settings is not None and settings.google_api_key:
            return settings.google_api_key
        return self.api.google_api_key

    def cache_ttl(self, settings: Settings | None = None) -> int:
        if settings is not None and settings.cache_ttl is not None:
            return settings.cache_ttl
        return self.settings.cache_ttl


def validate_enterprise_code(code: str | None) -> str:
    """Enterprise codes are 3-4 lowercase letters."""
    if not isinstance(code, str) or not ENTERPRISE_CODE_PATTERN.match(code):
        raise ValidationError(
            "Enterprise code must be 3-4 lowercase letters",
            field_name="enterprise",
            field_value=code,
            validation_rule=ENTERPRISE_CODE_PATTERN.pattern,
        )
    return code


def parse_enterprise_config(raw: dict[str, Any], source: str = "<memory>") -> EnterpriseConfig:
    """Validate a decoded config document."""
    missing = [section for section in REQUIRED_SECTIONS if section not in raw]
    if missing:
        raise ConfigurationError(
            f"Missing required configuration section: {missing[0]}",
            config_key=missing[0],
            actual_value=source,
        )

    try:
        return EnterpriseConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid enterprise configuration in {source}: {e.errors()[0]['msg']}",
            actual_value=source,
        ) from e


def load_enterprise_config(code: str, config_dir: Path) -> EnterpriseConfig:
    """Load and validate ``<config_dir>/<code>.config``."""
    validate_enterprise_code(code)
    config_file = Path(config_dir) / f"{code}.config"

    if not config_file.exists():
        raise ConfigurationError(
            f"Enterprise configuration file not found: {config_file}",
            config_key="config_dir",
            actual_value=str(config_file),
        )

    try:
        raw = json.loads(config_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in enterprise configuration: {e.msg}",
            actual_value=str(config_file),
        ) from e

    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Enterprise configuration must be a JSON object",
            actual_value=str(config_file),
        )

    config = parse_enterprise_config(raw, source=str(config_file))
    if config.code != code:
        raise ConfigurationError(
            "Enterprise code in configuration does not match file name",
            config_key="enterprise.code",
            expected_value=code,
            actual_value=config.code,
        )

    logger.debug(
        "Loaded enterprise configuration",
        enterprise=code,
        organizations=len(config.organizations),
        groups=len(config.groups),
    )
    return config


def resolve_enterprise(settings: Settings, code: str | None = None) -> EnterpriseConfig:
    """Load the enterprise named on the command line or in the settings."""
    code = code or settings.enterprise
    if not code:
        raise ConfigurationError(
            "No enterprise selected",
            config_key="enterprise",
            troubleshooting_hints=[
                "Pass --enterprise on the command line",
                "Or set OTTER_ENTERPRISE in your environment or .env file",
            ],
        )
    return load_enterprise_config(code, settings.config_dir)
