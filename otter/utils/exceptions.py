"""
Exception hierarchy for Otter.

Every error carries a category, a severity and troubleshooting hints so the
CLI can choose an exit code and print something actionable.
"""

import json
import time
from enum import Enum
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories for error classification."""

    USER_ERROR = "user_error"
    CONFIGURATION_ERROR = "configuration_error"
    NETWORK_ERROR = "network_error"
    API_ERROR = "api_error"
    DATA_ERROR = "data_error"
    CACHE_ERROR = "cache_error"
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"
    SECURITY_ERROR = "security_error"


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class OtterError(Exception):
    """
    Base exception for all Otter errors.

    Holds structured details for logging plus a user-facing message and
    hints for the command line.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        category: ErrorCategory = ErrorCategory.SYSTEM_ERROR,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        correlation_id: str | None = None,
        user_message: str | None = None,
        troubleshooting_hints: list[str] | None = None,
        retryable: bool = False,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.category = category
        self.severity = severity
        self.correlation_id = correlation_id
        self.user_message = user_message or message
        self.troubleshooting_hints = troubleshooting_hints or []
        self.retryable = retryable
        self.context = context
        self.timestamp = time.time()

        logger.debug(
            f"Exception created: {self.__class__.__name__}",
            error_message=self.message,
            category=self.category.value,
            severity=self.severity.value,
            retryable=self.retryable,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "category": self.category.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp,
            "details": self.details,
            "troubleshooting_hints": self.troubleshooting_hints,
            "context": self.context,
        }


class ConfigurationError(OtterError):
    """Raised for missing or invalid settings and enterprise config files."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        expected_value: str | None = None,
        actual_value: str | None = None,
        **kwargs,
    ):
        hints = kwargs.pop(
            "troubleshooting_hints",
            [
                "Check your .env file or OTTER_* environment variables",
                "Verify the enterprise .config file exists in the config directory",
                "Run 'otter config-validate' to diagnose configuration issues",
            ],
        )

        details = kwargs.setdefault("details", {})
        if config_key:
            hints = [*hints, f"Ensure '{config_key}' is properly configured"]
            details["config_key"] = config_key
        if expected_value:
            details["expected_value"] = expected_value
        if actual_value:
            details["actual_value"] = actual_value

        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION_ERROR,
            troubleshooting_hints=hints,
            retryable=False,
            **kwargs,
        )


class ValidationError(OtterError):
    """Raised when user input (dates, modes, codes) fails validation."""

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        field_value: Any | None = None,
        validation_rule: str | None = None,
        **kwargs,
    ):
        details = kwargs.setdefault("details", {})
        details.update(
            {
                "field_name": field_name,
                "field_value": field_value,
                "validation_rule": validation_rule,
            }
        )

        hints = kwargs.pop(
            "troubleshooting_hints", ["Dates must be given as MM-DD-YY, e.g. 08-01-24"]
        )
        if field_name:
            hints = [*hints, f"Check the value provided for '{field_name}'"]

        super().__init__(
            message,
            category=ErrorCategory.USER_ERROR,
            severity=ErrorSeverity.LOW,
            troubleshooting_hints=hints,
            retryable=False,
            **kwargs,
        )


class APIError(OtterError):
    """Error response from the Google Sheets API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: str | None = None,
        service: str | None = None,
        endpoint: str | None = None,
        **kwargs,
    ):
        details = kwargs.setdefault("details", {})
        details.update(
            {
                "status_code": status_code,
                "response": response,
                "service": service,
                "endpoint": endpoint,
            }
        )

        kwargs.setdefault("category", ErrorCategory.API_ERROR)
        kwargs.setdefault("severity", self._determine_severity(status_code))
        kwargs.setdefault("retryable", self._is_retryable_status(status_code))
        kwargs.setdefault(
            "troubleshooting_hints", self._generate_troubleshooting_hints(status_code)
        )

        super().__init__(message, **kwargs)
        self.status_code = status_code

    @staticmethod
    def _is_retryable_status(status_code: int | None) -> bool:
        if not status_code:
            return True
        return status_code >= 500 or status_code == 429

    @staticmethod
    def _determine_severity(status_code: int | None) -> ErrorSeverity:
        if not status_code:
            return ErrorSeverity.MEDIUM
        if status_code >= 500:
            return ErrorSeverity.HIGH
        if status_code >= 400 and status_code != 429:
            return ErrorSeverity.LOW
        return ErrorSeverity.MEDIUM

    @staticmethod
    def _generate_troubleshooting_hints(status_code: int | None) -> list[str]:
        if status_code in (401, 403):
            return [
                "Check that the Google API key is valid and not restricted",
                "Make sure the workbook is shared for API-key access",
            ]
        if status_code == 404:
            return [
                "Check the workbook_id and sheet_name in the enterprise config",
            ]
        if status_code == 429:
            return ["Google Sheets quota exceeded - the request will be retried"]
        if status_code and status_code >= 500:
            return [
                "Google services are having issues; this usually resolves itself",
                "Cached data is still served until the next refresh",
            ]
        return ["Check network connectivity to sheets.googleapis.com"]


class AuthenticationError(APIError):
    """Raised when the API key is rejected."""

    def __init__(self, message: str, status_code: int = 401, **kwargs):
        super().__init__(
            message,
            status_code=status_code,
            category=ErrorCategory.SECURITY_ERROR,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )


class RateLimitError(APIError):
    """Raised when the Sheets quota is exhausted."""

    def __init__(self, message: str, retry_after: int | None = None, **kwargs):
        kwargs.setdefault("details", {})["retry_after"] = retry_after
        super().__init__(message, status_code=429, retryable=True, **kwargs)


class ServiceUnavailableError(APIError):
    """Raised for 5xx responses from Google."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.EXTERNAL_SERVICE_ERROR,
            severity=ErrorSeverity.HIGH,
            retryable=True,
            **kwargs,
        )


class NetworkError(OtterError):
    """Raised when the Sheets API cannot be reached at all."""

    def __init__(self, message: str, host: str | None = None, **kwargs):
        kwargs.setdefault("details", {})["host"] = host

        hints = [
            "Check your internet connection",
            "Try increasing OTTER_HTTP_TIMEOUT if the service is slow",
        ]
        if host:
            hints.append(f"Verify that {host} is reachable from your network")

        super().__init__(
            message,
            category=ErrorCategory.NETWORK_ERROR,
            troubleshooting_hints=hints,
            retryable=True,
            **kwargs,
        )


class DataMappingError(OtterError):
    """Raised when sheet data does not have the expected shape."""

    def __init__(
        self,
        message: str,
        expected_format: str | None = None,
        sheet: str | None = None,
        **kwargs,
    ):
        details = kwargs.setdefault("details", {})
        details.update({"expected_format": expected_format, "sheet": sheet})

        super().__init__(
            message,
            category=ErrorCategory.DATA_ERROR,
            troubleshooting_hints=[
                "Check whether the sheet layout (columns or header rows) changed",
                "Verify start_row in the enterprise config",
            ],
            retryable=False,
            **kwargs,
        )


class CacheError(OtterError):
    """Raised when the JSON cache cannot be written."""

    def __init__(self, message: str, path: str | None = None, **kwargs):
        kwargs.setdefault("details", {})["path"] = path

        super().__init__(
            message,
            category=ErrorCategory.CACHE_ERROR,
            troubleshooting_hints=[
                "Check that OTTER_CACHE_DIR exists and is writable",
                "Run 'otter clear-cache' to discard corrupt cache files",
            ],
            retryable=False,
            **kwargs,
        )


class RetryExhaustedError(OtterError):
    """Raised when all retry attempts are exhausted."""

    def __init__(
        self,
        message: str,
        attempt_count: int | None = None,
        last_error: Exception | None = None,
        operation: str | None = None,
        **kwargs,
    ):
        details = kwargs.setdefault("details", {})
        details.update(
            {
                "attempt_count": attempt_count,
                "last_error": str(last_error) if last_error else None,
                "last_error_type": type(last_error).__name__ if last_error else None,
                "operation": operation,
            }
        )

        category = ErrorCategory.SYSTEM_ERROR
        if isinstance(last_error, OtterError):
            category = last_error.category

        super().__init__(
            message,
            category=category,
            severity=ErrorSeverity.HIGH,
            troubleshooting_hints=[
                "All retry attempts have been exhausted",
                "Check the underlying cause of the repeated failures",
            ],
            retryable=False,
            **kwargs,
        )
        self.last_error = last_error


def parse_api_error(
    response_text: str,
    status_code: int,
    service: str | None = "google_sheets",
    endpoint: str | None = None,
) -> APIError:
    """Build the matching :class:`APIError` subclass for an HTTP error body.

    Google wraps errors as ``{"error": {"code", "message", "status"}}``.
    """
    try:
        payload = json.loads(response_text)
        error_data = payload.get("error", payload) if isinstance(payload, dict) else {}
        if not isinstance(error_data, dict):
            error_data = {"message": str(error_data)}
        message = error_data.get("message") or f"API error (HTTP {status_code})"
    except (json.JSONDecodeError, AttributeError):
        error_data = {}
        message = f"API error (HTTP {status_code})"

    common = {
        "response": response_text,
        "service": service,
        "endpoint": endpoint,
        "details": dict(error_data),
    }

    if status_code in (401, 403):
        return AuthenticationError(message, status_code=status_code, **common)
    if status_code == 429:
        return RateLimitError(message, **common)
    if status_code >= 500:
        return ServiceUnavailableError(message, status_code=status_code, **common)
    return APIError(message, status_code=status_code, **common)


def create_user_friendly_error(
    error: Exception, context: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Create the ``{"success": False, "error": ...}`` envelope for output."""
    if isinstance(error, OtterError):
        error_dict = error.to_dict()
    else:
        error_dict = {
            "error_type": type(error).__name__,
            "message": str(error),
            "user_message": str(error),
            "category": ErrorCategory.SYSTEM_ERROR.value,
            "severity": ErrorSeverity.MEDIUM.value,
            "retryable": False,
            "troubleshooting_hints": ["Check the application logs for more details"],
            "context": context or {},
        }

    return {"success": False, "error": error_dict, "timestamp": time.time()}
