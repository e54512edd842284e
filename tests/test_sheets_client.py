import httpx
import pytest

from otter.clients import sheets
from otter.utils.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DataMappingError,
    NetworkError,
    RetryExhaustedError,
    ServiceUnavailableError,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_build_values_url():
    url = sheets.build_values_url("https://sheets.googleapis.com/", "WB", "Sheet1", 2)

    assert url == "https://sheets.googleapis.com/v4/spreadsheets/WB/values/Sheet1!A2:Z"
    assert "My%20Sheet!A1:Z" in sheets.build_values_url("https://x", "WB", "My Sheet")


def test_parse_values_response_trims_and_skips_non_rows():
    payload = {"values": [[" a ", "b "], "junk", [None, 3]]}

    assert sheets.parse_values_response(payload) == [["a", "b"], ["", "3"]]


def test_parse_values_response_requires_values():
    with pytest.raises(DataMappingError):
        sheets.parse_values_response({"range": "A1:Z"}, "Registrants")


@pytest.mark.asyncio
async def test_fetch_sheet_values(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"values": [["  01-02-24 ", "Yes"], ["x"]]})

    async with _client(handler) as client:
        rows = await sheets.fetch_sheet_values("WB", "Registrants", 2, "secret", settings, client)

    assert rows == [["01-02-24", "Yes"], ["x"]]
    assert seen[0].url.path == "/v4/spreadsheets/WB/values/Registrants!A2:Z"
    assert seen[0].url.params["key"] == "secret"


@pytest.mark.asyncio
async def test_fetch_sheet_values_requires_api_key(settings):
    with pytest.raises(ConfigurationError):
        await sheets.fetch_sheet_values("WB", "Registrants", 1, "", settings)


@pytest.mark.asyncio
async def test_missing_values_raises_data_mapping_error(settings):
    async with _client(lambda request: httpx.Response(200, json={})) as client:
        with pytest.raises(DataMappingError):
            await sheets.fetch_sheet_values("WB", "Registrants", 1, "k", settings, client)


@pytest.mark.asyncio
async def test_forbidden_is_not_retried(settings, no_backoff):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(
            403,
            json={"error": {"code": 403, "message": "The caller does not have permission"}},
        )

    async with _client(handler) as client:
        with pytest.raises(AuthenticationError) as exc_info:
            await sheets.fetch_sheet_values("WB", "Registrants", 1, "k", settings, client)

    assert len(calls) == 1
    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "The caller does not have permission"


@pytest.mark.asyncio
async def test_transient_errors_are_retried(settings, no_backoff):
    responses = [
        httpx.Response(503, text="Service Unavailable"),
        httpx.Response(500, json={"error": {"message": "Internal error"}}),
        httpx.Response(200, json={"values": [["ok"]]}),
    ]

    async with _client(lambda request: responses.pop(0)) as client:
        rows = await sheets.fetch_sheet_values("WB", "Registrants", 1, "k", settings, client)

    assert rows == [["ok"]]
    assert responses == []


@pytest.mark.asyncio
async def test_retries_exhausted(settings, no_backoff):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text="Service Unavailable")

    async with _client(handler) as client:
        with pytest.raises(RetryExhaustedError) as exc_info:
            await sheets.fetch_sheet_values("WB", "Registrants", 1, "k", settings, client)

    assert len(calls) == settings.http_retries
    assert isinstance(exc_info.value.last_error, ServiceUnavailableError)


@pytest.mark.asyncio
async def test_transport_errors_become_network_errors(settings, no_backoff):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(RetryExhaustedError) as exc_info:
            await sheets.fetch_sheet_values("WB", "Registrants", 1, "k", settings, client)

    assert isinstance(exc_info.value.last_error, NetworkError)
