"""Tests for AutotaskAPIClient — auth headers, zone detection, query paging, errors.

Tests validate:
1. Every request carries the three Autotask auth headers
2. The REST base URL is auto-detected from zoneInformation when not configured
3. Query bodies (filter / MaxRecords / IncludeFields) and nextPageUrl paging
4. HTTP and API-level errors surface as APIError; transient ones are retried
"""

import json

import httpx
import pytest
import respx
from tenacity import wait_none

from autotask_tools.config import ZONE_INFORMATION_URL
from autotask_tools.services.autotask.client import (
    MATCH_ALL_FILTER,
    APIError,
    AutotaskAPIClient,
    EntityAPI,
    normalize_api_url,
)
from autotask_tools.services.response_formatter import SUMMARY_FIELDS

# ---------------------------------------------------------------------------
# Test constants (must match conftest.py)
# ---------------------------------------------------------------------------
TEST_USERNAME = "api-user@example.com"
TEST_SECRET = "test-secret"
TEST_INTEGRATION_CODE = "TESTCODE123"
API_URL = "https://webservices5.autotask.net/ATServicesRest/v1.0"

OK_EMPTY = {"items": [], "pageDetails": {"count": 0, "nextPageUrl": None}}


def assert_autotask_auth(request: httpx.Request) -> None:
    assert request.headers.get("apiintegrationcode") == TEST_INTEGRATION_CODE
    assert request.headers.get("username") == TEST_USERNAME
    assert request.headers.get("secret") == TEST_SECRET


def body_of(request: httpx.Request) -> dict:
    return json.loads(request.content)


# =========================================================================
# A. Helpers and construction
# =========================================================================


class TestNormalizeApiUrl:
    def test_appends_version(self):
        assert (
            normalize_api_url("https://webservices5.autotask.net/ATServicesRest/")
            == API_URL
        )

    def test_keeps_existing_version(self):
        assert normalize_api_url(API_URL + "/") == API_URL


class TestAPIError:
    def test_retryable_statuses(self):
        assert APIError("x", status_code=503).retryable is True
        assert APIError("x", status_code=429).retryable is True
        assert APIError("x", status_code=404).retryable is False

    def test_method_not_allowed(self):
        assert APIError("x", status_code=405).is_method_not_allowed is True
        assert APIError("x", status_code=500).is_method_not_allowed is False


class TestBaseAPIClient:
    async def test_default_headers_no_auth(self):
        """Credentials are sent per request, never stored on the httpx client."""
        async with AutotaskAPIClient(
            TEST_USERNAME, TEST_SECRET, TEST_INTEGRATION_CODE, api_url=API_URL
        ) as c:
            defaults = {k.lower() for k in c._http.headers}
            assert "secret" not in defaults
            assert "apiintegrationcode" not in defaults
            assert c._http.headers.get("accept") == "application/json"

    async def test_entity_returns_named_api(self, api_client):
        assert api_client.entity("TicketNotes").entity == "TicketNotes"
        assert api_client.tickets.entity == "Tickets"

    async def test_sub_apis_match_formatted_entities(self, api_client):
        sub_apis = {name for name, value in vars(api_client).items() if isinstance(value, EntityAPI)}
        assert sub_apis == set(SUMMARY_FIELDS)


# =========================================================================
# B. Zone detection
# =========================================================================


class TestZoneDetection:
    async def test_detects_and_caches_zone_url(self):
        with respx.mock(assert_all_called=True) as router:
            zone = router.get(ZONE_INFORMATION_URL).respond(
                200,
                json={
                    "zoneName": "America East 5",
                    "url": "https://webservices5.autotask.net/ATServicesRest/",
                },
            )
            router.post(f"{API_URL}/Companies/query").respond(200, json=OK_EMPTY)

            async with AutotaskAPIClient(
                TEST_USERNAME, TEST_SECRET, TEST_INTEGRATION_CODE
            ) as c:
                await c.companies.query()
                await c.companies.query()
                assert c.api_url == API_URL

            assert zone.call_count == 1
            assert zone.calls[0].request.url.params["user"] == TEST_USERNAME

    async def test_zone_response_without_url_raises(self):
        with respx.mock() as router:
            router.get(ZONE_INFORMATION_URL).respond(200, json={"zoneName": "?"})
            async with AutotaskAPIClient(
                TEST_USERNAME, TEST_SECRET, TEST_INTEGRATION_CODE
            ) as c:
                with pytest.raises(APIError, match="no 'url'"):
                    await c.detect_api_url()

    async def test_zone_http_error_raises(self):
        with respx.mock() as router:
            router.get(ZONE_INFORMATION_URL).respond(500, text="down")
            async with AutotaskAPIClient(
                TEST_USERNAME, TEST_SECRET, TEST_INTEGRATION_CODE
            ) as c:
                with pytest.raises(APIError, match="Zone detection failed") as exc_info:
                    await c.detect_api_url()
                assert exc_info.value.status_code == 500

    async def test_configured_url_skips_detection(self, api_client):
        assert await api_client.detect_api_url() == API_URL


# =========================================================================
# C. Entity requests
# =========================================================================


class TestEntityAPI:
    @respx.mock(base_url=API_URL)
    async def test_get_returns_item(self, api_client, respx_mock):
        respx_mock.get("/Tickets/7").respond(
            200, json={"item": {"id": 7, "title": "Printer down"}}
        )
        ticket = await api_client.tickets.get(7)
        assert ticket == {"id": 7, "title": "Printer down"}
        assert_autotask_auth(respx_mock.calls[0].request)

    @respx.mock(base_url=API_URL)
    async def test_get_null_item_returns_none(self, api_client, respx_mock):
        respx_mock.get("/Companies/99").respond(200, json={"item": None})
        assert await api_client.companies.get(99) is None

    @respx.mock(base_url=API_URL)
    async def test_query_without_filters_matches_all(self, api_client, respx_mock):
        respx_mock.post("/Companies/query").respond(200, json=OK_EMPTY)
        await api_client.companies.query()
        assert body_of(respx_mock.calls[0].request) == {"filter": [MATCH_ALL_FILTER]}
        assert_autotask_auth(respx_mock.calls[0].request)

    @respx.mock(base_url=API_URL)
    async def test_query_body(self, api_client, respx_mock):
        respx_mock.post("/Resources/query").respond(200, json=OK_EMPTY)
        filters = [{"op": "eq", "field": "isActive", "value": True}]
        await api_client.resources.query(
            filters, max_records=2000, include_fields=["id", "firstName"]
        )
        body = body_of(respx_mock.calls[0].request)
        assert body["filter"] == filters
        assert body["MaxRecords"] == 500
        assert body["IncludeFields"] == ["id", "firstName"]

    @respx.mock(base_url=API_URL)
    async def test_field_info(self, api_client, respx_mock):
        respx_mock.get("/Tickets/entityInformation/fields").respond(
            200, json={"fields": [{"name": "status"}, {"name": "priority"}]}
        )
        fields = await api_client.tickets.field_info()
        assert [f["name"] for f in fields] == ["status", "priority"]


# =========================================================================
# D. Paging
# =========================================================================


class TestPaging:
    @respx.mock(base_url=API_URL)
    async def test_query_all_follows_next_page(self, api_client, respx_mock):
        respx_mock.post("/Companies/query").respond(
            200,
            json={
                "items": [{"id": 1}, {"id": 2}],
                "pageDetails": {"nextPageUrl": f"{API_URL}/Companies/query/next?paging=p2"},
            },
        )
        respx_mock.get("/Companies/query/next", params={"paging": "p2"}).respond(
            200,
            json={"items": [{"id": 3}], "pageDetails": {"nextPageUrl": None}},
        )
        items = await api_client.companies.query_all(page_size=2)
        assert [i["id"] for i in items] == [1, 2, 3]
        assert len(respx_mock.calls) == 2
        assert_autotask_auth(respx_mock.calls[1].request)

    @respx.mock(base_url=API_URL)
    async def test_query_all_stops_at_max_pages(self, api_client, respx_mock, caplog):
        respx_mock.post("/Companies/query").respond(
            200,
            json={
                "items": [{"id": 1}],
                "pageDetails": {"nextPageUrl": f"{API_URL}/Companies/query/next?paging=p2"},
            },
        )
        items = await api_client.companies.query_all(page_size=1, max_pages=1)
        assert items == [{"id": 1}]
        assert len(respx_mock.calls) == 1
        assert "more are available" in caplog.text

    @respx.mock(base_url=API_URL)
    async def test_query_page_walks_to_requested_page(self, api_client, respx_mock):
        respx_mock.post("/Tickets/query").respond(
            200,
            json={
                "items": [{"id": 1}],
                "pageDetails": {"nextPageUrl": f"{API_URL}/Tickets/query/next?paging=p2"},
            },
        )
        respx_mock.get("/Tickets/query/next", params={"paging": "p2"}).respond(
            200, json={"items": [{"id": 2}], "pageDetails": {"nextPageUrl": None}}
        )
        assert await api_client.tickets.query_page(page=2, page_size=1) == [{"id": 2}]

    @respx.mock(base_url=API_URL)
    async def test_query_page_past_end_is_empty(self, api_client, respx_mock):
        respx_mock.post("/Tickets/query").respond(
            200, json={"items": [{"id": 1}], "pageDetails": {"nextPageUrl": None}}
        )
        assert await api_client.tickets.query_page(page=3, page_size=1) == []


# =========================================================================
# E. Error handling and retries
# =========================================================================


class TestErrorHandling:
    @respx.mock(base_url=API_URL)
    async def test_404_raises(self, api_client, respx_mock):
        respx_mock.get("/Tickets/1").respond(404, text="Not Found")
        with pytest.raises(APIError, match="HTTP 404") as exc_info:
            await api_client.tickets.get(1)
        assert exc_info.value.status_code == 404
        assert len(respx_mock.calls) == 1

    @respx.mock(base_url=API_URL)
    async def test_405_is_not_retried(self, api_client, respx_mock):
        respx_mock.post("/Resources/query").respond(405, text="Method Not Allowed")
        with pytest.raises(APIError) as exc_info:
            await api_client.resources.query()
        assert exc_info.value.is_method_not_allowed
        assert len(respx_mock.calls) == 1

    @respx.mock(base_url=API_URL)
    async def test_errors_body_raises(self, api_client, respx_mock):
        respx_mock.post("/Tickets/query").respond(
            200, json={"items": [], "errors": ["Unable to find status in the Ticket Entity."]}
        )
        with pytest.raises(APIError, match="Unable to find status"):
            await api_client.tickets.query()

    @respx.mock(base_url=API_URL)
    async def test_non_json_response(self, api_client, respx_mock):
        respx_mock.get("/Tickets/1").respond(
            200, text="plain text", headers={"content-type": "text/plain"}
        )
        assert await api_client._get("/Tickets/1") == {"text": "plain text"}

    @respx.mock(base_url=API_URL)
    async def test_retries_transient_status(self, api_client, respx_mock):
        respx_mock.get("/Tickets/1").mock(
            side_effect=[
                httpx.Response(503, text="busy"),
                httpx.Response(429, text="slow down"),
                httpx.Response(200, json={"item": {"id": 1}}),
            ]
        )
        assert await api_client.tickets.get(1) == {"id": 1}
        assert len(respx_mock.calls) == 3

    @respx.mock(base_url=API_URL)
    async def test_gives_up_after_max_retries(self, api_client, respx_mock):
        respx_mock.get("/Tickets/1").respond(500, text="Internal Error")
        with pytest.raises(APIError, match="HTTP 500"):
            await api_client.tickets.get(1)
        # fixture: max_retries=2 → three attempts
        assert len(respx_mock.calls) == 3

    @respx.mock(base_url=API_URL)
    async def test_timeout_raises(self, api_client, respx_mock):
        respx_mock.get("/Tickets/1").mock(
            side_effect=httpx.ConnectTimeout("Connection timed out")
        )
        with pytest.raises(APIError, match="Request failed"):
            await api_client.tickets.get(1)
        assert len(respx_mock.calls) == 3

    @respx.mock(base_url=API_URL)
    async def test_no_retries_when_disabled(self, respx_mock):
        respx_mock.get("/Tickets/1").respond(503, text="busy")
        async with AutotaskAPIClient(
            TEST_USERNAME, TEST_SECRET, TEST_INTEGRATION_CODE,
            api_url=API_URL, max_retries=0,
        ) as c:
            c._wait = wait_none()
            with pytest.raises(APIError, match="HTTP 503"):
                await c.tickets.get(1)
        assert len(respx_mock.calls) == 1


# =========================================================================
# F. Connection test
# =========================================================================


class TestConnection:
    @respx.mock(base_url=API_URL)
    async def test_connection_ok(self, api_client, respx_mock):
        respx_mock.post("/Companies/query").respond(200, json=OK_EMPTY)
        assert await api_client.test_connection() is True
        assert body_of(respx_mock.calls[0].request)["MaxRecords"] == 1

    @respx.mock(base_url=API_URL)
    async def test_connection_unauthorized(self, api_client, respx_mock):
        respx_mock.post("/Companies/query").respond(401, text="Unauthorized")
        assert await api_client.test_connection() is False
