"""Test configuration and fixtures."""
import asyncio
from collections import Counter
from typing import Any, Optional

import pytest
from tenacity import wait_none

from autotask_tools.config import Settings
from autotask_tools.services.autotask.client import AutotaskAPIClient
from autotask_tools.services.cache.label_cache import LabelCache
from autotask_tools.services.cache.models import FieldInfo

# ---------------------------------------------------------------------------
# Constants (shared with tests)
# ---------------------------------------------------------------------------
TEST_USERNAME = "api-user@example.com"
TEST_SECRET = "test-secret"
TEST_INTEGRATION_CODE = "TESTCODE123"
API_URL = "https://webservices5.autotask.net/ATServicesRest/v1.0"

COMPANIES = [
    {"id": 1, "companyName": "Acme Corp"},
    {"id": 2, "companyName": "Widget Inc"},
]
RESOURCES = [
    {"id": 10, "firstName": "John", "lastName": "Doe"},
    {"id": 20, "firstName": "Jane", "lastName": "Smith"},
]

# Shaped like GET /Tickets/entityInformation/fields → "fields"
TICKET_FIELDS_RAW = [
    {
        "name": "id", "dataType": "long", "isRequired": True, "isReadOnly": True,
        "isQueryable": True, "isReference": False, "isPickList": False,
    },
    {
        "name": "status", "dataType": "integer", "isRequired": True, "isReadOnly": False,
        "isQueryable": True, "isReference": False, "isPickList": True,
        "picklistValues": [
            {"value": "1", "label": "New", "isActive": True, "sortOrder": 1},
            {"value": "5", "label": "Complete", "isActive": True, "sortOrder": 5},
            {"value": "7", "label": "Legacy Waiting", "isActive": False, "sortOrder": 7},
        ],
    },
    {
        "name": "priority", "dataType": "integer", "isRequired": True, "isQueryable": True,
        "isPickList": True,
        "picklistValues": [
            {"value": 1, "label": "High", "isActive": True, "isDefaultValue": False},
            {"value": 2, "label": "Medium", "isActive": True, "isDefaultValue": True},
            {"value": 3, "label": "Low"},
        ],
    },
    {
        "name": "queueID", "dataType": "integer", "isQueryable": True, "isPickList": True,
        "picklistValues": [
            {"value": 29682833, "label": "Client Portal", "isActive": True},
            {"value": 29682969, "label": "Monitoring Alert", "isActive": True},
        ],
    },
    {
        "name": "title", "dataType": "string", "length": 255, "isRequired": True,
        "isQueryable": True, "isPickList": False,
    },
]


def ticket_fields() -> list[FieldInfo]:
    return [FieldInfo.from_api(f) for f in TICKET_FIELDS_RAW]


# ---------------------------------------------------------------------------
# Fake data source
# ---------------------------------------------------------------------------

class FakeDataSource:
    """In-memory ``DataSource`` that counts calls.

    Set ``gate`` to an ``asyncio.Event`` to hold every call until it is set,
    and ``errors[<method name>]`` to make a method raise. ``peak[<method name>]``
    records the most calls of one method that were running at the same time.
    """

    def __init__(
        self,
        companies: Optional[list[dict]] = None,
        resources: Optional[list[dict]] = None,
        resource_lookup: Optional[dict[int, dict]] = None,
        fields: Optional[dict[str, list[FieldInfo]]] = None,
    ):
        self.companies = list(COMPANIES) if companies is None else companies
        self.resources = list(RESOURCES) if resources is None else resources
        self.resource_lookup = resource_lookup or {}
        self.fields = fields if fields is not None else {"Tickets": ticket_fields()}
        self.errors: dict[str, Exception] = {}
        self.calls: Counter = Counter()
        self.running: Counter = Counter()
        self.peak: Counter = Counter()
        self.gate: Optional[asyncio.Event] = None

    async def _enter(self, name: str) -> None:
        self.calls[name] += 1
        self.running[name] += 1
        self.peak[name] = max(self.peak[name], self.running[name])
        try:
            if self.gate is not None:
                await self.gate.wait()
            error = self.errors.get(name)
            if error is not None:
                raise error
        finally:
            self.running[name] -= 1

    async def list_companies(self) -> list[dict[str, Any]]:
        await self._enter("list_companies")
        return list(self.companies)

    async def list_resources(self) -> list[dict[str, Any]]:
        await self._enter("list_resources")
        return list(self.resources)

    async def get_resource_by_id(self, resource_id: int) -> Optional[dict[str, Any]]:
        await self._enter("get_resource_by_id")
        return self.resource_lookup.get(resource_id)

    async def get_field_info(self, entity_type: str) -> list[FieldInfo]:
        await self._enter("get_field_info")
        return self.fields.get(entity_type, [])


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_label_cache():
    """The label cache is a process-wide singleton; isolate every test."""
    LabelCache.reset_instance()
    yield
    LabelCache.reset_instance()


@pytest.fixture
def data_source():
    return FakeDataSource()


@pytest.fixture
def test_settings():
    return Settings(
        autotask_username=TEST_USERNAME,
        autotask_secret=TEST_SECRET,
        autotask_integration_code=TEST_INTEGRATION_CODE,
        autotask_api_url=API_URL,
        max_retries=0,
    )


@pytest.fixture
async def api_client():
    """Async AutotaskAPIClient wired with test credentials and no retry delay."""
    async with AutotaskAPIClient(
        username=TEST_USERNAME,
        secret=TEST_SECRET,
        integration_code=TEST_INTEGRATION_CODE,
        api_url=API_URL,
        max_retries=2,
    ) as client:
        client._wait = wait_none()
        yield client
