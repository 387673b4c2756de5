"""Data source adapter — the narrow fetch surface the caches depend on.

The caches never talk to ``AutotaskAPIClient`` directly; they take anything
shaped like ``DataSource``, which keeps them testable with plain fakes.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from autotask_tools.services.autotask.client import AutotaskAPIClient
from autotask_tools.services.cache.models import FieldInfo

logger = logging.getLogger(__name__)

COMPANY_FIELDS = ["id", "companyName"]
RESOURCE_FIELDS = ["id", "firstName", "lastName"]


class DataSource(Protocol):
    async def list_companies(self) -> list[dict[str, Any]]: ...

    async def list_resources(self) -> list[dict[str, Any]]: ...

    async def get_resource_by_id(self, resource_id: int) -> Optional[dict[str, Any]]: ...

    async def get_field_info(self, entity_type: str) -> list[FieldInfo]: ...


class AutotaskDataSource:
    """``DataSource`` backed by the Autotask REST API."""

    def __init__(
        self,
        client: AutotaskAPIClient,
        page_size: int = 500,
        max_pages: int = 20,
    ):
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages

    async def list_companies(self) -> list[dict[str, Any]]:
        companies = await self.client.companies.query_all(
            page_size=self.page_size,
            max_pages=self.max_pages,
            include_fields=COMPANY_FIELDS,
        )
        logger.info(f"Listed {len(companies)} companies")
        return companies

    async def list_resources(self) -> list[dict[str, Any]]:
        resources = await self.client.resources.query_all(
            page_size=self.page_size,
            max_pages=self.max_pages,
            include_fields=RESOURCE_FIELDS,
        )
        logger.info(f"Listed {len(resources)} resources")
        return resources

    async def get_resource_by_id(self, resource_id: int) -> Optional[dict[str, Any]]:
        return await self.client.resources.get(resource_id)

    async def get_field_info(self, entity_type: str) -> list[FieldInfo]:
        raw_fields = await self.client.entity(entity_type).field_info()
        return [FieldInfo.from_api(f) for f in raw_fields if f.get("name")]
