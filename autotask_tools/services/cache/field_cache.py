"""Field metadata cache — lazily loaded field definitions and picklist values.

Entity types are loaded on first request and kept until invalidated. Unlike
the label cache there is no bulk preload: the set of entity types asked for
is open-ended, so each one is fetched on demand with at most one request in
flight per type.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import re
from typing import Any, Awaitable, Callable, Optional

from autotask_tools.services.cache.models import FieldInfo, PicklistValue

logger = logging.getLogger(__name__)

TICKETS = "Tickets"
QUEUE_FIELD = "queueID"
STATUS_FIELD = "status"
PRIORITY_FIELD = "priority"

_ENTITY_TYPE_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

FetchFields = Callable[[str], Awaitable[list[FieldInfo]]]


def validate_entity_type(entity_type: Any) -> str:
    """Reject names that could never be a valid entity path segment."""
    if not isinstance(entity_type, str) or not _ENTITY_TYPE_RE.match(entity_type):
        raise ValueError(f"Invalid entity type: {entity_type!r}")
    return entity_type


class FieldCache:
    """Per-entity-type memo of ``FieldInfo`` lists."""

    def __init__(self, fetch_fields: FetchFields):
        self._fetch_fields = fetch_fields
        self._cache: dict[str, list[FieldInfo]] = {}
        self._loading: dict[str, asyncio.Task] = {}

    async def get_fields(self, entity_type: str) -> list[FieldInfo]:
        """Field definitions for ``entity_type`` (lazy-loaded, cached)."""
        validate_entity_type(entity_type)

        cached = self._cache.get(entity_type)
        if cached is not None:
            return cached

        task = self._loading.get(entity_type)
        if task is None:
            task = asyncio.ensure_future(self._load_fields(entity_type))
            self._loading[entity_type] = task
            task.add_done_callback(functools.partial(self._finish_load, entity_type))
        return await asyncio.shield(task)

    def _finish_load(self, entity_type: str, task: asyncio.Task) -> None:
        if self._loading.get(entity_type) is task:
            del self._loading[entity_type]

    async def _load_fields(self, entity_type: str) -> list[FieldInfo]:
        logger.debug(f"Loading field info for entity: {entity_type}")
        try:
            fields = await self._fetch_fields(entity_type)
        except Exception as e:
            # Cached as empty: no repeated failing calls for this type
            logger.error(f"Failed to load field info for {entity_type}: {e}")
            fields = []
        else:
            logger.debug(f"Loaded {len(fields)} fields for {entity_type}")
        self._cache[entity_type] = fields
        return fields

    async def get_field(self, entity_type: str, field_name: str) -> Optional[FieldInfo]:
        """Case-insensitive field lookup."""
        wanted = field_name.lower()
        for f in await self.get_fields(entity_type):
            if f.name.lower() == wanted:
                return f
        return None

    async def get_picklist_values(
        self, entity_type: str, field_name: str
    ) -> list[PicklistValue]:
        """Active picklist values of one field; ``[]`` if absent or not a picklist."""
        f = await self.get_field(entity_type, field_name)
        if f is None or not f.is_pick_list or not f.picklist_values:
            return []
        return [v for v in f.picklist_values if v.is_active is not False]

    async def get_queues(self) -> list[PicklistValue]:
        return await self.get_picklist_values(TICKETS, QUEUE_FIELD)

    async def get_ticket_statuses(self) -> list[PicklistValue]:
        return await self.get_picklist_values(TICKETS, STATUS_FIELD)

    async def get_ticket_priorities(self) -> list[PicklistValue]:
        return await self.get_picklist_values(TICKETS, PRIORITY_FIELD)

    def clear_cache(self, entity_type: Optional[str] = None) -> None:
        """Forget one entity type, or everything when ``entity_type`` is None."""
        if entity_type:
            self._cache.pop(entity_type, None)
            logger.info(f"Field cache cleared for {entity_type}")
        else:
            self._cache.clear()
            logger.info("Field cache cleared")

    def get_cache_stats(self) -> dict[str, Any]:
        return {
            "entity_types": sorted(self._cache),
            "count": len(self._cache),
            "loading": sorted(self._loading),
        }
