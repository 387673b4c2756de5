"""Metadata and cache tools — picklists, field definitions, name-cache diagnostics."""
from __future__ import annotations

import logging
from typing import Optional

from autotask_tools.services.cache.label_cache import LabelCache
from autotask_tools.services.cache.models import PicklistValue
from autotask_tools.services.tools.formatting import to_json
from autotask_tools.services.tools.registry import registry
from autotask_tools.services.tools.tool_context import ToolContext

logger = logging.getLogger(__name__)


def _simple_list(values: list[PicklistValue]) -> list[dict]:
    return [{"id": v.value, "name": v.label, "is_active": v.is_active} for v in values]


# ---------------------------------------------------------------------------
# Ticket picklists
# ---------------------------------------------------------------------------

@registry.tool(
    name="autotask_list_queues",
    description=(
        "List the ticket queues configured in Autotask (id and name). Use the id "
        "as queueID when searching or creating tickets."
    ),
    module="metadata",
    annotations={"display": "Fetching queues..."},
)
async def autotask_list_queues(ctx: ToolContext) -> str:
    queues = await ctx.field_cache.get_queues()
    return to_json({"message": f"Found {len(queues)} queues", "data": _simple_list(queues)})


@registry.tool(
    name="autotask_list_ticket_statuses",
    description="List the ticket status values (id and name) configured in Autotask.",
    module="metadata",
    annotations={"display": "Fetching ticket statuses..."},
)
async def autotask_list_ticket_statuses(ctx: ToolContext) -> str:
    statuses = await ctx.field_cache.get_ticket_statuses()
    return to_json({
        "message": f"Found {len(statuses)} ticket statuses",
        "data": _simple_list(statuses),
    })


@registry.tool(
    name="autotask_list_ticket_priorities",
    description="List the ticket priority values (id and name) configured in Autotask.",
    module="metadata",
    annotations={"display": "Fetching ticket priorities..."},
)
async def autotask_list_ticket_priorities(ctx: ToolContext) -> str:
    priorities = await ctx.field_cache.get_ticket_priorities()
    return to_json({
        "message": f"Found {len(priorities)} ticket priorities",
        "data": _simple_list(priorities),
    })


# ---------------------------------------------------------------------------
# Field definitions
# ---------------------------------------------------------------------------

@registry.tool(
    name="autotask_get_field_info",
    description=(
        "Get field definitions for an Autotask entity type (e.g. Tickets, Companies, "
        "Projects). Without field_name returns a summary of every field; with "
        "field_name returns that field including its picklist values."
    ),
    module="metadata",
    annotations={"display": "Fetching field definitions..."},
)
async def autotask_get_field_info(
    ctx: ToolContext, entity_type: str, field_name: Optional[str] = None
) -> str:
    """Describe an entity's fields.

    entity_type: Entity type name, e.g. "Tickets"
    field_name: Optional field name (case-insensitive)
    """
    if field_name:
        f = await ctx.field_cache.get_field(entity_type, field_name)
        if f is None:
            return to_json({
                "message": f"Field '{field_name}' not found on {entity_type}",
                "data": None,
            })
        return to_json({
            "message": f"Field info for {entity_type}.{f.name}",
            "data": f.model_dump(by_alias=True, exclude_none=True),
        })

    fields = await ctx.field_cache.get_fields(entity_type)
    summary = [
        {
            "name": f.name,
            "dataType": f.data_type,
            "isRequired": f.is_required,
            "isPickList": f.is_pick_list,
            "isQueryable": f.is_queryable,
            "picklistValueCount": len(f.picklist_values or []),
        }
        for f in fields
    ]
    return to_json({"message": f"Found {len(fields)} fields for {entity_type}", "data": summary})


@registry.tool(
    name="autotask_get_picklist_values",
    description=(
        "List the active values (id and name) of any picklist field, e.g. "
        "entity_type=Tickets field_name=issueType."
    ),
    module="metadata",
    annotations={"display": "Fetching picklist values..."},
)
async def autotask_get_picklist_values(
    ctx: ToolContext, entity_type: str, field_name: str
) -> str:
    """Active picklist values of one field.

    entity_type: Entity type name, e.g. "Tickets"
    field_name: Picklist field name (case-insensitive)
    """
    values = await ctx.field_cache.get_picklist_values(entity_type, field_name)
    return to_json({
        "message": f"Found {len(values)} values for {entity_type}.{field_name}",
        "data": _simple_list(values),
    })


# ---------------------------------------------------------------------------
# Cache diagnostics
# ---------------------------------------------------------------------------

@registry.tool(
    name="autotask_cache_stats",
    description="Show what the company/resource name cache and field cache currently hold.",
    module="metadata",
    annotations={"display": "Reading cache stats..."},
)
async def autotask_cache_stats(ctx: ToolContext) -> str:
    # Diagnostics only: a cache nobody has used yet is reported, not loaded
    labels = await ctx.existing_label_cache()
    label_stats = labels.get_cache_stats() if labels is not None else LabelCache.unloaded_stats()
    return to_json({
        "message": "Cache statistics",
        "data": {
            "labels": label_stats,
            "fields": ctx.field_cache.get_cache_stats(),
        },
    })


@registry.tool(
    name="autotask_clear_cache",
    description=(
        "Clear cached metadata. With entity_type clears that entity's field "
        "definitions only; without it clears all field definitions and the "
        "company/resource name cache (reloaded on next use)."
    ),
    module="metadata",
    annotations={"display": "Clearing caches..."},
)
async def autotask_clear_cache(ctx: ToolContext, entity_type: Optional[str] = None) -> str:
    """Invalidate caches.

    entity_type: Only clear field definitions of this entity type
    """
    if entity_type:
        ctx.field_cache.clear_cache(entity_type)
        return to_json({"message": f"Cleared field cache for {entity_type}", "data": None})

    ctx.field_cache.clear_cache()
    labels = await ctx.existing_label_cache()
    if labels is not None:
        labels.clear_cache()
    return to_json({"message": "Cleared field and name caches", "data": None})
