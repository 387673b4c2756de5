"""Compact response formatting.

Search endpoints return every field of every record (~2KB per ticket). Tool
results only keep the fields needed to identify and triage a record, plus
pagination metadata, to stay inside the model's context budget.
"""
from __future__ import annotations

from typing import Any, Literal

EntityType = Literal["tickets", "companies", "projects", "resources"]

# Minimum fields needed for identification and triage, per entity type
SUMMARY_FIELDS: dict[str, list[str]] = {
    "tickets": [
        "id", "ticketNumber", "title", "status", "priority", "queueID",
        "companyID", "assignedResourceID", "createDate", "dueDateTime",
    ],
    "companies": ["id", "companyName", "isActive", "phone", "city", "state"],
    "projects": [
        "id", "projectName", "status", "companyID", "projectLeadResourceID",
        "startDateTime", "endDateTime",
    ],
    "resources": ["id", "firstName", "lastName", "email", "isActive"],
}


def pick_summary_fields(item: dict[str, Any], entity_type: EntityType) -> dict[str, Any]:
    """Keep only the non-null summary fields of one record."""
    return {
        f: item[f]
        for f in SUMMARY_FIELDS[entity_type]
        if item.get(f) is not None
    }


def format_compact_response(
    items: list[dict[str, Any]],
    entity_type: EntityType,
    page: int = 1,
    page_size: int = 25,
) -> dict[str, Any]:
    """``{"summary": {...}, "items": [...]}`` with paging hints."""
    page = page or 1
    page_size = page_size or 25
    has_more = len(items) >= page_size

    summary: dict[str, Any] = {
        "returned": len(items),
        "has_more": has_more,
        "page": page,
        "page_size": page_size,
    }
    if has_more:
        summary["hint"] = (
            f"Use page={page + 1} for more results, or a get_* tool for "
            f"full data on a specific item."
        )

    return {
        "summary": summary,
        "items": [pick_summary_fields(item, entity_type) for item in items],
    }

