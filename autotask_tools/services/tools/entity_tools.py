"""Autotask entity tools — search and fetch companies, tickets, projects, resources.

Search results are trimmed to summary fields and then passed through the
response enhancer, so the model sees ``company`` / ``assignedTo`` / ``lead``
names next to the raw foreign keys.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from autotask_tools.services.autotask.client import APIError
from autotask_tools.services.response_formatter import (
    format_compact_response,
    pick_summary_fields,
)
from autotask_tools.services.tools.formatting import clamp_page, fmt_error, to_json
from autotask_tools.services.tools.registry import registry
from autotask_tools.services.tools.tool_context import ToolContext

logger = logging.getLogger(__name__)

TICKET_STATUS_COMPLETE = 5

# Extra ticket fields kept by autotask_get_ticket on top of the summary
TICKET_DETAIL_FIELDS = ["description", "lastActivityDate", "completedDate", "ticketType", "source"]


async def _search(
    ctx: ToolContext,
    entity: str,
    filters: list[dict[str, Any]],
    page: Optional[int],
    page_size: Optional[int],
    action: str,
) -> str:
    page, size = clamp_page(page, page_size, ctx.default_page_size)
    api = getattr(ctx.client, entity)
    try:
        records = await api.query_page(filters or None, page=page, page_size=size)
    except APIError as e:
        return fmt_error(e, action)

    logger.info(f"Retrieved {len(records)} {entity} (page {page}, page_size {size})")
    result = format_compact_response(records, entity, page=page, page_size=size)
    return to_json(await ctx.enhancer.enhance(result))


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------

@registry.tool(
    name="autotask_test_connection",
    description="Check that the Autotask API is reachable with the configured credentials.",
    module="autotask",
    annotations={"display": "Testing Autotask connection..."},
)
async def autotask_test_connection(ctx: ToolContext) -> str:
    ok = await ctx.client.test_connection()
    message = (
        "Successfully connected to Autotask API"
        if ok
        else "Connection failed: Unable to connect to Autotask API"
    )
    return to_json({"message": message, "data": {"success": ok}})


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------

@registry.tool(
    name="autotask_search_companies",
    description=(
        "Search Autotask companies (customers) by name. Returns compact records "
        "with id, name, active flag and location. Use page for more results."
    ),
    module="autotask",
    annotations={"display": "Searching companies..."},
)
async def autotask_search_companies(
    ctx: ToolContext,
    search_term: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> str:
    """Search companies.

    search_term: Text contained in the company name
    is_active: Only active (true) or inactive (false) companies
    page: 1-based page number
    page_size: Records per page (max 500)
    """
    filters: list[dict[str, Any]] = []
    if search_term:
        filters.append({"op": "contains", "field": "companyName", "value": search_term})
    if is_active is not None:
        filters.append({"op": "eq", "field": "isActive", "value": is_active})
    return await _search(ctx, "companies", filters, page, page_size, "searching companies")


@registry.tool(
    name="autotask_get_company",
    description="Get one Autotask company by its numeric ID.",
    module="autotask",
    annotations={"display": "Fetching company..."},
)
async def autotask_get_company(ctx: ToolContext, company_id: int) -> str:
    """Get a company.

    company_id: Numeric company ID
    """
    try:
        company = await ctx.client.companies.get(company_id)
    except APIError as e:
        return fmt_error(e, f"fetching company {company_id}")
    if company is None:
        return f"Company {company_id} not found."
    return to_json({"message": "Company retrieved successfully", "data": company})


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------

@registry.tool(
    name="autotask_search_tickets",
    description=(
        "Search Autotask tickets. By default completed tickets are excluded; pass a "
        "status to search a specific status (see autotask_list_ticket_statuses). "
        "Results include company and assignee names."
    ),
    module="autotask",
    annotations={"display": "Searching tickets..."},
)
async def autotask_search_tickets(
    ctx: ToolContext,
    search_term: Optional[str] = None,
    status: Optional[int] = None,
    company_id: Optional[int] = None,
    assigned_resource_id: Optional[int] = None,
    unassigned: Optional[bool] = None,
    created_after: Optional[str] = None,
    created_before: Optional[str] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> str:
    """Search tickets.

    search_term: Ticket number prefix (e.g. "T2024")
    status: Ticket status value; completed tickets are excluded when omitted
    company_id: Only tickets of this company
    assigned_resource_id: Only tickets assigned to this resource
    unassigned: Only tickets with no assigned resource
    created_after: ISO date; tickets created on or after
    created_before: ISO date; tickets created on or before
    page: 1-based page number
    page_size: Records per page (max 500)
    """
    filters: list[dict[str, Any]] = []
    if search_term:
        filters.append({"op": "beginsWith", "field": "ticketNumber", "value": search_term})
    if status is not None:
        filters.append({"op": "eq", "field": "status", "value": status})
    else:
        filters.append({"op": "noteq", "field": "status", "value": TICKET_STATUS_COMPLETE})
    if unassigned:
        filters.append({"op": "notExist", "field": "assignedResourceID"})
    elif assigned_resource_id is not None:
        filters.append({"op": "eq", "field": "assignedResourceID", "value": assigned_resource_id})
    if company_id is not None:
        filters.append({"op": "eq", "field": "companyID", "value": company_id})
    if created_after:
        filters.append({"op": "gte", "field": "createDate", "value": created_after})
    if created_before:
        filters.append({"op": "lte", "field": "createDate", "value": created_before})
    return await _search(ctx, "tickets", filters, page, page_size, "searching tickets")


@registry.tool(
    name="autotask_get_ticket",
    description=(
        "Get one Autotask ticket by ID, including its description and resolved "
        "company / assignee names. Set full_details for every field."
    ),
    module="autotask",
    annotations={"display": "Fetching ticket..."},
)
async def autotask_get_ticket(
    ctx: ToolContext, ticket_id: int, full_details: bool = False
) -> str:
    """Get a ticket.

    ticket_id: Numeric ticket ID
    full_details: Return every field instead of the summary
    """
    try:
        ticket = await ctx.client.tickets.get(ticket_id)
    except APIError as e:
        return fmt_error(e, f"fetching ticket {ticket_id}")
    if ticket is None:
        return f"Ticket {ticket_id} not found."

    if not full_details:
        compact = pick_summary_fields(ticket, "tickets")
        for f in TICKET_DETAIL_FIELDS:
            if ticket.get(f) is not None:
                compact[f] = ticket[f]
        ticket = compact

    result = await ctx.enhancer.enhance(
        {"message": "Ticket details retrieved successfully", "data": ticket}
    )
    return to_json(result)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@registry.tool(
    name="autotask_search_projects",
    description="Search Autotask projects by name, company or status. Results include lead names.",
    module="autotask",
    annotations={"display": "Searching projects..."},
)
async def autotask_search_projects(
    ctx: ToolContext,
    search_term: Optional[str] = None,
    company_id: Optional[int] = None,
    status: Optional[int] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> str:
    """Search projects.

    search_term: Text contained in the project name
    company_id: Only projects of this company
    status: Project status value
    page: 1-based page number
    page_size: Records per page (max 500)
    """
    filters: list[dict[str, Any]] = []
    if search_term:
        filters.append({"op": "contains", "field": "projectName", "value": search_term})
    if company_id is not None:
        filters.append({"op": "eq", "field": "companyID", "value": company_id})
    if status is not None:
        filters.append({"op": "eq", "field": "status", "value": status})
    return await _search(ctx, "projects", filters, page, page_size, "searching projects")


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

@registry.tool(
    name="autotask_search_resources",
    description="Search Autotask resources (users / technicians) by name or email.",
    module="autotask",
    annotations={"display": "Searching resources..."},
)
async def autotask_search_resources(
    ctx: ToolContext,
    search_term: Optional[str] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> str:
    """Search resources.

    search_term: Text contained in the email, first name or last name
    page: 1-based page number
    page_size: Records per page (max 500)
    """
    filters: list[dict[str, Any]] = []
    if search_term:
        filters.append({
            "op": "or",
            "items": [
                {"op": "contains", "field": "email", "value": search_term},
                {"op": "contains", "field": "firstName", "value": search_term},
                {"op": "contains", "field": "lastName", "value": search_term},
            ],
        })
    return await _search(ctx, "resources", filters, page, page_size, "searching resources")

