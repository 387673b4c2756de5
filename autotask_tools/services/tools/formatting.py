"""Shared result helpers for the Autotask tools."""
from __future__ import annotations

import json
from typing import Any

from autotask_tools.services.autotask.client import APIError, MAX_QUERY_RECORDS
from autotask_tools.utils import utcnow


def to_json(payload: dict[str, Any]) -> str:
    """Serialize a tool result, stamped with the time it was produced."""
    return json.dumps({**payload, "timestamp": utcnow().isoformat()}, default=str)


def fmt_error(e: APIError, action: str) -> str:
    """Format an API error for LLM consumption."""
    if e.status_code == 401:
        return f"Authentication failed while {action}. Check the Autotask API credentials."
    if e.status_code == 403:
        return f"Permission denied while {action}. The API user may not have access to this data."
    if e.status_code == 404:
        return f"Not found: {action}. The requested record may not exist."
    if e.status_code == 405:
        return f"Not supported: {action}. This endpoint is not available to the API user."
    return f"Failed to {action}: {e.message}"


def clamp_page(page: int | None, page_size: int | None, default_size: int) -> tuple[int, int]:
    page = max(page or 1, 1)
    size = min(max(page_size or default_size, 1), MAX_QUERY_RECORDS)
    return page, size
