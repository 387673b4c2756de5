"""Response enhancer — inlines company / resource names into tool results.

Records carry opaque foreign keys (``companyID``, ``assignedResourceID``,
``projectLeadResourceID``). The enhancer resolves them through the label
cache and adds ``company``, ``assignedTo`` and ``lead`` next to the IDs.
A name that cannot be resolved is simply left out; enhancement never turns
a successful tool result into a failure.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from autotask_tools.services.cache.label_cache import LabelCache

logger = logging.getLogger(__name__)

# (source ID field, inlined name field, resolver kind)
NAME_FIELDS: list[tuple[str, str, str]] = [
    ("companyID", "company", "company"),
    ("assignedResourceID", "assignedTo", "resource"),
    ("projectLeadResourceID", "lead", "resource"),
]


class ResponseEnhancer:
    """Wraps a lazily obtained ``LabelCache``."""

    def __init__(self, get_label_cache: Callable[[], Awaitable[LabelCache]]):
        self._get_label_cache = get_label_cache

    async def enhance(self, result: dict[str, Any]) -> dict[str, Any]:
        """Return ``result`` with names inlined into its items.

        Understands ``{summary, items}``, ``{message, data: [...]}`` and
        ``{message, data: {...}}``; anything else is returned unchanged.
        """
        try:
            items, rebuild = self._split(result)
            if not items:
                return result

            cache = await self._get_label_cache()
            outcomes = await asyncio.gather(
                *(self._enhance_item(cache, item) for item in items),
                return_exceptions=True,
            )

            enhanced = []
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    logger.warning(f"Dropping item that failed enhancement: {outcome}")
                    continue
                enhanced.append(outcome)
            return rebuild(enhanced)
        except Exception:
            logger.exception("Failed to enhance result")
            return result

    @staticmethod
    def _split(
        result: dict[str, Any],
    ) -> tuple[list[dict[str, Any]], Callable[[list[dict[str, Any]]], dict[str, Any]]]:
        """Find the records in ``result`` and how to put them back."""
        items = result.get("items")
        if isinstance(items, list):
            return items, lambda new: {**result, "items": new}

        data = result.get("data")
        if isinstance(data, list):
            return data, lambda new: {**result, "data": new}
        if isinstance(data, dict):
            return [data], lambda new: {**result, "data": new[0] if new else data}

        return [], lambda new: result

    async def _enhance_item(self, cache: LabelCache, item: Any) -> Any:
        if not isinstance(item, dict):
            return item

        enhanced = dict(item)
        for id_field, name_field, kind in NAME_FIELDS:
            value = item.get(id_field)
            # bool is an int subclass; IDs never are
            if not isinstance(value, int) or isinstance(value, bool):
                continue
            try:
                if kind == "company":
                    name = await cache.get_company_name(value)
                else:
                    name = await cache.get_resource_name(value)
            except Exception as e:
                logger.debug(f"Could not resolve {id_field}={value}: {e}")
                continue
            if name:
                enhanced[name_field] = name
        return enhanced
