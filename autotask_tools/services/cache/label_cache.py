"""Label cache — resolves company and resource IDs to display names.

One instance per process. The first ``get_instance()`` call starts a bulk
preload of both lists; every caller arriving while it runs awaits the same
task, so the data source sees exactly one ``list_companies`` and one
``list_resources`` call however many tool invocations race for names.

Usage:
    cache = await LabelCache.get_instance(data_source)
    await cache.get_company_name(1)      # "Acme Corp"
    await cache.get_resource_name(999)   # None
"""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ClassVar, Optional

from autotask_tools.services.cache.models import CacheEntry

if TYPE_CHECKING:
    from autotask_tools.services.autotask.data_source import DataSource

COMPANIES = "companies"
RESOURCES = "resources"

DEFAULT_TTL_SECONDS = 3600


def company_label(record: dict[str, Any]) -> Optional[str]:
    name = str(record.get("companyName") or "").strip()
    return name or None


def resource_label(record: dict[str, Any]) -> Optional[str]:
    first = record.get("firstName") or ""
    last = record.get("lastName") or ""
    label = f"{first} {last}".strip()
    return label or None


class LabelCache:
    """Bulk-preloaded ``id → name`` maps for companies and resources."""

    # Promise memoization: the in-flight (or finished) construction task
    _init_task: ClassVar[Optional[asyncio.Task]] = None

    def __init__(
        self,
        data_source: "DataSource",
        logger: Optional[logging.Logger] = None,
        ttl_seconds: Optional[float] = DEFAULT_TTL_SECONDS,
    ):
        self._data_source = data_source
        self.logger = logger or logging.getLogger(__name__)
        self.ttl_seconds = ttl_seconds

        self._companies: CacheEntry[int, str] = CacheEntry()
        self._resources: CacheEntry[int, str] = CacheEntry()

        self._load_task: Optional[asyncio.Task] = None
        self._lookups: dict[int, asyncio.Task] = {}
        # Bumped by clear_cache() so a load started before the clear is discarded
        self._generation = 0

    # -- singleton --

    @classmethod
    async def get_instance(
        cls,
        data_source: "DataSource",
        logger: Optional[logging.Logger] = None,
        ttl_seconds: Optional[float] = DEFAULT_TTL_SECONDS,
    ) -> "LabelCache":
        """Return the process-wide cache, creating and preloading it on first use."""
        task = cls._init_task
        if task is None or (
            task.done() and (task.cancelled() or task.exception() is not None)
        ):
            task = asyncio.ensure_future(cls._create(data_source, logger, ttl_seconds))
            cls._init_task = task
        # Shielded: one caller being cancelled must not cancel the shared preload
        return await asyncio.shield(task)

    @classmethod
    async def _create(
        cls,
        data_source: "DataSource",
        logger: Optional[logging.Logger],
        ttl_seconds: Optional[float],
    ) -> "LabelCache":
        instance = cls(data_source, logger, ttl_seconds)
        await instance._ensure_loaded()
        return instance

    @classmethod
    async def existing_instance(cls) -> Optional["LabelCache"]:
        """The process-wide cache if one has been created, else None.

        Never starts a preload; waits for one that is already running.
        """
        task = cls._init_task
        if task is None or (
            task.done() and (task.cancelled() or task.exception() is not None)
        ):
            return None
        return await asyncio.shield(task)

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the process-wide instance. Only meant for test isolation."""
        task = cls._init_task
        cls._init_task = None
        if task is not None and not task.done():
            task.cancel()

    # -- lookups --

    async def get_company_name(self, company_id: int) -> Optional[str]:
        await self._ensure_loaded()
        return self._companies.get(company_id)

    async def get_resource_name(self, resource_id: int) -> Optional[str]:
        await self._ensure_loaded()
        name = self._resources.get(resource_id)
        if name is not None:
            return name

        # Empty snapshot: either listing resources is unusable for this API
        # user (per-ID lookups would hit the same wall) or the cache was
        # cleared while this call waited
        if self._resources.count == 0:
            return None

        return await self._lookup_resource(resource_id)

    # -- diagnostics / invalidation --

    def get_cache_stats(self) -> dict[str, dict[str, Any]]:
        return {
            COMPANIES: self._companies.stats(),
            RESOURCES: self._resources.stats(),
        }

    @staticmethod
    def unloaded_stats() -> dict[str, dict[str, Any]]:
        """Stats of a cache that has not been created yet."""
        return {COMPANIES: CacheEntry().stats(), RESOURCES: CacheEntry().stats()}

    def clear_cache(self) -> None:
        """Drop both snapshots. The next lookup triggers a fresh preload.

        A load still in flight keeps running but its results are discarded.
        """
        self._generation += 1
        self._companies.clear()
        self._resources.clear()
        self.logger.info("Label cache cleared")

    # -- loading --

    def _segments(self) -> dict[str, tuple[CacheEntry[int, str], Callable[[], Awaitable[list]], Callable]]:
        return {
            COMPANIES: (self._companies, self._data_source.list_companies, company_label),
            RESOURCES: (self._resources, self._data_source.list_resources, resource_label),
        }

    def _pending_segments(self) -> list[str]:
        return [
            kind
            for kind, (entry, _, _) in self._segments().items()
            if not entry.is_valid or entry.is_expired(self.ttl_seconds)
        ]

    async def _ensure_loaded(self) -> None:
        """Wait until both segments hold a settled load of the current generation.

        A load made stale by clear_cache() is awaited before the fresh one
        starts, so at most one bulk load is in flight at any time.
        """
        while True:
            task = self._load_task
            if task is None or task.done():
                kinds = self._pending_segments()
                if not kinds:
                    return
                task = asyncio.ensure_future(self._load(kinds, self._generation))
                task.add_done_callback(self._on_load_done)
                self._load_task = task
            await asyncio.shield(task)

    def _on_load_done(self, task: asyncio.Task) -> None:
        if self._load_task is task:
            self._load_task = None

    async def _load(self, kinds: list[str], generation: int) -> None:
        # Independent: a failure on one side never aborts the other
        await asyncio.gather(*(self._load_segment(kind, generation) for kind in kinds))

    async def _load_segment(self, kind: str, generation: int) -> None:
        entry, fetch, label_for = self._segments()[kind]
        refreshing = entry.loaded_at is not None

        try:
            records = await fetch()
        except Exception as e:
            if generation != self._generation:
                return
            if getattr(e, "status_code", None) == 405:
                self.logger.warning(
                    f"Listing {kind} is not allowed for this API user (HTTP 405); "
                    f"{kind} names will not be preloaded"
                )
            else:
                self.logger.warning(f"Failed to preload {kind}: {e}")
            # Settled: keep whatever snapshot exists, never retry automatically
            entry.mark_failed()
            return

        if generation != self._generation:
            self.logger.debug(f"Discarding {kind} preload started before cache clear")
            return

        items: dict[int, str] = {}
        for record in records or []:
            label = label_for(record)
            try:
                record_id = int(record.get("id"))
            except (TypeError, ValueError):
                continue
            if label is not None:
                items[record_id] = label

        entry.replace(items)
        verb = "Refreshed" if refreshing else "Preloaded"
        self.logger.info(f"{verb} {len(items)} {kind} names")

    # -- single-ID fallback --

    async def _lookup_resource(self, resource_id: int) -> Optional[str]:
        """Fetch one resource that the bulk snapshot does not know about.

        Concurrent misses for the same ID share one request. The result
        answers the call only; the bulk snapshot is left untouched.
        """
        task = self._lookups.get(resource_id)
        if task is None:
            task = asyncio.ensure_future(self._fetch_resource(resource_id))
            self._lookups[resource_id] = task
            task.add_done_callback(functools.partial(self._forget_lookup, resource_id))
        return await asyncio.shield(task)

    def _forget_lookup(self, resource_id: int, task: asyncio.Task) -> None:
        if self._lookups.get(resource_id) is task:
            del self._lookups[resource_id]

    async def _fetch_resource(self, resource_id: int) -> Optional[str]:
        try:
            record = await self._data_source.get_resource_by_id(resource_id)
        except Exception as e:
            self.logger.warning(f"Direct lookup of resource {resource_id} failed: {e}")
            return None
        if not record:
            return None
        return resource_label(record)
