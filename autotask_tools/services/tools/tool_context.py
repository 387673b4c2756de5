"""ToolContext — runtime context injected into every tool execution.

This is NOT visible to the LLM. It carries the Autotask client, the data
source adapter and the process-wide caches so tools can read entities and
resolve names without building their own plumbing.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from autotask_tools.config import Settings
from autotask_tools.services.cache.label_cache import LabelCache

if TYPE_CHECKING:
    from autotask_tools.services.autotask.client import AutotaskAPIClient
    from autotask_tools.services.autotask.data_source import DataSource
    from autotask_tools.services.cache.field_cache import FieldCache
    from autotask_tools.services.response_enhancer import ResponseEnhancer


@dataclass(frozen=True)
class ToolContext:
    """Immutable context injected into every tool invocation."""

    client: "AutotaskAPIClient"
    data_source: "DataSource"
    field_cache: "FieldCache"
    enhancer: "ResponseEnhancer"
    settings: Settings = field(default_factory=Settings)

    async def label_cache(self) -> LabelCache:
        """The process-wide label cache (preloaded on first use)."""
        return await LabelCache.get_instance(
            self.data_source,
            ttl_seconds=self.settings.label_cache_ttl_seconds,
        )

    async def existing_label_cache(self) -> Optional[LabelCache]:
        """The label cache if something already created it; never starts a preload."""
        return await LabelCache.existing_instance()

    @property
    def default_page_size(self) -> int:
        return self.settings.default_page_size
