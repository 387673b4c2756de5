"""AutotaskRuntime — composition root for hosting the Autotask tools.

Builds the API client, the data source adapter, the field cache and the
response enhancer from ``Settings``, and exposes the registered tools in
LLM tool_use format plus a single ``call_tool`` entry point. Whatever
transport hosts the tools only needs this object.

Usage:
    async with AutotaskRuntime() as runtime:
        tools = runtime.tools_for_anthropic()
        text = await runtime.call_tool("autotask_search_tickets", {"company_id": 1})
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from autotask_tools.config import Settings, validate_settings
from autotask_tools.logging_config import setup_logging
from autotask_tools.services.autotask.client import AutotaskAPIClient
from autotask_tools.services.autotask.data_source import AutotaskDataSource
from autotask_tools.services.cache.field_cache import FieldCache
from autotask_tools.services.cache.label_cache import LabelCache
from autotask_tools.services.response_enhancer import ResponseEnhancer
from autotask_tools.services.tools import entity_tools, metadata_tools  # noqa: F401  (registers tools)
from autotask_tools.services.tools.registry import ToolRegistry, registry
from autotask_tools.services.tools.tool_context import ToolContext

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Settings are missing or invalid."""


class AutotaskRuntime:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[AutotaskAPIClient] = None,
        tool_registry: ToolRegistry = registry,
    ):
        self.settings = settings or Settings()
        setup_logging(self.settings.log_level, self.settings.log_format)

        if client is None:
            errors = validate_settings(self.settings)
            if errors:
                raise ConfigurationError("; ".join(errors))
            client = AutotaskAPIClient(
                username=self.settings.autotask_username,
                secret=self.settings.autotask_secret,
                integration_code=self.settings.autotask_integration_code,
                api_url=self.settings.autotask_api_url,
                timeout=self.settings.request_timeout,
                max_retries=self.settings.max_retries,
            )

        self.client = client
        self.registry = tool_registry
        self.data_source = AutotaskDataSource(
            client,
            page_size=self.settings.preload_page_size,
            max_pages=self.settings.preload_max_pages,
        )
        self.field_cache = FieldCache(self.data_source.get_field_info)
        self.enhancer = ResponseEnhancer(self.label_cache)
        self.context = ToolContext(
            client=self.client,
            data_source=self.data_source,
            field_cache=self.field_cache,
            enhancer=self.enhancer,
            settings=self.settings,
        )
        logger.info(f"Autotask runtime ready ({len(self.registry)} tools)")

    async def label_cache(self) -> LabelCache:
        return await LabelCache.get_instance(
            self.data_source,
            ttl_seconds=self.settings.label_cache_ttl_seconds,
        )

    def tools_for_anthropic(self) -> list[dict]:
        return self.registry.get_tools_for_anthropic()

    def tools_for_openai(self) -> list[dict]:
        return self.registry.get_tools_for_openai()

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> str:
        logger.debug(f"Calling tool: {name} {arguments or {}}")
        return await self.registry.execute_tool(name, self.context, arguments or {})

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "AutotaskRuntime":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
