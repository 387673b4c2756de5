"""ToolRegistry — collects the Autotask tools and describes them to LLMs.

A tool is an async function whose first parameter is the ``ToolContext``.
The remaining parameters become the tool's JSON Schema: types from the
annotations, descriptions from ``name: text`` lines in the docstring,
``required`` from parameters that have neither a default nor ``Optional``.

Usage:
    from autotask_tools.services.tools.registry import registry

    @registry.tool(
        name="autotask_get_company",
        description="Get one Autotask company by its numeric ID.",
        module="autotask",
    )
    async def autotask_get_company(ctx: ToolContext, company_id: int) -> str:
        \"\"\"company_id: Numeric company ID\"\"\"
        ...
"""
from __future__ import annotations

import inspect
import logging
import types
import typing
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, get_type_hints

from autotask_tools.services.tools.tool_context import ToolContext

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[str]]

_SCALARS: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def _unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """``Optional[X]`` / ``X | None`` → ``(X, True)``; anything else → ``(tp, False)``."""
    if typing.get_origin(tp) not in (typing.Union, types.UnionType):
        return tp, False
    members = [a for a in typing.get_args(tp) if a is not type(None)]
    if len(members) == len(typing.get_args(tp)):
        return tp, False
    return (members[0] if len(members) == 1 else str), True


def json_schema_for(tp: Any) -> dict[str, Any]:
    tp, _ = _unwrap_optional(tp)
    origin = typing.get_origin(tp)

    if origin is typing.Literal:
        return {"type": "string", "enum": list(typing.get_args(tp))}
    if origin is list:
        args = typing.get_args(tp)
        schema: dict[str, Any] = {"type": "array"}
        if args:
            schema["items"] = json_schema_for(args[0])
        return schema
    if origin is dict:
        return {"type": "object"}
    if tp in _SCALARS:
        return {"type": _SCALARS[tp]}
    if hasattr(tp, "model_json_schema"):
        return tp.model_json_schema()
    return {"type": "string"}


def _docstring_params(doc: Optional[str]) -> dict[str, str]:
    """``name: text`` lines of a docstring, keyed by name."""
    found: dict[str, str] = {}
    for line in (doc or "").splitlines():
        name, sep, text = line.strip().partition(":")
        name = name.strip()
        if sep and name.isidentifier() and text.strip():
            found.setdefault(name, text.strip())
    return found


def build_parameters_schema(func: Callable) -> dict[str, Any]:
    """JSON Schema of ``func``'s LLM-visible parameters (ToolContext excluded)."""
    hints = get_type_hints(func)
    descriptions = _docstring_params(func.__doc__)

    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, param in inspect.signature(func).parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        tp = hints.get(name, str)
        if tp is ToolContext:
            continue

        prop = json_schema_for(tp)
        if name in descriptions:
            prop["description"] = descriptions[name]
        properties[name] = prop

        _, optional = _unwrap_optional(tp)
        if param.default is param.empty and not optional:
            required.append(name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


@dataclass
class ToolDefinition:
    """One registered tool."""

    name: str
    description: str
    handler: ToolHandler
    parameters_schema: dict
    module: str = "general"
    annotations: dict = field(default_factory=dict)

    @property
    def required_arguments(self) -> list[str]:
        return list(self.parameters_schema.get("required", []))

    def check_arguments(self, arguments: dict[str, Any]) -> list[str]:
        """Problems with ``arguments`` as a model would send them (empty when fine)."""
        known = self.parameters_schema.get("properties", {})
        problems = [f"unknown argument '{a}'" for a in arguments if a not in known]
        problems += [
            f"missing required argument '{a}'"
            for a in self.required_arguments
            if arguments.get(a) is None
        ]
        return problems

    def to_anthropic(self) -> dict:
        """Anthropic Messages API tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters_schema,
        }

    def to_openai(self) -> dict:
        """OpenAI Chat Completions function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema,
            },
        }


class ToolRegistry:
    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}

    def tool(
        self,
        name: str,
        description: str,
        module: str = "general",
        annotations: Optional[dict] = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator: register an async function as a tool, returning it unchanged."""

        def register(func: ToolHandler) -> ToolHandler:
            if name in self._tools:
                logger.warning(f"Tool {name} registered twice; keeping the latest")
            self._tools[name] = ToolDefinition(
                name=name,
                description=description,
                handler=func,
                parameters_schema=build_parameters_schema(func),
                module=module,
                annotations=annotations or {},
            )
            logger.debug(f"Registered tool: {name} (module={module})")
            return func

        return register

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def get_all_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def get_tools_by_module(self, module: str) -> list[ToolDefinition]:
        return [t for t in self._tools.values() if t.module == module]

    def get_tools_for_anthropic(self, tools: Optional[list[ToolDefinition]] = None) -> list[dict]:
        return [t.to_anthropic() for t in (self.get_all_tools() if tools is None else tools)]

    def get_tools_for_openai(self, tools: Optional[list[ToolDefinition]] = None) -> list[dict]:
        return [t.to_openai() for t in (self.get_all_tools() if tools is None else tools)]

    async def execute_tool(
        self, name: str, ctx: ToolContext, arguments: Optional[dict[str, Any]] = None
    ) -> str:
        """Run a tool and return its text result.

        Never raises: an unknown tool, bad arguments or a failing handler all
        come back as ``Error...`` text the model can read and act on.
        """
        tool_def = self.get_tool(name)
        if tool_def is None:
            return f"Error: Unknown tool '{name}'"

        arguments = arguments or {}
        problems = tool_def.check_arguments(arguments)
        if problems:
            return f"Error: invalid arguments for '{name}': {'; '.join(problems)}"

        try:
            return str(await tool_def.handler(ctx, **arguments))
        except Exception as e:
            logger.exception(f"Tool '{name}' execution failed")
            return f"Error executing '{name}': {e}"

    def __len__(self) -> int:
        return len(self._tools)

    def __repr__(self) -> str:
        return f"<ToolRegistry tools=[{', '.join(self._tools)}]>"


# Process-wide registry; tool modules register into it on import
registry = ToolRegistry()
