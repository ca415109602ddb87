"""
Tool registry for the Draft Helper conversation loop.

Provides ``ToolDefinition`` (name, description, strict argument schema) and
``ToolRegistry``, a container mapping tool names to async handlers that
builds the executor callable consumed by ``ConversationLoop``.

Typical usage::

    from drafthelper.conversation.tools.registry import ToolRegistry
    from drafthelper.conversation.tools.draft import register_draft_tools

    registry = ToolRegistry()
    register_draft_tools(registry, board, profile=True, search=True)

    executor = registry.build_executor(context=task_context, timeout=60.0)
    result = await executor("search_draft_players", {"query": "McDavid"})

The executor contract is small: ``(tool_name, arguments) -> JSON result``.
A result with an ``error`` key is an ordinary result that the model gets to
read.  An exception escaping the executor is a fault the loop treats as
fatal, so handlers should report expected failures as ``{"error": ...}``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

# Single tool handler: async (args, context) -> JSON-serializable result.
AsyncToolHandler = Callable[[dict[str, Any], Any], Awaitable[Any]]

# Builds a trace summary from (args, result).
ResultSummarizer = Callable[[dict[str, Any], Any], dict[str, Any]]

# What the loop calls: async (tool_name, args) -> JSON-serializable result.
ToolExecutor = Callable[[str, dict[str, Any]], Awaitable[Any]]


@dataclass
class ToolDefinition:
    """Describes a callable tool available to the model.

    The argument schema is strict: ``additionalProperties`` is forced to
    ``False`` and every tool names its required fields explicitly.

    Attributes:
        name: The tool's unique name (used by the model to invoke it).
        description: Human-readable description shown to the model.
        properties: JSON Schema ``properties`` for the arguments object.
        required: Names of required arguments.
    """

    name: str
    description: str
    properties: dict[str, Any] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        unknown = set(self.required) - set(self.properties)
        if unknown:
            raise ValueError(
                f"Tool {self.name!r} requires undeclared arguments: {sorted(unknown)}"
            )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "additionalProperties": False,
            "properties": dict(self.properties),
            "required": list(self.required),
        }

    def to_openai_format(self) -> dict[str, Any]:
        """Serialise to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def unknown_tool_result(name: str) -> dict[str, Any]:
    return {"error": "unknown_tool", "toolName": name}


def default_summary(args: dict[str, Any], result: Any) -> dict[str, Any]:
    if isinstance(result, dict) and result.get("error"):
        return {"error": result["error"]}
    return {}


@dataclass
class _ToolEntry:
    definition: ToolDefinition
    handler: AsyncToolHandler
    summarizer: ResultSummarizer


class ToolRegistry:
    """Registry mapping tool names to their definitions and async handlers.

    Use ``get_definitions()`` / ``get_specs()`` for the declarations sent to
    the model and ``build_executor()`` for the callable the loop invokes.
    """

    def __init__(self) -> None:
        self._tools: dict[str, _ToolEntry] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        definition: ToolDefinition,
        handler: AsyncToolHandler,
        summarizer: ResultSummarizer | None = None,
    ) -> None:
        """Register a tool with its async handler.

        Args:
            definition: The tool's ``ToolDefinition``.
            handler: Async callable ``(args, context) -> result``.
            summarizer: Optional ``(args, result) -> dict`` used for the
                ``tool_result`` trace summary.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if definition.name in self._tools:
            raise ValueError(
                f"Tool {definition.name!r} is already registered. "
                "Deregister it first before re-registering."
            )
        self._tools[definition.name] = _ToolEntry(
            definition, handler, summarizer or default_summary
        )
        logger.debug("Registered tool: %r", definition.name)

    def deregister(self, name: str) -> None:
        """Remove a registered tool by name.

        Raises:
            KeyError: If the tool is not registered.
        """
        if name not in self._tools:
            raise KeyError(f"Tool {name!r} is not registered.")
        del self._tools[name]
        logger.debug("Deregistered tool: %r", name)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_definitions(self) -> list[ToolDefinition]:
        """Return all registered ``ToolDefinition`` objects (insertion order)."""
        return [entry.definition for entry in self._tools.values()]

    def get_specs(self) -> list[dict[str, Any]]:
        """Return the OpenAI-format tool specs for the request body."""
        return [defn.to_openai_format() for defn in self.get_definitions()]

    def summarize(self, name: str, args: dict[str, Any], result: Any) -> dict[str, Any]:
        """Trace summary for one tool result (never raises)."""
        entry = self._tools.get(name)
        summarizer = entry.summarizer if entry is not None else default_summary
        try:
            return summarizer(args, result)
        except Exception as exc:
            logger.warning("Summarizer for %r failed: %s", name, exc)
            return default_summary(args, result)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    # ------------------------------------------------------------------
    # Executor factory
    # ------------------------------------------------------------------

    def build_executor(
        self,
        context: Any = None,
        timeout: float | None = 60.0,
    ) -> ToolExecutor:
        """Build the async executor used by ``ConversationLoop``.

        Each invocation runs exactly once; there is no retry, since tools
        may have side effects.

        Args:
            context: Opaque task context passed unmodified to every handler.
            timeout: Maximum seconds per invocation.  ``None`` disables it.
                A timeout surfaces as ``asyncio.TimeoutError``.

        Returns:
            Async callable ``(name, args) -> result``.  Unknown tool names
            return ``{"error": "unknown_tool", "toolName": name}``.
        """
        # Later registrations are not reflected in this executor.
        snapshot = dict(self._tools)

        async def _execute(name: str, args: dict[str, Any]) -> Any:
            entry = snapshot.get(name)
            if entry is None:
                logger.warning("Unknown tool requested: %r", name)
                return unknown_tool_result(name)
            if timeout is not None:
                return await asyncio.wait_for(entry.handler(args, context), timeout=timeout)
            return await entry.handler(args, context)

        return _execute
