"""
DraftEngine: public entry point of the conversation engine.

Wires one conversation together from an ``EngineConfig``: validates the
configuration, resolves the capability profile, registers the enabled
tools, builds the fallback ladder, then runs a ``ConversationLoop``.

Typical usage::

    engine = DraftEngine(get_settings().to_engine_config(), board=my_board)
    result = await engine.ask_structured(prompt, web=True, task=payload)
    print(result.json_text, result.citations)
"""

from __future__ import annotations

import logging
from typing import Any

from drafthelper.config import EngineConfig
from drafthelper.conversation.finalizer import Finalizer
from drafthelper.conversation.ladder import FallbackLadder
from drafthelper.conversation.loop import ConversationLoop, FinalResult
from drafthelper.conversation.profiles import CapabilityProfile, resolve_profile
from drafthelper.conversation.schema import lineup_response_format
from drafthelper.conversation.tools.draft import (
    PROFILE_TOOL,
    SEARCH_TOOL,
    DraftBoard,
    debug_prompt,
    forced_tool_choice,
    register_draft_tools,
    search_tool_useful,
)
from drafthelper.conversation.tools.registry import ToolRegistry
from drafthelper.conversation.trace import (
    DoneEvent,
    NullTraceEmitter,
    StartEvent,
    TraceEmitter,
    safe_emit,
)
from drafthelper.conversation.transport import HttpxTransport, JSONTransport

logger = logging.getLogger(__name__)


def build_plugins(config: EngineConfig, web: bool) -> list[dict[str, Any]]:
    """Plugin attachments for the finalization call."""
    plugins: list[dict[str, Any]] = []
    if web:
        plugins.append({"id": "web", "engine": "exa", "max_results": config.web_max_results})
    if config.response_healing:
        plugins.append({"id": "response-healing"})
    return plugins


class DraftEngine:
    """Runs structured lineup conversations against the completion endpoint.

    The engine holds no per-conversation state; concurrent calls to
    ``ask_structured`` are independent.

    Attributes:
        config: Immutable engine configuration.
        transport: HTTP transport; when ``None`` a fresh ``HttpxTransport``
            is opened and closed around each conversation.
        board: Draft board backing the built-in tools.  Without one (and
            without *registry*) no tools are declared.
        registry: Pre-built tool registry, used instead of the draft tools.
        trace: Default trace emitter.
    """

    def __init__(
        self,
        config: EngineConfig,
        transport: JSONTransport | None = None,
        board: DraftBoard | None = None,
        registry: ToolRegistry | None = None,
        trace: TraceEmitter | None = None,
    ) -> None:
        self.config = config
        self.transport = transport
        self.board = board
        self.registry = registry
        self.trace = trace or NullTraceEmitter()

    def build_registry(self, task: Any) -> ToolRegistry:
        """Registry for one conversation, honouring the tool toggles.

        The search tool is left out when the captured pool is small enough
        that every player is already visible.
        """
        if self.registry is not None:
            return self.registry
        registry = ToolRegistry()
        if self.board is not None:
            register_draft_tools(
                registry,
                self.board,
                profile=self.config.enable_profile_tool,
                search=self.config.enable_search_tool and search_tool_useful(task),
            )
        return registry

    async def ask_structured(
        self,
        prompt: str,
        web: bool = False,
        task: Any = None,
        trace: TraceEmitter | None = None,
    ) -> FinalResult:
        """Run one conversation and return its ``FinalResult``.

        Args:
            prompt: Task prompt text.
            web: Attach the web-search augmentation plugin to the final call.
            task: Opaque task context handed unmodified to tool handlers.
            trace: Emitter for this conversation (defaults to ``self.trace``).

        Raises:
            LLMConfigError: Configuration is unusable (before any request).
            LLMTransportError: A request failed or a ladder was exhausted.
            ToolExecutionError: A tool executor faulted.
            EmptyCompletionError: The final response had no content.
        """
        config = self.config
        config.validate()
        trace = trace or self.trace

        registry = self.build_registry(task)
        tool_choice: str | dict[str, Any] = "auto"
        if config.force_tool_call and PROFILE_TOOL in registry:
            prompt = debug_prompt(PROFILE_TOOL, prompt)
            tool_choice = forced_tool_choice(PROFILE_TOOL)
        elif config.force_search_tool and SEARCH_TOOL in registry:
            prompt = debug_prompt(SEARCH_TOOL, prompt)
            tool_choice = forced_tool_choice(SEARCH_TOOL)

        safe_emit(trace, StartEvent(model=config.model, web=web))
        profile = resolve_profile(config.model)
        logger.info(
            "Starting conversation: model=%s profile=%s web=%s tools=%d",
            config.model,
            profile.name,
            web,
            len(registry),
        )

        run_args = (registry, profile, prompt, web, task, tool_choice, trace)
        if self.transport is not None:
            result = await self._run(self.transport, *run_args)
        else:
            async with HttpxTransport() as transport:
                result = await self._run(transport, *run_args)

        safe_emit(trace, DoneEvent())
        return result

    async def _run(
        self,
        transport: JSONTransport,
        registry: ToolRegistry,
        profile: CapabilityProfile,
        prompt: str,
        web: bool,
        task: Any,
        tool_choice: str | dict[str, Any],
        trace: TraceEmitter,
    ) -> FinalResult:
        config = self.config
        params = {
            "model": config.model,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
        }
        ladder = FallbackLadder(
            transport,
            url=config.request_url,
            headers=config.build_headers(),
            timeout=config.request_timeout,
            trace=trace,
        )
        finalizer = Finalizer(
            ladder,
            profile,
            params,
            response_format=lineup_response_format(),
            plugins=build_plugins(config, web),
        )
        loop = ConversationLoop(
            ladder,
            profile,
            registry.build_executor(context=task, timeout=config.tool_timeout),
            finalizer,
            tools=registry.get_specs(),
            params=params,
            tool_choice=tool_choice,
            max_iterations=config.max_iterations,
            max_tool_calls_per_turn=config.max_tool_calls_per_turn,
            max_citations=config.max_citations,
            summarize=registry.summarize,
            trace=trace,
        )
        return await loop.run(prompt)
