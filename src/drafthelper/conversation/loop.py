"""
ConversationLoop: the tool-calling state machine.

One loop instance drives one conversation::

    AWAITING_MODEL -> PROCESSING_TOOL_CALLS -> AWAITING_MODEL -> ...
                   -> FINALIZING -> DONE | FAILED

Each model turn sends the whole message log plus the declared tools
through the tool-loop ladder.  When the response carries no tool calls,
or the iteration cap is reached, the ``Finalizer`` issues one
schema-constrained request and the conversation ends.

Everything is sequential: at most one model request or tool execution is
outstanding at a time, and selected invocations run strictly in order.
"""

from __future__ import annotations

import enum
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from drafthelper.conversation.citations import DEFAULT_MAX_CITATIONS, CitationSet
from drafthelper.conversation.finalizer import Finalizer
from drafthelper.conversation.ladder import FallbackLadder
from drafthelper.conversation.messages import (
    ToolInvocation,
    build_assistant_message,
    extract_invocations,
    first_message,
    parse_arguments,
    reasoning_ids,
    select_invocations,
    tool_result_message,
)
from drafthelper.conversation.profiles import CapabilityProfile, tool_loop_rungs
from drafthelper.conversation.tools.registry import ToolExecutor, default_summary
from drafthelper.conversation.trace import (
    NullTraceEmitter,
    ToolCallEvent,
    ToolResultEvent,
    TraceEmitter,
    safe_emit,
)
from drafthelper.errors import ToolExecutionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 6
DEFAULT_MAX_TOOL_CALLS_PER_TURN = 3


class ConversationState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    PROCESSING_TOOL_CALLS = "processing_tool_calls"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class FinalResult:
    """Terminal output of a conversation.

    Attributes:
        json_text: Schema-conformant JSON text from the finalization call.
        citations: Ordered, deduplicated citation URLs.
        iterations: Tool-loop model requests made before finalizing.
    """

    json_text: str
    citations: list[str] = field(default_factory=list)
    iterations: int = 0


class ConversationLoop:
    """Runs the tool loop and finalization for a single conversation.

    Attributes:
        ladder: ``FallbackLadder`` shared by every request.
        profile: Capability profile selecting the rung shapes.
        executor: Async ``(tool_name, args) -> result`` callable.
        finalizer: Issues the schema-constrained final call.
        tools: OpenAI-format tool specs declared on every tool-loop turn.
        params: Base body fields (model, temperature, max_tokens).
        tool_choice: ``"auto"`` or a forced function selector.
        max_iterations: Cap on tool-loop model requests.
        max_tool_calls_per_turn: Invocations executed per turn when the
            response carries no reasoning blocks.
        state: Current ``ConversationState``.
        messages: The append-only message log.
        citations: Citations merged from every response.
    """

    def __init__(
        self,
        ladder: FallbackLadder,
        profile: CapabilityProfile,
        executor: ToolExecutor,
        finalizer: Finalizer,
        *,
        tools: list[dict[str, Any]] | None = None,
        params: dict[str, Any] | None = None,
        tool_choice: str | dict[str, Any] = "auto",
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        max_tool_calls_per_turn: int = DEFAULT_MAX_TOOL_CALLS_PER_TURN,
        max_citations: int = DEFAULT_MAX_CITATIONS,
        summarize: Callable[[str, dict[str, Any], Any], dict[str, Any]] | None = None,
        trace: TraceEmitter | None = None,
    ) -> None:
        self.ladder = ladder
        self.profile = profile
        self.executor = executor
        self.finalizer = finalizer
        self.tools = list(tools or [])
        self.params = dict(params or {})
        self.tool_choice = tool_choice
        self.max_iterations = max_iterations
        self.max_tool_calls_per_turn = max_tool_calls_per_turn
        self.summarize = summarize or (lambda name, args, result: default_summary(args, result))
        self.trace = trace or NullTraceEmitter()

        self.state = ConversationState.IDLE
        self.messages: list[dict[str, Any]] = []
        self.citations = CitationSet(max_citations)

    def _append(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    async def run(self, prompt: str) -> FinalResult:
        """Run the conversation for *prompt* to completion.

        Returns:
            The ``FinalResult``.

        Raises:
            LLMTransportError: A request failed or a ladder was exhausted.
            ToolExecutionError: The executor faulted.
            EmptyCompletionError: The final response had no content.
        """
        if self.state is not ConversationState.IDLE:
            raise RuntimeError("A ConversationLoop runs exactly one conversation.")

        self._append({"role": "user", "content": prompt})
        turn_start = time.monotonic()
        iterations = 0
        try:
            for iteration in range(self.max_iterations):
                self.state = ConversationState.AWAITING_MODEL
                iterations = iteration + 1
                logger.debug("Tool loop iteration %d/%d", iterations, self.max_iterations)

                message = await self._request_turn()
                invocations = extract_invocations(message)
                if not invocations:
                    break

                self.state = ConversationState.PROCESSING_TOOL_CALLS
                await self._process_tool_calls(message, invocations)
            else:
                logger.info(
                    "Tool loop hit max_iterations=%d; finalizing", self.max_iterations
                )

            self.state = ConversationState.FINALIZING
            json_text = await self.finalizer.finalize(self.messages, self.tools, self.citations)
        except Exception:
            self.state = ConversationState.FAILED
            raise

        self.state = ConversationState.DONE
        logger.info(
            "Conversation complete after %d tool-loop iteration(s) in %.3fs",
            iterations,
            time.monotonic() - turn_start,
        )
        return FinalResult(
            json_text=json_text,
            citations=self.citations.as_list(),
            iterations=iterations,
        )

    async def _request_turn(self) -> dict[str, Any] | None:
        """Send the log through the tool-loop ladder; merge citations."""
        base = {**self.params, "messages": list(self.messages)}
        rungs = tool_loop_rungs(self.profile, base, self.tools, self.tool_choice)
        result = await self.ladder.run(rungs, stage="tool_loop")
        message = first_message(result.response)
        self.citations.merge_message(message)
        return message

    async def _process_tool_calls(
        self,
        message: dict[str, Any],
        invocations: list[ToolInvocation],
    ) -> None:
        """Execute the selected invocations and append their results.

        The pruned assistant message goes first, then one ``tool`` message
        per executed invocation, in selection order.
        """
        selected = select_invocations(
            invocations,
            has_reasoning_blocks=bool(reasoning_ids(message)),
            max_calls=self.max_tool_calls_per_turn,
        )
        if len(selected) < len(invocations):
            logger.debug(
                "Executing %d of %d tool call(s) this turn", len(selected), len(invocations)
            )
        self._append(build_assistant_message(message, {inv.call_id for inv in selected}))

        for inv in selected:
            args = parse_arguments(inv.raw_arguments)
            safe_emit(self.trace, ToolCallEvent(name=inv.tool_name, id=inv.call_id, args=args))

            t0 = time.monotonic()
            try:
                result = await self.executor(inv.tool_name, args)
                content = json.dumps(result, ensure_ascii=False)
            except Exception as exc:
                logger.error(
                    "Tool %r (%s) faulted: %s", inv.tool_name, inv.call_id, exc, exc_info=True
                )
                raise ToolExecutionError(
                    f"Tool {inv.tool_name!r} failed: {type(exc).__name__}: {exc}",
                    tool_name=inv.tool_name,
                    call_id=inv.call_id,
                ) from exc
            ms = round((time.monotonic() - t0) * 1000)

            ok = not (isinstance(result, dict) and result.get("error"))
            safe_emit(
                self.trace,
                ToolResultEvent(
                    name=inv.tool_name,
                    id=inv.call_id,
                    ok=ok,
                    ms=ms,
                    summary=self.summarize(inv.tool_name, args, result),
                ),
            )
            self._append(tool_result_message(inv.call_id, content))
