"""
Request fallback ladder.

Attempts the rungs of one logical call in order until the endpoint accepts
one.  Only ``LLMRoutingIncompatibleError`` advances the ladder; any other
failure aborts it immediately and is never retried.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from drafthelper.conversation.profiles import Rung
from drafthelper.conversation.trace import (
    NullTraceEmitter,
    RoutingFallbackEvent,
    TraceEmitter,
    safe_emit,
)
from drafthelper.conversation.transport import JSONTransport
from drafthelper.errors import LLMRoutingIncompatibleError

logger = logging.getLogger(__name__)


@dataclass
class LadderResult:
    """Outcome of a successful ladder run.

    Attributes:
        response: Decoded JSON response from the accepting rung.
        label: Label of the accepting rung.
        attempts: Number of rungs tried, including the accepting one.
    """

    response: dict[str, Any]
    label: str
    attempts: int


class FallbackLadder:
    """Runs ladders against one endpoint with fixed headers and timeout.

    Attributes:
        transport: The ``JSONTransport`` used for every request.
        url: Chat-completions endpoint.
        headers: Request headers (auth, referer, identity).
        timeout: Per-request timeout in seconds.
        trace: Receives a ``routing_fallback`` event whenever a ladder is
            accepted on a rung other than its first.
    """

    def __init__(
        self,
        transport: JSONTransport,
        url: str,
        headers: dict[str, str],
        timeout: float,
        trace: TraceEmitter | None = None,
    ) -> None:
        self.transport = transport
        self.url = url
        self.headers = dict(headers)
        self.timeout = timeout
        self.trace = trace or NullTraceEmitter()

    async def run(self, rungs: list[Rung], stage: str) -> LadderResult:
        """Issue the call, walking *rungs* until one is accepted.

        Args:
            rungs: Ordered request-body variants.  Must not be empty.
            stage: ``"tool_loop"`` or ``"final"`` (used in trace output).

        Returns:
            The ``LadderResult`` of the first accepted rung.

        Raises:
            LLMRoutingIncompatibleError: Every rung was rejected for routing
                reasons; the last such error is raised.
            LLMTransportError: Any non-routing failure, raised from the rung
                where it occurred.
        """
        if not rungs:
            raise ValueError("A fallback ladder needs at least one rung.")

        last_error: LLMRoutingIncompatibleError | None = None
        for attempt, rung in enumerate(rungs, start=1):
            t0 = time.monotonic()
            try:
                response = await self.transport.post_json(
                    self.url,
                    rung.body,
                    headers=self.headers,
                    timeout=self.timeout,
                )
            except LLMRoutingIncompatibleError as exc:
                logger.warning(
                    "[%s] rung %d/%d %r not routable: %s",
                    stage,
                    attempt,
                    len(rungs),
                    rung.label,
                    exc,
                )
                last_error = exc
                continue

            logger.debug(
                "[%s] rung %r accepted in %.3fs",
                stage,
                rung.label,
                time.monotonic() - t0,
            )
            if attempt > 1:
                safe_emit(self.trace, RoutingFallbackEvent(stage=stage, label=rung.label))
            return LadderResult(response=response, label=rung.label, attempts=attempt)

        assert last_error is not None
        logger.error("[%s] all %d rungs rejected", stage, len(rungs))
        raise last_error
