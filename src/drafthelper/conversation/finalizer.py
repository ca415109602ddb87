"""
Finalizer: the last, schema-constrained request of a conversation.

Tool invocation is disabled (``tool_choice="none"`` or no tools at all),
``response_format`` forces the strict schema, and plugins (web search,
response healing) are attached now that no tools compete with them for
routing.
"""

from __future__ import annotations

import logging
from typing import Any

from drafthelper.conversation.citations import CitationSet
from drafthelper.conversation.ladder import FallbackLadder
from drafthelper.conversation.messages import first_message
from drafthelper.conversation.profiles import CapabilityProfile, final_rungs
from drafthelper.errors import EmptyCompletionError

logger = logging.getLogger(__name__)


class Finalizer:
    """Issues the finalization call through the profile's final ladder.

    Attributes:
        ladder: Shared ``FallbackLadder`` for the conversation.
        profile: The conversation's capability profile.
        params: Base sampling fields (model, temperature, max_tokens).
        response_format: Strict ``response_format`` value.
        plugins: Plugin attachments for this call.
    """

    def __init__(
        self,
        ladder: FallbackLadder,
        profile: CapabilityProfile,
        params: dict[str, Any],
        response_format: dict[str, Any],
        plugins: list[dict[str, Any]] | None = None,
    ) -> None:
        self.ladder = ladder
        self.profile = profile
        self.params = dict(params)
        self.response_format = response_format
        self.plugins = list(plugins or [])

    async def finalize(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        citations: CitationSet,
    ) -> str:
        """Run the final ladder and return the schema-conformant JSON text.

        Citations on the final message are merged into *citations*.

        Raises:
            EmptyCompletionError: The accepted response has no content.
            LLMTransportError: Propagated from the ladder.
        """
        base = {
            **self.params,
            "messages": list(messages),
            "response_format": self.response_format,
        }
        rungs = final_rungs(self.profile, base, tools, self.plugins)
        result = await self.ladder.run(rungs, stage="final")

        message = first_message(result.response)
        citations.merge_message(message)
        content = message.get("content") if message else None
        if not isinstance(content, str) or not content.strip():
            logger.error("Final response (rung %r) had no content", result.label)
            raise EmptyCompletionError("No content returned.")
        return content
