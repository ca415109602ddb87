"""
Message-log helpers for the tool loop.

Provider responses are treated as immutable.  Whatever the loop appends to
the log is a deep copy, pruned to the invocations actually executed, so the
number of ``tool_calls`` in an assistant message always equals the number of
``tool`` messages that follow it.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolInvocation:
    """One tool call requested by the model.

    Attributes:
        call_id: Invocation id; the answering ``tool`` message echoes it.
        tool_name: Name of the requested tool.
        raw_arguments: Argument payload as sent (normally a JSON string).
        has_reasoning: A reasoning block with the same id accompanies it.
    """

    call_id: str
    tool_name: str
    raw_arguments: Any
    has_reasoning: bool = False


def first_message(response: dict[str, Any] | None) -> dict[str, Any] | None:
    """Return ``choices[0].message`` from a completion response, if present."""
    if not isinstance(response, dict):
        return None
    choices = response.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    message = choice.get("message") if isinstance(choice, dict) else None
    return message if isinstance(message, dict) else None


def reasoning_ids(message: dict[str, Any] | None) -> set[str]:
    """Ids of the reasoning blocks (``reasoning_details``) in *message*."""
    if not isinstance(message, dict):
        return set()
    details = message.get("reasoning_details")
    if not isinstance(details, list):
        return set()
    return {str(rd["id"]) for rd in details if isinstance(rd, dict) and rd.get("id")}


def extract_invocations(message: dict[str, Any] | None) -> list[ToolInvocation]:
    """Parse ``tool_calls`` from an assistant message, in order.

    Calls without an id cannot be answered and are skipped.  A repeated id
    keeps only its first occurrence, since each id gets exactly one answer.
    """
    if not isinstance(message, dict):
        return []
    raw_calls = message.get("tool_calls")
    if not isinstance(raw_calls, list):
        return []

    with_reasoning = reasoning_ids(message)
    invocations: list[ToolInvocation] = []
    seen: set[str] = set()
    for tc in raw_calls:
        if not isinstance(tc, dict):
            continue
        call_id = str(tc.get("id") or "")
        if not call_id:
            logger.warning("Skipping tool call without id: %r", tc)
            continue
        if call_id in seen:
            logger.warning("Skipping duplicate tool call id %r", call_id)
            continue
        seen.add(call_id)
        function = tc.get("function") if isinstance(tc.get("function"), dict) else {}
        invocations.append(
            ToolInvocation(
                call_id=call_id,
                tool_name=str(function.get("name") or ""),
                raw_arguments=function.get("arguments"),
                has_reasoning=call_id in with_reasoning,
            )
        )
    return invocations


def select_invocations(
    invocations: list[ToolInvocation],
    has_reasoning_blocks: bool,
    max_calls: int,
) -> list[ToolInvocation]:
    """Choose which invocations to execute this turn.

    With reasoning blocks present, only invocations that have a matching
    block are executed; if none match, only the first one is.  Without
    reasoning blocks, the first *max_calls* are executed.
    """
    if has_reasoning_blocks:
        matched = [inv for inv in invocations if inv.has_reasoning]
        return matched or invocations[:1]
    return invocations[:max_calls]


def build_assistant_message(
    raw_message: dict[str, Any],
    selected_ids: set[str],
) -> dict[str, Any]:
    """Return a pruned deep copy of *raw_message* for the log.

    Role is coerced to ``assistant``, ``content`` is guaranteed to exist,
    and ``tool_calls`` / ``reasoning_details`` keep only *selected_ids*.
    Each selected id keeps only its first tool call.
    """
    message = copy.deepcopy(raw_message)
    message["role"] = "assistant"
    message.setdefault("content", None)
    if isinstance(message.get("tool_calls"), list):
        kept: list[dict[str, Any]] = []
        kept_ids: set[str] = set()
        for tc in message["tool_calls"]:
            call_id = str(tc.get("id") or "") if isinstance(tc, dict) else ""
            if call_id in selected_ids and call_id not in kept_ids:
                kept.append(tc)
                kept_ids.add(call_id)
        message["tool_calls"] = kept
    if isinstance(message.get("reasoning_details"), list):
        message["reasoning_details"] = [
            rd
            for rd in message["reasoning_details"]
            if isinstance(rd, dict) and str(rd.get("id") or "") in selected_ids
        ]
    return message


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Decode a tool-call argument payload.

    Empty payloads become ``{}``.  Anything that is not a JSON object comes
    back as ``{"_raw": raw}`` so the tool can report it instead of the
    conversation aborting.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return copy.deepcopy(raw)
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {"_raw": raw}
    if not isinstance(parsed, dict):
        return {"_raw": raw}
    return parsed


def tool_result_message(call_id: str, content: str) -> dict[str, Any]:
    return {"role": "tool", "tool_call_id": call_id, "content": content}
