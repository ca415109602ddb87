"""
Capability profiles and request-body rungs.

A ``CapabilityProfile`` is resolved once per conversation from the model id
and decides which optional transport fields the fallback ladder may try.
The "reduced-parameter" family (Gemini) hard-fails on ``parallel_tool_calls``
and ``provider`` routing hints instead of ignoring them, so its ladders
never carry those fields.

Rungs are ordered soft to hard: provider hints and forced tool choice
first, the minimal maximally-compatible body last.  Rungs only differ in
optional transport fields, never in tool or schema semantics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Model families whose endpoints reject optional routing fields.
REDUCED_PARAMETER_FAMILIES: tuple[str, ...] = ("gemini",)

PROVIDER_ROUTING_HINTS: dict[str, Any] = {"require_parameters": True}


@dataclass(frozen=True)
class CapabilityProfile:
    """Request-shaping profile for one model.

    Attributes:
        name: ``"standard"`` or ``"reduced"``.
        supports_parallel_tool_calls: Body may carry ``parallel_tool_calls``.
        supports_provider_routing_hints: Body may carry ``provider``.
        label_prefix: Prefix for rung labels in trace output.
    """

    name: str
    supports_parallel_tool_calls: bool
    supports_provider_routing_hints: bool
    label_prefix: str = ""


STANDARD_PROFILE = CapabilityProfile(
    name="standard",
    supports_parallel_tool_calls=True,
    supports_provider_routing_hints=True,
)

REDUCED_PROFILE = CapabilityProfile(
    name="reduced",
    supports_parallel_tool_calls=False,
    supports_provider_routing_hints=False,
    label_prefix="gemini+",
)


def resolve_profile(model: str) -> CapabilityProfile:
    """Classify *model* into a capability profile."""
    lowered = model.lower()
    if any(family in lowered for family in REDUCED_PARAMETER_FAMILIES):
        profile = REDUCED_PROFILE
    else:
        profile = STANDARD_PROFILE
    logger.debug("Model %r resolved to %s profile", model, profile.name)
    return profile


@dataclass(frozen=True)
class Rung:
    """One request-body variant of a fallback ladder."""

    label: str
    body: dict[str, Any]


def _dedupe(rungs: list[Rung]) -> list[Rung]:
    unique: list[Rung] = []
    for rung in rungs:
        if all(rung.body != seen.body for seen in unique):
            unique.append(rung)
    return unique


def tool_loop_rungs(
    profile: CapabilityProfile,
    base: dict[str, Any],
    tools: list[dict[str, Any]],
    tool_choice: str | dict[str, Any],
) -> list[Rung]:
    """Build the tool-loop ladder.

    Plugin fields are never attached here: strict-schema plugins are not
    reliably routable alongside tool declarations.

    Args:
        profile: The conversation's capability profile.
        base: Shared body fields (model, messages, sampling parameters).
        tools: Declared tool specs in OpenAI format.  An empty list omits
            both ``tools`` and ``tool_choice``.
        tool_choice: ``"auto"`` or a forced function selector.
    """
    p = profile.label_prefix
    with_tools = {**base, "tools": tools} if tools else dict(base)
    with_choice = {**with_tools, "tool_choice": tool_choice} if tools else dict(with_tools)

    rungs: list[Rung] = []
    if profile.supports_provider_routing_hints:
        if profile.supports_parallel_tool_calls:
            rungs.append(
                Rung(
                    f"{p}tools+tool_choice+parallel+provider",
                    {
                        **with_choice,
                        "parallel_tool_calls": False,
                        "provider": dict(PROVIDER_ROUTING_HINTS),
                    },
                )
            )
        rungs.append(
            Rung(
                f"{p}tools+tool_choice+provider",
                {**with_choice, "provider": dict(PROVIDER_ROUTING_HINTS)},
            )
        )
    rungs.append(Rung(f"{p}tools+tool_choice", with_choice))
    rungs.append(Rung(f"{p}tools-only", with_tools))
    return _dedupe(rungs)


def final_rungs(
    profile: CapabilityProfile,
    base: dict[str, Any],
    tools: list[dict[str, Any]],
    plugins: list[dict[str, Any]],
) -> list[Rung]:
    """Build the finalization ladder.

    *base* already carries ``response_format``.  Tool declarations are kept
    on the early rungs with ``tool_choice="none"`` (some routes need the tool
    list to accept the tool messages in the log); later rungs drop them.
    """
    p = f"{profile.label_prefix}final+"
    with_plugins: dict[str, Any] = {"plugins": plugins} if plugins else {}
    no_tools: dict[str, Any] = (
        {"tools": tools, "tool_choice": "none"} if tools else {}
    )

    # Without declared tools the early rungs carry schema fields only.
    head = "tools+tool_choice" if tools else "schema"

    rungs: list[Rung] = []
    if profile.supports_provider_routing_hints:
        rungs.append(
            Rung(
                f"{p}{head}+provider+plugins" if plugins else f"{p}{head}+provider",
                {
                    **base,
                    **no_tools,
                    "provider": dict(PROVIDER_ROUTING_HINTS),
                    **with_plugins,
                },
            )
        )
        if tools:
            rungs.append(Rung(f"{p}tools+tool_choice", {**base, **no_tools}))
    elif tools:
        rungs.append(Rung(f"{p}tools+tool_choice", {**base, **no_tools, **with_plugins}))
    if plugins:
        rungs.append(Rung(f"{p}schema+plugins", {**base, **with_plugins}))
    rungs.append(Rung(f"{p}schema-only", dict(base)))
    return _dedupe(rungs)
