"""Unit tests for drafthelper.conversation.profiles."""

from __future__ import annotations

import pytest

from drafthelper.conversation.profiles import (
    REDUCED_PROFILE,
    STANDARD_PROFILE,
    final_rungs,
    resolve_profile,
    tool_loop_rungs,
)

TOOLS = [{"type": "function", "function": {"name": "search_draft_players"}}]
BASE = {"model": "m", "messages": [{"role": "user", "content": "hi"}]}
FORMAT = {"type": "json_schema", "json_schema": {"name": "draft_lineup", "strict": True}}
PLUGINS = [{"id": "web", "engine": "exa", "max_results": 2}, {"id": "response-healing"}]


@pytest.mark.parametrize(
    ("model", "expected"),
    [
        ("google/gemini-2.5-flash", REDUCED_PROFILE),
        ("Google/GEMINI-pro", REDUCED_PROFILE),
        ("openai/gpt-4o", STANDARD_PROFILE),
        ("anthropic/claude-sonnet-4", STANDARD_PROFILE),
        ("", STANDARD_PROFILE),
    ],
)
def test_resolve_profile(model: str, expected) -> None:
    assert resolve_profile(model) is expected


# ---------------------------------------------------------------------------
# Tool-loop ladder
# ---------------------------------------------------------------------------


def test_standard_tool_loop_ladder() -> None:
    rungs = tool_loop_rungs(STANDARD_PROFILE, BASE, TOOLS, "auto")

    assert [r.label for r in rungs] == [
        "tools+tool_choice+parallel+provider",
        "tools+tool_choice+provider",
        "tools+tool_choice",
        "tools-only",
    ]
    first = rungs[0].body
    assert first["parallel_tool_calls"] is False
    assert first["provider"] == {"require_parameters": True}
    assert first["tool_choice"] == "auto"
    assert "parallel_tool_calls" not in rungs[1].body
    assert "tool_choice" not in rungs[3].body
    assert rungs[3].body["tools"] == TOOLS


def test_reduced_tool_loop_ladder_never_carries_optional_fields() -> None:
    rungs = tool_loop_rungs(REDUCED_PROFILE, BASE, TOOLS, "auto")

    assert [r.label for r in rungs] == ["gemini+tools+tool_choice", "gemini+tools-only"]
    for rung in rungs:
        assert "parallel_tool_calls" not in rung.body
        assert "provider" not in rung.body


def test_tool_loop_rungs_never_attach_plugins() -> None:
    for profile in (STANDARD_PROFILE, REDUCED_PROFILE):
        for rung in tool_loop_rungs(profile, BASE, TOOLS, "auto"):
            assert "plugins" not in rung.body


def test_forced_tool_choice_is_kept() -> None:
    choice = {"type": "function", "function": {"name": "search_draft_players"}}
    rungs = tool_loop_rungs(STANDARD_PROFILE, BASE, TOOLS, choice)
    assert rungs[0].body["tool_choice"] == choice


def test_no_tools_omits_tool_fields_and_dedupes() -> None:
    rungs = tool_loop_rungs(REDUCED_PROFILE, BASE, [], "auto")

    assert len(rungs) == 1
    assert rungs[0].body == BASE


def test_rungs_share_base_fields() -> None:
    rungs = tool_loop_rungs(STANDARD_PROFILE, BASE, TOOLS, "auto")
    for rung in rungs:
        assert rung.body["messages"] == BASE["messages"]
        assert rung.body["model"] == "m"
    # base is not mutated
    assert set(BASE) == {"model", "messages"}


# ---------------------------------------------------------------------------
# Final ladder
# ---------------------------------------------------------------------------


def test_standard_final_ladder() -> None:
    base = {**BASE, "response_format": FORMAT}
    rungs = final_rungs(STANDARD_PROFILE, base, TOOLS, PLUGINS)

    assert [r.label for r in rungs] == [
        "final+tools+tool_choice+provider+plugins",
        "final+tools+tool_choice",
        "final+schema+plugins",
        "final+schema-only",
    ]
    first = rungs[0].body
    assert first["tool_choice"] == "none"
    assert first["tools"] == TOOLS
    assert first["provider"] == {"require_parameters": True}
    assert first["plugins"] == PLUGINS
    assert "plugins" not in rungs[1].body
    assert "tools" not in rungs[2].body
    assert rungs[3].body == base
    for rung in rungs:
        assert rung.body["response_format"] == FORMAT
        assert "parallel_tool_calls" not in rung.body


def test_reduced_final_ladder() -> None:
    base = {**BASE, "response_format": FORMAT}
    rungs = final_rungs(REDUCED_PROFILE, base, TOOLS, PLUGINS)

    assert [r.label for r in rungs] == [
        "gemini+final+tools+tool_choice",
        "gemini+final+schema+plugins",
        "gemini+final+schema-only",
    ]
    assert rungs[0].body["plugins"] == PLUGINS
    assert rungs[0].body["tool_choice"] == "none"
    for rung in rungs:
        assert "provider" not in rung.body
        assert "parallel_tool_calls" not in rung.body


def test_final_ladder_without_plugins_or_tools() -> None:
    base = {**BASE, "response_format": FORMAT}
    rungs = final_rungs(REDUCED_PROFILE, base, [], [])

    assert [r.label for r in rungs] == ["gemini+final+schema-only"]
    assert rungs[0].body == base


def test_final_labels_without_tools_never_mention_tools() -> None:
    base = {**BASE, "response_format": FORMAT}
    rungs = final_rungs(STANDARD_PROFILE, base, [], PLUGINS)

    assert [r.label for r in rungs] == [
        "final+schema+provider+plugins",
        "final+schema+plugins",
        "final+schema-only",
    ]
    for rung in rungs:
        assert "tools" not in rung.body
        assert "tool_choice" not in rung.body

    rungs = final_rungs(STANDARD_PROFILE, base, [], [])
    assert [r.label for r in rungs] == ["final+schema+provider", "final+schema-only"]


def test_final_provider_label_omits_plugins_when_none() -> None:
    base = {**BASE, "response_format": FORMAT}
    rungs = final_rungs(STANDARD_PROFILE, base, TOOLS, [])
    assert [r.label for r in rungs] == [
        "final+tools+tool_choice+provider",
        "final+tools+tool_choice",
        "final+schema-only",
    ]
