"""End-to-end tests for drafthelper.conversation.engine.DraftEngine.

The transport is a mock, the draft board is ``FakeDraftBoard``; everything
between them is the real engine.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from drafthelper.config import EngineConfig
from drafthelper.conversation.engine import DraftEngine, build_plugins
from drafthelper.conversation.tools.draft import PROFILE_TOOL, SEARCH_TOOL
from drafthelper.conversation.tools.registry import ToolDefinition, ToolRegistry
from drafthelper.conversation.trace import ListTraceEmitter
from drafthelper.errors import LLMConfigError, LLMRoutingIncompatibleError
from tests.fakes import (
    EMPTY_LINEUP,
    FakeDraftBoard,
    completion,
    make_transport,
    sent_bodies,
    tool_call,
)

BIG_POOL = {"player_pool_count": 120, "sport": "nhl"}


def _engine(*outcomes: Any, board: Any = None, **config: Any) -> DraftEngine:
    config.setdefault("api_key", "sk-test")
    config.setdefault("model", "openai/gpt-4o")
    return DraftEngine(
        EngineConfig(**config),
        transport=make_transport(*outcomes),
        board=board,
    )


def _tool_names(body: dict[str, Any]) -> list[str]:
    return [t["function"]["name"] for t in body.get("tools", [])]


# ---------------------------------------------------------------------------
# Basic conversations
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_pick_a_lineup_without_tool_calls() -> None:
    engine = _engine(completion("Here is my plan."), completion(EMPTY_LINEUP))

    result = await engine.ask_structured("pick a lineup")

    assert result.json_text == EMPTY_LINEUP
    assert result.citations == []
    assert engine.transport.post_json.await_count == 2


@pytest.mark.anyio
async def test_requests_go_to_endpoint_with_direct_headers() -> None:
    engine = _engine(completion("x"), completion(EMPTY_LINEUP))

    await engine.ask_structured("go")

    call = engine.transport.post_json.call_args_list[0]
    assert call.args[0] == "https://openrouter.ai/api/v1/chat/completions"
    assert call.kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert call.kwargs["timeout"] == 90.0


@pytest.mark.anyio
async def test_proxy_mode_uses_proxy_url_and_identity_headers() -> None:
    engine = _engine(
        completion("x"),
        completion(EMPTY_LINEUP),
        api_key="",
        proxy_endpoint="https://proxy.test/chat",
        proxy_secret="s3cret",
        username="sam",
    )

    await engine.ask_structured("go")

    for call in engine.transport.post_json.call_args_list:
        assert call.args[0] == "https://proxy.test/chat"
        assert call.kwargs["headers"]["X-RSDH-User"] == "sam"
        assert "Authorization" not in call.kwargs["headers"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "config",
    [
        {"api_key": ""},
        {"api_key": "", "proxy_endpoint": "https://proxy.test/chat"},
        {"max_iterations": 0},
    ],
)
async def test_config_errors_raise_before_any_request(config: dict[str, Any]) -> None:
    engine = _engine(completion("never"), **config)

    with pytest.raises(LLMConfigError):
        await engine.ask_structured("go")

    engine.transport.post_json.assert_not_called()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_reduced_profile_never_sends_optional_fields() -> None:
    calls = [tool_call("c1", SEARCH_TOOL, {"query": "Connor"})]
    engine = _engine(
        LLMRoutingIncompatibleError("No endpoints found", status_code=404),
        completion(None, tool_calls=calls),
        completion("done"),
        completion(EMPTY_LINEUP),
        board=FakeDraftBoard(),
        model="google/gemini-2.5-flash",
    )

    result = await engine.ask_structured("go", task=BIG_POOL)

    assert result.json_text == EMPTY_LINEUP
    for body in sent_bodies(engine.transport):
        assert "parallel_tool_calls" not in body
        assert "provider" not in body


@pytest.mark.anyio
async def test_standard_profile_first_body_has_optional_fields() -> None:
    engine = _engine(completion("x"), completion(EMPTY_LINEUP), board=FakeDraftBoard())

    await engine.ask_structured("go", task=BIG_POOL)

    first = sent_bodies(engine.transport)[0]
    assert first["parallel_tool_calls"] is False
    assert first["provider"] == {"require_parameters": True}
    assert first["tool_choice"] == "auto"
    assert first["temperature"] == 0.2
    assert first["max_tokens"] == 1000


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_draft_tool_round_trip_through_board() -> None:
    board = FakeDraftBoard(
        pool=[{"name": "Connor McDavid", "boost_x": 1.5, "status": "", "profile_url": ""}]
    )
    trace = ListTraceEmitter()
    engine = _engine(
        completion(None, tool_calls=[tool_call("c1", SEARCH_TOOL, {"query": "mcdavid"})]),
        completion("done"),
        completion(EMPTY_LINEUP),
        board=board,
    )

    await engine.ask_structured("go", task=BIG_POOL, trace=trace)

    assert board.calls == [("search", "mcdavid")]
    tool_msg = sent_bodies(engine.transport)[1]["messages"][-1]
    assert json.loads(tool_msg["content"]) == {
        "query": "mcdavid",
        "players_found": 1,
        "players": [
            {"name": "Connor McDavid", "boost": "+1.5x", "status": "", "profile_url": None}
        ],
    }
    assert trace.kinds() == ["start", "tool_call", "tool_result", "done"]
    assert trace.events[2].summary["sample_players"] == ["Connor McDavid"]


@pytest.mark.anyio
async def test_unknown_tool_is_reported_to_model() -> None:
    engine = _engine(
        completion(None, tool_calls=[tool_call("c1", "delete_everything", {})]),
        completion("ok"),
        completion(EMPTY_LINEUP),
        board=FakeDraftBoard(),
    )

    result = await engine.ask_structured("go", task=BIG_POOL)

    tool_msg = sent_bodies(engine.transport)[1]["messages"][-1]
    assert tool_msg["tool_call_id"] == "c1"
    assert json.loads(tool_msg["content"]) == {
        "error": "unknown_tool",
        "toolName": "delete_everything",
    }
    assert result.json_text == EMPTY_LINEUP


@pytest.mark.anyio
async def test_search_tool_needs_large_pool() -> None:
    engine = _engine(completion("x"), completion(EMPTY_LINEUP), board=FakeDraftBoard())

    await engine.ask_structured("go", task={"player_pool_count": 20})

    assert _tool_names(sent_bodies(engine.transport)[0]) == [PROFILE_TOOL]


@pytest.mark.anyio
async def test_tool_toggles_disable_declarations() -> None:
    engine = _engine(
        completion("x"),
        completion(EMPTY_LINEUP),
        board=FakeDraftBoard(),
        enable_profile_tool=False,
        enable_search_tool=False,
    )

    await engine.ask_structured("go", task=BIG_POOL)

    for body in sent_bodies(engine.transport):
        assert "tools" not in body
        assert "tool_choice" not in body


@pytest.mark.anyio
async def test_force_search_tool_sets_choice_and_prompt() -> None:
    engine = _engine(
        completion("x"),
        completion(EMPTY_LINEUP),
        board=FakeDraftBoard(),
        force_search_tool=True,
    )

    await engine.ask_structured("pick a lineup", task=BIG_POOL)

    first = sent_bodies(engine.transport)[0]
    assert first["tool_choice"] == {"type": "function", "function": {"name": SEARCH_TOOL}}
    prompt = first["messages"][0]["content"]
    assert prompt.startswith("DEBUG TOOL TEST")
    assert prompt.endswith("pick a lineup")


@pytest.mark.anyio
async def test_force_flag_ignored_when_tool_not_declared() -> None:
    engine = _engine(
        completion("x"),
        completion(EMPTY_LINEUP),
        board=FakeDraftBoard(),
        force_search_tool=True,
    )

    await engine.ask_structured("pick a lineup", task={"player_pool_count": 5})

    first = sent_bodies(engine.transport)[0]
    assert first["tool_choice"] == "auto"
    assert first["messages"][0]["content"] == "pick a lineup"


@pytest.mark.anyio
async def test_custom_registry_replaces_draft_tools() -> None:
    async def lookup(args: dict[str, Any], context: Any) -> dict[str, Any]:
        return {"echo": args, "task": context}

    registry = ToolRegistry()
    registry.register(ToolDefinition(name="lookup", description="Echo."), lookup)
    engine = DraftEngine(
        EngineConfig(api_key="sk-test", model="openai/gpt-4o"),
        transport=make_transport(
            completion(None, tool_calls=[tool_call("c1", "lookup", {"a": 1})]),
            completion("ok"),
            completion(EMPTY_LINEUP),
        ),
        board=FakeDraftBoard(),
        registry=registry,
    )

    await engine.ask_structured("go", task={"id": 7})

    bodies = sent_bodies(engine.transport)
    assert _tool_names(bodies[0]) == ["lookup"]
    assert json.loads(bodies[1]["messages"][-1]["content"]) == {
        "echo": {"a": 1},
        "task": {"id": 7},
    }


# ---------------------------------------------------------------------------
# Finalization plugins
# ---------------------------------------------------------------------------


def test_build_plugins() -> None:
    config = EngineConfig(web_max_results=3)
    assert build_plugins(config, web=True) == [
        {"id": "web", "engine": "exa", "max_results": 3},
        {"id": "response-healing"},
    ]
    assert build_plugins(EngineConfig(response_healing=False), web=False) == []


@pytest.mark.anyio
async def test_web_plugin_only_on_final_call() -> None:
    engine = _engine(completion("x"), completion(EMPTY_LINEUP), board=FakeDraftBoard())

    await engine.ask_structured("go", web=True, task=BIG_POOL)

    loop_body, final_body = sent_bodies(engine.transport)
    assert "plugins" not in loop_body
    assert final_body["plugins"] == [
        {"id": "web", "engine": "exa", "max_results": 2},
        {"id": "response-healing"},
    ]
    assert final_body["tool_choice"] == "none"
    assert final_body["response_format"]["json_schema"]["name"] == "draft_lineup"


@pytest.mark.anyio
async def test_trace_start_and_done() -> None:
    trace = ListTraceEmitter()
    engine = _engine(completion("x"), completion(EMPTY_LINEUP))

    await engine.ask_structured("go", web=True, trace=trace)

    assert trace.kinds() == ["start", "done"]
    assert trace.events[0].model == "openai/gpt-4o"
    assert trace.events[0].web is True


@pytest.mark.anyio
async def test_routing_fallback_is_traced() -> None:
    trace = ListTraceEmitter()
    engine = _engine(
        completion("x"),
        LLMRoutingIncompatibleError("No endpoints found", status_code=404),
        completion(EMPTY_LINEUP),
    )

    await engine.ask_structured("go", trace=trace)

    assert trace.kinds() == ["start", "routing_fallback", "done"]
    assert trace.events[1].stage == "final"
