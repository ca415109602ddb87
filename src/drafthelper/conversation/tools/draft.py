"""
Draft tools: player profile lookup and draft-pool search.

The tools act on a live draft board (the page the user is drafting on).
Reading that page is outside this package; it is reached through the
``DraftBoard`` Protocol, which the host application implements.

``register_draft_tools()`` wires both tools into a ``ToolRegistry``.  The
handlers turn every expected failure into an ``{"error": ...}`` result so
the model can read it and carry on.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from drafthelper.conversation.tools.registry import ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)

PROFILE_TOOL = "get_player_profile_stats"
SEARCH_TOOL = "search_draft_players"

# Below this pool size every player is already visible, so search is useless.
SEARCH_MIN_POOL_SIZE = 50

PROFILE_TOOL_DEFINITION = ToolDefinition(
    name=PROFILE_TOOL,
    description=(
        "Fetch and summarize a player's RealSports profile page (rankings, prior "
        "performances, recent game logs). Clicks the player's profile icon in the "
        "draft modal, scrapes their stats, then returns to the draft. Use when "
        "deciding between players beyond boost values."
    ),
    properties={
        "player_name": {
            "type": "string",
            "description": "Player name exactly as shown in the draft modal.",
        },
    },
    required=["player_name"],
)

SEARCH_TOOL_DEFINITION = ToolDefinition(
    name=SEARCH_TOOL,
    description=(
        "Search the draft modal for players by name. The initial pool shows up to "
        "~50 players, but many more may be available. Use this to find specific "
        "players by name (full or partial) that might not appear in the initial "
        "list. Returns matching players with boost values. Note: only searches by "
        "player name, not position or team."
    ),
    properties={
        "query": {
            "type": "string",
            "description": (
                "Player name or partial name to search for "
                "(e.g. 'McDavid', 'Connor', 'Ovi')."
            ),
        },
    },
    required=["query"],
)

_DEBUG_PREFIXES: dict[str, list[str]] = {
    PROFILE_TOOL: [
        f"DEBUG TOOL TEST: You MUST call the tool `{PROFILE_TOOL}` exactly once "
        "before producing the final JSON schema answer.",
        "Pick ONE player from the available pool (prefer a high-boost or a close decision).",
        "After you receive the tool result, continue normally and return the final "
        "JSON schema output.",
    ],
    SEARCH_TOOL: [
        f"DEBUG TOOL TEST: You MUST call the tool `{SEARCH_TOOL}` exactly once "
        "before producing the final JSON schema answer.",
        "Search for a player by name (e.g. 'McDavid', 'Crosby', 'Ovi') to find "
        "additional players that may not be in the initial list.",
        "Note: This search only works with player names, not positions or teams.",
        "After you receive the search results, continue normally and return the "
        "final JSON schema output.",
    ],
}


class BoardUnavailableError(Exception):
    """The draft board cannot serve a request (modal closed, no search box).

    Attributes:
        code: Machine-readable reason, reported as the tool's ``error`` field.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@runtime_checkable
class DraftBoard(Protocol):
    """Access to the live draft page, implemented by the host application."""

    async def discover_profile_url(self, player_name: str) -> str | None:
        """Locate *player_name* in the draft modal; return its profile URL."""
        ...

    async def scrape_profile(
        self, player_name: str, profile_url: str, sport: str | None
    ) -> dict[str, Any]:
        """Open the profile, scrape it, return to the draft."""
        ...

    async def search_players(self, query: str) -> list[dict[str, Any]]:
        """Filter the draft pool by name.

        Raises:
            BoardUnavailableError: If the modal or its search box is missing.
        """
        ...


def _context_get(context: Any, key: str) -> Any:
    if isinstance(context, dict):
        return context.get(key)
    return getattr(context, key, None)


def player_pool_count(context: Any) -> int:
    """Number of players in the captured pool (0 if unknown)."""
    count = _context_get(context, "player_pool_count")
    if isinstance(count, int):
        return count
    pool = _context_get(context, "player_pool")
    return len(pool) if isinstance(pool, list) else 0


def search_tool_useful(context: Any) -> bool:
    return player_pool_count(context) >= SEARCH_MIN_POOL_SIZE


def debug_prompt(tool_name: str, prompt: str) -> str:
    """Prefix *prompt* with an instruction to call *tool_name* once."""
    return "\n".join([*_DEBUG_PREFIXES[tool_name], "", prompt])


def forced_tool_choice(tool_name: str) -> dict[str, Any]:
    return {"type": "function", "function": {"name": tool_name}}


def _format_boost(boost: Any) -> str | None:
    if boost is None:
        return None
    return f"+{boost}x"


class DraftTools:
    """Handlers for the two draft tools, bound to one ``DraftBoard``."""

    def __init__(self, board: DraftBoard) -> None:
        self.board = board

    async def get_player_profile_stats(self, args: dict[str, Any], context: Any) -> dict[str, Any]:
        player_name = str(args.get("player_name") or "").strip()
        if not player_name:
            return {"error": "missing_player_name"}

        logger.debug("Discovering profile URL for %r", player_name)
        profile_url = await self.board.discover_profile_url(player_name)
        if not profile_url:
            return {
                "error": "player_not_found",
                "player_name": player_name,
                "hint": (
                    "Could not find this player in the draft modal. Make sure the "
                    "draft modal is open and the player is visible in the list."
                ),
            }

        stats = await self.board.scrape_profile(
            player_name, profile_url, _context_get(context, "sport")
        )
        return {
            "player_name": player_name,
            "profile_url": profile_url,
            **stats,
            "discovery": "click",
            "mode": "live_dom",
        }

    async def search_draft_players(self, args: dict[str, Any], context: Any) -> dict[str, Any]:
        query = str(args.get("query") or "").strip()
        if not query:
            return {"error": "missing_query"}

        try:
            pool = await self.board.search_players(query)
        except BoardUnavailableError as exc:
            logger.warning("Draft search unavailable (%s): %s", exc.code, exc)
            return {"error": exc.code, "message": str(exc)}

        players = [
            {
                "name": p.get("name"),
                "boost": _format_boost(p.get("boost_x")),
                "status": p.get("status"),
                "profile_url": p.get("profile_url") or None,
            }
            for p in pool
        ]
        logger.debug("Found %d players matching %r", len(players), query)
        return {"query": query, "players_found": len(players), "players": players}


def summarize_profile_result(args: dict[str, Any], result: Any) -> dict[str, Any]:
    r = result if isinstance(result, dict) else {}
    summary: dict[str, Any] = {
        "player_name": r.get("player_name") or args.get("player_name"),
        "profile_url": r.get("profile_url"),
        "discovery": r.get("discovery"),
        "mode": r.get("mode", "live_dom"),
        "header": bool(r.get("header_text")),
    }
    for key in ("season_summary", "recent_performances"):
        section = r.get(key)
        entries = section.get("entries") if isinstance(section, dict) else None
        summary[key] = len(entries) if isinstance(entries, list) else None
    feed = r.get("feed_entries")
    summary["feed_entries"] = len(feed) if isinstance(feed, list) else None
    if r.get("error"):
        summary["error"] = r["error"]
    return summary


def summarize_search_result(args: dict[str, Any], result: Any) -> dict[str, Any]:
    r = result if isinstance(result, dict) else {}
    found = r.get("players_found")
    summary: dict[str, Any] = {
        "query": r.get("query") or args.get("query"),
        "players_found": found if isinstance(found, int) else 0,
    }
    players = r.get("players")
    if isinstance(players, list) and players:
        summary["sample_players"] = [p.get("name") for p in players[:5]]
    if r.get("error"):
        summary["error"] = r["error"]
    return summary


def register_draft_tools(
    registry: ToolRegistry,
    board: DraftBoard,
    *,
    profile: bool = True,
    search: bool = True,
) -> None:
    """Register the enabled draft tools on *registry*."""
    tools = DraftTools(board)
    if profile:
        registry.register(
            PROFILE_TOOL_DEFINITION, tools.get_player_profile_stats, summarize_profile_result
        )
    if search:
        registry.register(
            SEARCH_TOOL_DEFINITION, tools.search_draft_players, summarize_search_result
        )
