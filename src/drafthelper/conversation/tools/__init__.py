"""
Tools for the Draft Helper conversation loop.

- ``ToolRegistry`` maps tool names to definitions and async handlers and
  builds the executor the loop calls.
- ``draft`` provides the two draft tools (profile lookup, pool search)
  backed by a host-supplied ``DraftBoard``.
"""

from drafthelper.conversation.tools.draft import (
    BoardUnavailableError,
    DraftBoard,
    register_draft_tools,
)
from drafthelper.conversation.tools.registry import (
    AsyncToolHandler,
    ToolDefinition,
    ToolExecutor,
    ToolRegistry,
)

__all__ = [
    "AsyncToolHandler",
    "BoardUnavailableError",
    "DraftBoard",
    "ToolDefinition",
    "ToolExecutor",
    "ToolRegistry",
    "register_draft_tools",
]
