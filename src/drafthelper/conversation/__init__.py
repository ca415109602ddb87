"""
Draft Helper Conversation Package.

Implements the tool-calling conversation engine: capability profiles,
request fallback ladders, the tool loop state machine, the schema-forcing
finalizer, and trace hooks.
"""

from drafthelper.conversation.engine import DraftEngine
from drafthelper.conversation.ladder import FallbackLadder, LadderResult
from drafthelper.conversation.loop import ConversationLoop, ConversationState, FinalResult
from drafthelper.conversation.profiles import CapabilityProfile, Rung, resolve_profile
from drafthelper.conversation.transport import HttpxTransport, JSONFetcher, JSONTransport

__all__ = [
    "CapabilityProfile",
    "ConversationLoop",
    "ConversationState",
    "DraftEngine",
    "FallbackLadder",
    "FinalResult",
    "HttpxTransport",
    "JSONFetcher",
    "JSONTransport",
    "LadderResult",
    "Rung",
    "resolve_profile",
]
