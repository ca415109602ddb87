"""
Draft Helper - agentic tool-calling conversation engine.

Drives a multi-turn exchange with an OpenAI-compatible completion endpoint,
lets the model call draft tools mid-conversation, and always ends with a
response that satisfies the strict lineup schema.

Quick Start:
    >>> from drafthelper.config import get_settings
    >>> from drafthelper.conversation import DraftEngine
    >>> engine = DraftEngine(get_settings().to_engine_config())
    >>> result = await engine.ask_structured("pick a lineup")
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
