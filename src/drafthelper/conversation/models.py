"""
Model catalog: the model ids offered by the provider.

``ModelCatalog.list_models()`` fetches the provider's model list, keeps
regular chat models, sorts preferred providers first, and caches the result
for a day.  Any failure falls back to a fixed list of well-known models so
a settings screen always has something to show.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from drafthelper.config import DEFAULT_MODELS_ENDPOINT
from drafthelper.conversation.transport import JSONFetcher
from drafthelper.errors import LLMError

logger = logging.getLogger(__name__)

CATALOG_TTL_SECONDS = 24 * 60 * 60

FALLBACK_MODELS: list[str] = [
    "google/gemini-2.5-flash",
    "google/gemini-2.5-pro",
    "google/gemini-2.0-flash-001",
    "anthropic/claude-sonnet-4",
    "anthropic/claude-3.5-sonnet",
    "anthropic/claude-3.5-haiku",
    "openai/gpt-4o",
    "openai/gpt-4o-mini",
    "openai/gpt-4-turbo",
    "openai/o1",
    "openai/o1-mini",
    "meta-llama/llama-3.3-70b-instruct",
    "deepseek/deepseek-chat-v3-0324",
    "mistralai/mistral-large",
    "qwen/qwen-2.5-72b-instruct",
]

PREFERRED_PROVIDERS: tuple[str, ...] = (
    "google/",
    "anthropic/",
    "openai/",
    "meta-llama/",
    "deepseek/",
    "mistralai/",
)

_EXCLUDED_VARIANTS = (":free", ":extended")


def _provider_rank(model_id: str) -> int:
    for rank, prefix in enumerate(PREFERRED_PROVIDERS):
        if model_id.startswith(prefix):
            return rank
    return len(PREFERRED_PROVIDERS)


def filter_and_sort(model_ids: list[str]) -> list[str]:
    """Drop free/extended variants; preferred providers first, then A-Z."""
    kept = [m for m in model_ids if m and not any(v in m for v in _EXCLUDED_VARIANTS)]
    return sorted(kept, key=lambda m: (_provider_rank(m), m))


class ModelCatalog:
    """TTL-cached list of available model ids.

    Args:
        transport: Any ``JSONFetcher`` (normally ``HttpxTransport``).
        url: Models endpoint.
        ttl: Seconds a fetched list stays fresh.
        clock: Monotonic clock (tests inject a fake one).
    """

    def __init__(
        self,
        transport: JSONFetcher,
        url: str = DEFAULT_MODELS_ENDPOINT,
        ttl: float = CATALOG_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.url = url
        self.ttl = ttl
        self._clock = clock
        self._models: list[str] = []
        self._fetched_at: float | None = None

    def _is_fresh(self) -> bool:
        if self._fetched_at is None or not self._models:
            return False
        return self._clock() - self._fetched_at <= self.ttl

    def cached(self) -> list[str]:
        """Cached list if still fresh, otherwise the fallback list."""
        return list(self._models) if self._is_fresh() else list(FALLBACK_MODELS)

    async def list_models(self) -> list[str]:
        if self._is_fresh():
            return list(self._models)

        try:
            payload = await self.transport.get_json(self.url, timeout=10.0)
        except LLMError as exc:
            logger.warning("Model list fetch failed, using fallback list: %s", exc)
            return list(FALLBACK_MODELS)

        data: Any = payload.get("data")
        if not isinstance(data, list):
            logger.warning("Model list response has no 'data' array; using fallback list")
            return list(FALLBACK_MODELS)

        models = filter_and_sort(
            [str(m["id"]) for m in data if isinstance(m, dict) and m.get("id")]
        )
        if not models:
            return list(FALLBACK_MODELS)

        self._models = models
        self._fetched_at = self._clock()
        logger.debug("Cached %d model ids", len(models))
        return list(models)
