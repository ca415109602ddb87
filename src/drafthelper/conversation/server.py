"""
HTTP server for the DraftEngine.

Exposes one structured conversation per request so the engine can be
driven without the browser overlay.

Endpoints
---------
POST   /ask        Run one conversation; returns JSON text, citations, trace.
GET    /health     Health / readiness check.

Usage (standalone)::

    from drafthelper.config import get_settings
    from drafthelper.conversation.engine import DraftEngine
    from drafthelper.conversation.server import create_app
    import uvicorn

    engine = DraftEngine(get_settings().to_engine_config())
    uvicorn.run(create_app(engine), host="127.0.0.1", port=8765)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from drafthelper.conversation.engine import DraftEngine
from drafthelper.conversation.trace import ListTraceEmitter
from drafthelper.errors import (
    LLMConfigError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class AskRequest(BaseModel):
    """Body for POST /ask."""

    prompt: str = Field(..., min_length=1, description="Task prompt text.")
    web: bool = Field(default=False, description="Enable web-search augmentation.")
    task: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque task context (captured draft payload) for the tools.",
    )


class AskResponse(BaseModel):
    """Response body for POST /ask."""

    json_text: str = Field(..., description="Schema-conformant lineup JSON text.")
    citations: list[str] = Field(default_factory=list)
    trace: list[dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str
    model: str
    proxy: bool


def _status_for(exc: LLMError) -> int:
    if isinstance(exc, LLMConfigError):
        return 400
    if isinstance(exc, LLMRateLimitError):
        return 429
    if isinstance(exc, LLMTimeoutError):
        return 504
    return 502


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(engine: DraftEngine) -> FastAPI:
    """Create a FastAPI application wrapping *engine*."""
    app = FastAPI(
        title="Draft Helper API",
        description="Structured lineup recommendations from a tool-calling model.",
        version="0.1.0",
    )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            model=engine.config.model,
            proxy=engine.config.use_proxy,
        )

    @app.post("/ask", response_model=AskResponse)
    async def ask(body: AskRequest) -> AskResponse:
        """Run one structured conversation.

        Raises:
            HTTPException 400: Configuration problem (no key, no linked account).
            HTTPException 429: Rate limited upstream.
            HTTPException 504: Upstream timeout.
            HTTPException 502: Any other engine failure.
        """
        logger.info("POST /ask: web=%s prompt_len=%d", body.web, len(body.prompt))
        trace = ListTraceEmitter()
        try:
            result = await engine.ask_structured(
                body.prompt, web=body.web, task=body.task, trace=trace
            )
        except LLMError as exc:
            status = _status_for(exc)
            logger.error("POST /ask failed (%d): %s", status, exc)
            raise HTTPException(status_code=status, detail=str(exc)) from exc

        return AskResponse(
            json_text=result.json_text,
            citations=result.citations,
            trace=trace.entries,
        )

    return app
