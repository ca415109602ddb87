"""
HTTP transport for the conversation engine.

Defines the ``JSONTransport`` Protocol ("issue a JSON POST, get JSON back or
a typed error") so the engine does not depend on a particular HTTP library,
and ``HttpxTransport``, the default implementation on ``httpx.AsyncClient``.

All provider failures are classified here, at the boundary.  Nothing above
this module inspects error strings.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from drafthelper.errors import (
    LLMAuthError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    LLMRoutingIncompatibleError,
    LLMTimeoutError,
    LLMTransportError,
)

logger = logging.getLogger(__name__)

_ROUTING_INCOMPATIBLE_MARKER = "no endpoints found"
_AUTH_ERROR_STATUS_CODES = {401, 403}


@runtime_checkable
class JSONTransport(Protocol):
    """Protocol for the HTTP layer used by the fallback ladder."""

    async def post_json(
        self,
        url: str,
        body: dict[str, Any],
        *,
        headers: dict[str, str],
        timeout: float,
    ) -> dict[str, Any]:
        """POST *body* as JSON and return the decoded JSON response.

        Raises:
            LLMRoutingIncompatibleError: The provider cannot route the request.
            LLMTransportError: Any other network or HTTP failure.
            LLMResponseError: The response body is not a JSON object.
        """
        ...


@runtime_checkable
class JSONFetcher(Protocol):
    """Protocol for plain JSON ``GET`` requests (model catalog)."""

    async def get_json(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        """GET *url* and return the decoded JSON response.

        Raises:
            LLMTransportError: Any network or HTTP failure.
            LLMResponseError: The response body is not a JSON object.
        """
        ...


def describe_error(status_code: int, payload: Any, text: str) -> str:
    """Build a human-readable message from a provider error response.

    Combines ``error.message`` (or top-level ``message``), the upstream
    provider error from ``error.metadata``, and the error code/type.
    """
    error = payload.get("error") if isinstance(payload, dict) else None
    error = error if isinstance(error, dict) else {}
    message = error.get("message")
    if not message and isinstance(payload, dict):
        message = payload.get("message")
    message = str(message or f"HTTP {status_code}")

    metadata = error.get("metadata")
    provider_error = metadata.get("provider_error") if isinstance(metadata, dict) else None
    if provider_error:
        if not isinstance(provider_error, str):
            provider_error = json.dumps(provider_error)
        message += f" | Provider: {provider_error}"
    if error.get("code"):
        message += f" [code: {error['code']}]"
    if error.get("type"):
        message += f" [type: {error['type']}]"
    if not payload and text:
        logger.debug("Unparsed error body: %s", text[:2000])
    return message


def classify_error(status_code: int, payload: Any, text: str) -> LLMTransportError:
    """Map a non-2xx response onto the typed error hierarchy."""
    message = describe_error(status_code, payload, text)
    error = payload.get("error") if isinstance(payload, dict) else None
    error = error if isinstance(error, dict) else {}
    kwargs: dict[str, Any] = {
        "status_code": status_code,
        "code": error.get("code"),
        "error_type": error.get("type"),
    }

    if _ROUTING_INCOMPATIBLE_MARKER in message.lower():
        return LLMRoutingIncompatibleError(message, **kwargs)
    if status_code in _AUTH_ERROR_STATUS_CODES:
        return LLMAuthError(message, **kwargs)
    if status_code == 429:
        return LLMRateLimitError(message, **kwargs)
    return LLMTransportError(message, **kwargs)


class HttpxTransport:
    """``JSONTransport`` backed by ``httpx.AsyncClient``.

    The client is created lazily and reused across requests.  Use as an
    async context manager, or call ``aclose()`` when finished::

        async with HttpxTransport() as transport:
            data = await transport.post_json(url, body, headers=h, timeout=90.0)

    Attributes:
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject one).
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def post_json(
        self,
        url: str,
        body: dict[str, Any],
        *,
        headers: dict[str, str],
        timeout: float,
    ) -> dict[str, Any]:
        return await self._request("POST", url, body=body, headers=headers, timeout=timeout)

    async def get_json(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        """GET *url* and return the decoded JSON response."""
        return await self._request("GET", url, body=None, headers=headers or {}, timeout=timeout)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        body: dict[str, Any] | None,
        headers: dict[str, str],
        timeout: float,
    ) -> dict[str, Any]:
        request_headers = {"Content-Type": "application/json", **headers}
        try:
            response = await self._get_client().request(
                method,
                url,
                json=body,
                headers=request_headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            logger.error("%s %s timed out after %.1fs", method, url, timeout)
            raise LLMTimeoutError("Request timed out.") from exc
        except httpx.TransportError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise LLMConnectionError(f"Network error: {exc}") from exc

        text = response.text
        try:
            payload = json.loads(text) if text else None
        except json.JSONDecodeError as exc:
            if response.is_success:
                raise LLMResponseError(
                    f"Response from {url} is not valid JSON: {text[:200]!r}"
                ) from exc
            payload = None

        if not response.is_success:
            error = classify_error(response.status_code, payload, text)
            logger.error(
                "%s %s -> HTTP %d (%s): %s",
                method,
                url,
                response.status_code,
                type(error).__name__,
                error,
            )
            raise error

        if not isinstance(payload, dict):
            raise LLMResponseError(f"Response from {url} is not a JSON object.")
        return payload
