"""
Exception hierarchy for the Draft Helper conversation engine.

Transport failures are classified once, at the HTTP boundary, so the
fallback ladder can decide whether to advance by type alone:

- ``LLMRoutingIncompatibleError``: the provider could not route this
  combination of request fields.  The ladder advances to the next rung.
- every other ``LLMTransportError``: aborts the ladder immediately.
"""

from __future__ import annotations


class LLMError(Exception):
    """Base exception for all engine errors."""


class LLMConfigError(LLMError):
    """Missing or invalid configuration (e.g. no API key, no linked account).

    Raised before any network call is made.
    """


class LLMTransportError(LLMError):
    """A request to the completion endpoint failed.

    Attributes:
        status_code: HTTP status code, or ``None`` for network-level failures.
        code: Provider error code from the response body, if any.
        error_type: Provider error type from the response body, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | int | None = None,
        error_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.error_type = error_type


class LLMRoutingIncompatibleError(LLMTransportError):
    """No provider endpoint accepts this combination of request fields."""


class LLMConnectionError(LLMTransportError):
    """Raised when the endpoint cannot be reached."""


class LLMTimeoutError(LLMTransportError):
    """Raised when a request exceeds its timeout."""


class LLMAuthError(LLMTransportError):
    """Authentication failed (401/403)."""


class LLMRateLimitError(LLMTransportError):
    """Rate limited by the endpoint or proxy (429)."""


class LLMResponseError(LLMError):
    """The endpoint answered, but not in a usable shape."""


class EmptyCompletionError(LLMResponseError):
    """The finalization response carried no content."""


class ToolExecutionError(LLMError):
    """The tool executor itself faulted (raised, timed out, or returned
    a value that cannot be serialized).

    Tool-reported errors (``{"error": ...}`` results) are *not* faults and
    never raise this.

    Attributes:
        tool_name: Name of the tool being executed.
        call_id: Invocation id from the assistant message.
    """

    def __init__(self, message: str, tool_name: str, call_id: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name
        self.call_id = call_id
