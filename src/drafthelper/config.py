"""
Configuration management for the Draft Helper conversation engine.

Two layers:

- ``Settings`` loads configuration from environment variables (prefix
  ``DRAFTHELPER_``) or a ``.env`` file, so nothing needs a code change.
- ``EngineConfig`` is the frozen value handed to each conversation.  The
  engine never reads settings itself; callers build one ``EngineConfig``
  per conversation (usually via ``Settings.to_engine_config()``).
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from drafthelper.errors import LLMConfigError

DEFAULT_MODEL = "google/gemini-2.5-flash"
DEFAULT_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODELS_ENDPOINT = "https://openrouter.ai/api/v1/models"

APP_REFERER = "https://realsports.io/"
APP_TITLE = "RealSports Draft Helper"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Provider settings
    api_key: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = 0.2
    max_tokens: int = 1000
    web_max_results: int = 2
    response_healing: bool = True
    endpoint: str = DEFAULT_ENDPOINT
    models_endpoint: str = DEFAULT_MODELS_ENDPOINT

    # Proxy settings (proxy mode when proxy_endpoint is set and not bypassed)
    proxy_endpoint: str = ""
    proxy_secret: str = ""
    bypass_proxy: bool = False

    # Linked account, required in proxy mode
    username: str = ""
    display_name: str = ""

    # Tool toggles
    enable_profile_tool: bool = True
    enable_search_tool: bool = True
    force_tool_call: bool = False
    force_search_tool: bool = False

    # Loop bounds
    max_iterations: int = 6
    max_tool_calls_per_turn: int = 3
    request_timeout: float = 90.0
    tool_timeout: float = 60.0
    max_citations: int = 25

    # HTTP server settings
    host: str = "127.0.0.1"
    port: int = 8765

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DRAFTHELPER_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("model")
    @classmethod
    def _default_blank_model(cls, value: str) -> str:
        return value.strip() or DEFAULT_MODEL

    @field_validator("temperature")
    @classmethod
    def _clamp_temperature(cls, value: float) -> float:
        return _clamp(value, 0.0, 2.0)

    @field_validator("max_tokens")
    @classmethod
    def _clamp_max_tokens(cls, value: int) -> int:
        return int(_clamp(value, 64, 4000))

    @field_validator("web_max_results")
    @classmethod
    def _clamp_web_max_results(cls, value: int) -> int:
        return int(_clamp(value, 1, 5))

    def to_engine_config(self) -> EngineConfig:
        """Snapshot these settings into an immutable ``EngineConfig``."""
        return EngineConfig(
            model=self.model,
            api_key=self.api_key.strip(),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            web_max_results=self.web_max_results,
            response_healing=self.response_healing,
            endpoint=self.endpoint,
            proxy_endpoint=self.proxy_endpoint,
            proxy_secret=self.proxy_secret,
            bypass_proxy=self.bypass_proxy,
            username=self.username.strip(),
            display_name=self.display_name.strip(),
            enable_profile_tool=self.enable_profile_tool,
            enable_search_tool=self.enable_search_tool,
            force_tool_call=self.force_tool_call,
            force_search_tool=self.force_search_tool,
            max_iterations=self.max_iterations,
            max_tool_calls_per_turn=self.max_tool_calls_per_turn,
            request_timeout=self.request_timeout,
            tool_timeout=self.tool_timeout,
            max_citations=self.max_citations,
        )


def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()


@dataclass(frozen=True)
class EngineConfig:
    """Read-only configuration for one conversation.

    Attributes:
        model: Provider model identifier, e.g. ``"google/gemini-2.5-flash"``.
        api_key: Provider API key (direct mode only).
        temperature: Sampling temperature.
        max_tokens: Completion token limit per request.
        web_max_results: Result count for the web augmentation plugin.
        response_healing: Attach the response-healing plugin to the final call.
        endpoint: Direct chat-completions URL.
        proxy_endpoint: Proxy URL; empty disables proxy mode.
        proxy_secret: Shared secret sent to the proxy.
        bypass_proxy: Use the direct endpoint even if a proxy is configured.
        username: Linked account name (required in proxy mode).
        display_name: Optional display name forwarded to the proxy.
        enable_profile_tool: Declare ``get_player_profile_stats``.
        enable_search_tool: Declare ``search_draft_players``.
        force_tool_call: Debug: force one profile lookup before answering.
        force_search_tool: Debug: force one player search before answering.
        max_iterations: Tool-loop iteration cap.
        max_tool_calls_per_turn: Invocations executed per turn when the
            response carries no reasoning blocks.
        request_timeout: Per-request network timeout in seconds.
        tool_timeout: Per-invocation tool timeout in seconds.
        max_citations: Citation set cap.
    """

    model: str = DEFAULT_MODEL
    api_key: str = ""
    temperature: float = 0.2
    max_tokens: int = 1000
    web_max_results: int = 2
    response_healing: bool = True
    endpoint: str = DEFAULT_ENDPOINT
    proxy_endpoint: str = ""
    proxy_secret: str = ""
    bypass_proxy: bool = False
    username: str = ""
    display_name: str = ""
    enable_profile_tool: bool = True
    enable_search_tool: bool = True
    force_tool_call: bool = False
    force_search_tool: bool = False
    max_iterations: int = 6
    max_tool_calls_per_turn: int = 3
    request_timeout: float = 90.0
    tool_timeout: float = 60.0
    max_citations: int = 25

    @property
    def use_proxy(self) -> bool:
        return bool(self.proxy_endpoint) and not self.bypass_proxy

    @property
    def request_url(self) -> str:
        return self.proxy_endpoint if self.use_proxy else self.endpoint

    def validate(self) -> None:
        """Raise ``LLMConfigError`` if the conversation cannot start.

        Direct mode needs an API key; proxy mode needs a linked account.
        """
        if not self.use_proxy and not self.api_key:
            raise LLMConfigError("Missing OpenRouter API key.")
        if self.use_proxy and not self.username:
            raise LLMConfigError(
                "Please link your account in Settings before using Ask AI."
            )
        if self.max_iterations < 1:
            raise LLMConfigError("max_iterations must be at least 1.")
        if self.max_tool_calls_per_turn < 1:
            raise LLMConfigError("max_tool_calls_per_turn must be at least 1.")

    def build_headers(self) -> dict[str, str]:
        """Return request headers for the active mode (proxy or direct)."""
        if self.use_proxy:
            headers = {"X-RSDH-Auth": self.proxy_secret}
            if self.username:
                headers["X-RSDH-User"] = self.username
                if self.display_name:
                    headers["X-RSDH-DisplayName"] = self.display_name
        else:
            headers = {"Authorization": f"Bearer {self.api_key}"}
        headers["HTTP-Referer"] = APP_REFERER
        headers["X-Title"] = APP_TITLE
        return headers
