"""
Trace events emitted while a conversation runs.

The engine reports ordered step events to a ``TraceEmitter``:

- ``start``: conversation start (model, augmentation flag)
- ``routing_fallback``: a ladder succeeded on a rung other than its first
- ``tool_call``: an invocation was forwarded for execution
- ``tool_result``: the executor returned (success flag, duration, summary)
- ``done``: the final result was produced

Emission is fire-and-forget: a failing emitter is logged and ignored, and
engine behaviour never depends on it.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TraceEvent:
    """Base trace event.  ``kind`` identifies the step."""

    kind: str
    t: str = field(default_factory=_now_iso, kw_only=True)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StartEvent(TraceEvent):
    kind: str = field(default="start", init=False)
    model: str = ""
    web: bool = False


@dataclass(frozen=True)
class RoutingFallbackEvent(TraceEvent):
    kind: str = field(default="routing_fallback", init=False)
    stage: str = ""
    label: str = ""


@dataclass(frozen=True)
class ToolCallEvent(TraceEvent):
    kind: str = field(default="tool_call", init=False)
    name: str = ""
    id: str = ""
    args: Any = None


@dataclass(frozen=True)
class ToolResultEvent(TraceEvent):
    kind: str = field(default="tool_result", init=False)
    name: str = ""
    id: str = ""
    ok: bool = True
    ms: int = 0
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DoneEvent(TraceEvent):
    kind: str = field(default="done", init=False)


@runtime_checkable
class TraceEmitter(Protocol):
    """Receiver for trace events."""

    def emit(self, event: TraceEvent) -> None: ...


class NullTraceEmitter:
    """Discards every event."""

    def emit(self, event: TraceEvent) -> None:
        return None


class ListTraceEmitter:
    """Collects events in memory, in emission order.

    ``entries`` returns JSON-ready dicts, suitable for persisting as the
    last tool trace.
    """

    def __init__(self) -> None:
        self.events: list[TraceEvent] = []

    def emit(self, event: TraceEvent) -> None:
        self.events.append(event)

    @property
    def entries(self) -> list[dict[str, Any]]:
        return [event.to_dict() for event in self.events]

    def kinds(self) -> list[str]:
        return [event.kind for event in self.events]


class LoggingTraceEmitter:
    """Writes each event to a logger at DEBUG (INFO for fallbacks)."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def emit(self, event: TraceEvent) -> None:
        level = logging.INFO if event.kind == "routing_fallback" else logging.DEBUG
        self._log.log(level, "trace %s: %s", event.kind, event.to_dict())


def safe_emit(emitter: TraceEmitter, event: TraceEvent) -> None:
    """Deliver *event* to *emitter*; emitter failures never reach the engine.

    Events carrying argument payloads are deep-copied first so the emitter
    cannot alias conversation data.
    """
    if isinstance(event, ToolCallEvent):
        event = ToolCallEvent(name=event.name, id=event.id, args=copy.deepcopy(event.args), t=event.t)
    try:
        emitter.emit(event)
    except Exception as exc:
        logger.warning("Trace emitter %r failed on %s event: %s", emitter, event.kind, exc)
