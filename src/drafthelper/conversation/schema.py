"""JSON schema for the final lineup recommendation."""

from __future__ import annotations

from typing import Any

SCHEMA_NAME = "draft_lineup"


def lineup_json_schema() -> dict[str, Any]:
    """Return the strict schema the finalization call must satisfy."""
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "lineup": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "slot_index": {"type": "number"},
                        "slot_multiplier": {"type": "number"},
                        "player": {"type": "string"},
                        "player_boost_x": {"type": ["number", "null"]},
                        "effective_multiplier": {"type": "number"},
                    },
                    "required": [
                        "slot_index",
                        "slot_multiplier",
                        "player",
                        "player_boost_x",
                        "effective_multiplier",
                    ],
                },
            },
            "bets": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "tier": {"type": "string", "enum": ["top50", "top20", "top10"]},
                        "recommend": {"type": "boolean"},
                        "confidence": {"type": "number", "minimum": 0, "maximum": 100},
                        "reason": {"type": "string"},
                    },
                    "required": ["tier", "recommend", "confidence", "reason"],
                },
            },
            "assumptions": {"type": "array", "items": {"type": "string"}},
            "questions": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["lineup", "bets", "assumptions", "questions"],
    }


def lineup_response_format(schema: dict[str, Any] | None = None) -> dict[str, Any]:
    """Wrap *schema* (default: the lineup schema) as a strict ``response_format``."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": SCHEMA_NAME,
            "strict": True,
            "schema": schema if schema is not None else lineup_json_schema(),
        },
    }
