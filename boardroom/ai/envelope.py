"""
Agent output envelope.

Every role run returns {"data": ..., "meta": ...}. meta carries generation
identifiers, quality-check flags and a versioned handoff descriptor that
tells downstream consumers which agents can take the output next.

Usage:
    from boardroom.ai.envelope import wrap_agent_output
    envelope = wrap_agent_output("board-ceo", input_echo=inp, mode="board_review",
                                 legacy_output={"review": review, "meta": {...}})
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

HANDOFF_VERSION = "1.0"
HANDOFF_TYPE_BOARD_REVIEW = "board_review"

# Handoff type → agents that accept it as input
COMPAT_BY_TYPE: dict[str, list[str]] = {
    HANDOFF_TYPE_BOARD_REVIEW: [],
}

RECOMMENDED_NEXT: dict[str, list[str]] = {
    "board-ceo": ["board-chair"],
    "board-cto": ["board-chair"],
    "board-cfo": ["board-chair"],
    "board-chair": [],
}

_DEFAULT_KNOWLEDGE_USED = {"workspace_items": 0, "agent_items": 0, "top_ids": []}


def unwrap(payload: Any) -> Any:
    """Return the data part of an envelope, or the payload itself."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict) and "meta" in payload:
        return payload["data"]
    return payload


def sanitize_input_echo(value: Any) -> Any:
    """Drop private ``__``-prefixed keys before echoing input back."""
    if not isinstance(value, dict):
        return value if value is not None else {}
    return {k: v for k, v in value.items() if not str(k).startswith("__")}


def validate_required(payload: Any, schema: dict | None) -> tuple[bool, list[str]]:
    """Shallow check of top-level ``required`` keys and their declared object/array types."""
    if not isinstance(schema, dict) or not schema:
        return True, []
    if not isinstance(payload, dict):
        return False, ["payload must be an object"]

    errors = []
    properties = schema.get("properties") or {}
    for key in schema.get("required") or []:
        if key not in payload:
            errors.append(f"{key} is required")
            continue
        declared = (properties.get(key) or {}).get("type")
        if declared == "object" and not isinstance(payload[key], dict):
            errors.append(f"{key} must be an object")
        elif declared == "array" and not isinstance(payload[key], list):
            errors.append(f"{key} must be an array")
    return not errors, errors


def _board_review_entities(data: Any) -> dict:
    review = data.get("review") if isinstance(data, dict) else None
    if not isinstance(review, dict):
        review = {}
    return {
        "role": review.get("role") or "",
        "decision": (review.get("decision") or review.get("stance")
                     or review.get("recommendation") or review.get("feasibility") or ""),
        "summary": (review.get("final_summary") or review.get("verdict")
                    or review.get("unit_economics_view") or ""),
        "references": review.get("references") or {},
    }


def build_handoff(agent_id: str, data: Any) -> dict:
    return {
        "type": HANDOFF_TYPE_BOARD_REVIEW,
        "version": HANDOFF_VERSION,
        "entities": _board_review_entities(data),
        "recommended_next_agents": list(RECOMMENDED_NEXT.get(agent_id, [])),
        "compat": list(COMPAT_BY_TYPE.get(HANDOFF_TYPE_BOARD_REVIEW, [])),
    }


def _quality_checks(legacy_meta: dict, llm_connected: bool) -> dict:
    def flag(*keys, default=True):
        for key in keys:
            if isinstance(legacy_meta.get(key), bool):
                return legacy_meta[key]
        return default

    checks = legacy_meta.get("quality_checks")
    source = checks if isinstance(checks, dict) else {}
    legacy_meta = {**legacy_meta, **source}
    return {
        "no_fabrication": flag("no_fabrication"),
        "within_limits": flag("within_max_words", "within_limits"),
        "dedupe_ok": flag("dedupe_ok"),
        "grounding_ok": flag("grounded_claims_ok", "grounding_ok"),
        "llm_connected": flag("llm_connected", default=llm_connected),
        "schema_valid": True,
    }


def wrap_agent_output(
    agent_id: str,
    input_echo: Any,
    mode: str,
    legacy_output: dict | None,
    output_schema: dict | None = None,
    provider_name: str = "",
    trace_id: str | None = None,
    web_stats: dict | None = None,
) -> dict:
    """Wrap a role's output in the standard envelope.

    Args:
        agent_id: Canonical agent id (e.g. "board-cfo").
        input_echo: Normalized role input; ``__``-prefixed keys are dropped.
        mode: Run mode, "board_review" for board roles.
        legacy_output: {"review": ..., "meta": ...} produced by the role.
        output_schema: Schema checked by validate_required() for schema_valid.
        provider_name: Provider that generated the output ("fixture", "openai").
        trace_id: Upstream trace id; defaults to the run id.
        web_stats: Optional search statistics.
    """
    data = legacy_output or {}
    legacy_meta = data.get("meta") if isinstance(data.get("meta"), dict) else {}
    schema_ok, _ = validate_required(data, output_schema)

    quality = _quality_checks(legacy_meta, llm_connected=provider_name not in ("", "fixture"))
    quality["schema_valid"] = schema_ok

    knowledge_used = legacy_meta.get("knowledge_used")
    if not knowledge_used and isinstance(input_echo, dict):
        knowledge_used = input_echo.get("__knowledge_used")

    run_id = uuid.uuid4().hex
    stats = web_stats if web_stats is not None else legacy_meta.get("web_stats")
    meta = {
        "agent_id": agent_id,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "run_id": run_id,
        "mode": mode or "",
        "input_echo": sanitize_input_echo(input_echo),
        "quality_checks": quality,
        "limitations": list(legacy_meta.get("limitations") or []),
        "assumptions": list(legacy_meta.get("assumptions") or []),
        "handoff": build_handoff(agent_id, data),
        "web_stats": stats,
        "knowledge_used": knowledge_used or dict(_DEFAULT_KNOWLEDGE_USED),
    }
    if legacy_meta.get("warnings"):
        meta["warnings"] = list(legacy_meta["warnings"])

    meta["trace_id"] = trace_id or run_id
    return {"data": data, "meta": meta}
