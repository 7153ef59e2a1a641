"""
JSON-Schema stub synthesizer.

Builds the smallest value that satisfies the *shape* of a JSON-Schema node.
Used by the fixture provider when an agent has no fixture, so every role
still receives an object with all of its declared keys.

Usage:
    from boardroom.ai.schema_stub import synthesize
    payload = synthesize(role.response_schema)

Never raises: anything that is not a dict schema yields {}.
"""

from __future__ import annotations

import copy
import math
from typing import Any

# Timestamp used for every synthesized date-time, so runs are reproducible
EPOCH_ISO = "1970-01-01T00:00:00.000Z"
EPOCH_DATE = "1970-01-01"

_FORMAT_VALUES = {
    "date-time": EPOCH_ISO,
    "date": EPOCH_DATE,
    "email": "stub@example.com",
    "uri": "https://example.com",
    "url": "https://example.com",
}


def _pick_node(node: dict) -> dict:
    """Resolve combinators: first oneOf/anyOf alternative, or a merged allOf."""
    for key in ("oneOf", "anyOf"):
        options = node.get(key)
        if isinstance(options, list) and options:
            first = options[0]
            return first if isinstance(first, dict) else {}

    parts = node.get("allOf")
    if isinstance(parts, list) and parts:
        merged: dict[str, Any] = {}
        properties: dict[str, Any] = {}
        required: list[str] = []
        for part in parts:
            if not isinstance(part, dict):
                continue
            merged.update(part)
            part_properties = part.get("properties")
            if isinstance(part_properties, dict):
                properties.update(part_properties)
            part_required = part.get("required")
            if not isinstance(part_required, list):
                continue
            for name in part_required:
                if isinstance(name, str) and name not in required:
                    required.append(name)
        merged.pop("allOf", None)
        if properties:
            merged["properties"] = properties
        if required:
            merged["required"] = required
        return merged

    return node


def _node_type(node: dict) -> str:
    declared = node.get("type")
    if isinstance(declared, list):
        declared = next((t for t in declared if t != "null"), None)
    if isinstance(declared, str) and declared:
        return declared
    if "items" in node:
        return "array"
    return "object"


def _finite_minimum(node: dict) -> float | None:
    minimum = node.get("minimum")
    if isinstance(minimum, bool) or not isinstance(minimum, (int, float)):
        return None
    return minimum if math.isfinite(minimum) else None


def _string_value(node: dict, key_hint: str) -> str:
    fmt = node.get("format")
    if isinstance(fmt, str) and fmt in _FORMAT_VALUES:
        return _FORMAT_VALUES[fmt]
    key = key_hint.lower()
    if "email" in key:
        return _FORMAT_VALUES["email"]
    if "url" in key or "link" in key:
        return _FORMAT_VALUES["url"]
    return "stub"


def _object_value(node: dict, key_hint: str) -> dict:
    properties = node.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    required = node.get("required")
    if not isinstance(required, list):
        required = []

    # required first (declared order), then remaining properties
    keys = [k for k in required if isinstance(k, str)]
    keys += [k for k in properties if k not in keys]

    result = {key: synthesize(properties.get(key, {}), key) for key in keys}
    if not result and key_hint == "meta":
        return {"generated_at": EPOCH_ISO}
    return result


def synthesize(schema: Any, key_hint: str = "") -> Any:
    """Return a stub value for ``schema``.

    Args:
        schema: JSON-Schema node (dict). Anything else produces ``{}``.
        key_hint: Name of the property this node belongs to. Only affects
            the empty-object case (``"meta"`` gets a generated_at field)
            and is propagated as ``<key>_item`` for array items.
    """
    if not isinstance(schema, dict):
        return {}

    node = _pick_node(schema)
    if not isinstance(node, dict):
        return {}

    for literal in ("const", "default"):
        if literal in node:
            return copy.deepcopy(node[literal])

    enum = node.get("enum")
    if isinstance(enum, list) and enum:
        return copy.deepcopy(enum[0])

    node_type = _node_type(node)

    if node_type == "string":
        return _string_value(node, key_hint)
    if node_type == "integer":
        minimum = _finite_minimum(node)
        return int(minimum) if minimum is not None else 0
    if node_type == "number":
        minimum = _finite_minimum(node)
        return minimum if minimum is not None else 0
    if node_type == "boolean":
        return False
    if node_type == "null":
        return None
    if node_type == "array":
        items = node.get("items")
        hint = f"{key_hint}_item" if key_hint else "item"
        return [synthesize(items if isinstance(items, dict) else {}, hint)]
    if node_type == "object":
        return _object_value(node, key_hint)
    return {}
