"""
Tests for the JSON-Schema stub synthesizer.

Covers:
  - type dispatch (string/integer/number/boolean/null/array/object)
  - required ∪ properties keys on objects
  - string formats and key-name hints
  - const/default/enum literals
  - oneOf/anyOf/allOf combinators
  - malformed fragments never raise
"""

import pytest

from boardroom.ai.roles import board_agents
from boardroom.ai.schema_stub import EPOCH_DATE, EPOCH_ISO, synthesize


class TestTypeDispatch:
    @pytest.mark.parametrize("schema, expected", [
        ({"type": "string"}, "stub"),
        ({"type": "integer"}, 0),
        ({"type": "integer", "minimum": 3}, 3),
        ({"type": "number", "minimum": 1.5}, 1.5),
        ({"type": "boolean"}, False),
        ({"type": "null"}, None),
        ({"type": ["null", "string"]}, "stub"),
    ])
    def test_scalar_types(self, schema, expected):
        assert synthesize(schema) == expected

    def test_array_has_single_item_from_items_schema(self):
        assert synthesize({"type": "array", "items": {"type": "integer"}}) == [0]

    def test_items_without_type_is_array(self):
        assert synthesize({"items": {"type": "boolean"}}) == [False]

    def test_object_contains_required_and_declared_keys(self):
        schema = {
            "type": "object",
            "required": ["a", "undeclared"],
            "properties": {"a": {"type": "string"}, "b": {"type": "integer"}},
        }
        result = synthesize(schema)
        assert set(result) == {"a", "b", "undeclared"}
        assert result["a"] == "stub"
        assert result["b"] == 0
        # required-but-undeclared keys default to an empty object
        assert result["undeclared"] == {}

    def test_empty_object_defaults_to_empty_dict(self):
        assert synthesize({"type": "object"}) == {}

    def test_meta_key_gets_generated_at(self):
        result = synthesize({"type": "object", "required": ["meta"]})
        assert result == {"meta": {"generated_at": EPOCH_ISO}}


class TestStrings:
    @pytest.mark.parametrize("fmt, expected", [
        ("date-time", EPOCH_ISO),
        ("date", EPOCH_DATE),
        ("email", "stub@example.com"),
        ("uri", "https://example.com"),
    ])
    def test_formats(self, fmt, expected):
        assert synthesize({"type": "string", "format": fmt}) == expected

    def test_key_hints(self):
        schema = {
            "type": "object",
            "properties": {
                "contact_email": {"type": "string"},
                "source_url": {"type": "string"},
                "profile_link": {"type": "string"},
                "name": {"type": "string"},
            },
        }
        result = synthesize(schema)
        assert result["contact_email"] == "stub@example.com"
        assert result["source_url"] == "https://example.com"
        assert result["profile_link"] == "https://example.com"
        assert result["name"] == "stub"


class TestLiteralsAndCombinators:
    def test_const_default_enum(self):
        assert synthesize({"type": "string", "const": "fixed"}) == "fixed"
        assert synthesize({"type": "integer", "default": 7}) == 7
        assert synthesize({"type": "string", "enum": ["GO", "HOLD"]}) == "GO"

    def test_literal_is_copied(self):
        schema = {"default": {"nested": [1]}}
        value = synthesize(schema)
        value["nested"].append(2)
        assert schema["default"] == {"nested": [1]}

    def test_one_of_uses_first_branch(self):
        assert synthesize({"oneOf": [{"type": "integer"}, {"type": "string"}]}) == 0
        assert synthesize({"anyOf": [{"type": "boolean"}]}) is False

    def test_all_of_merges_properties_and_required(self):
        schema = {"allOf": [
            {"type": "object", "properties": {"a": {"type": "string"}}, "required": ["a"]},
            {"properties": {"b": {"type": "integer"}}, "required": ["c"]},
        ]}
        assert synthesize(schema) == {"a": "stub", "c": {}, "b": 0}


class TestRobustness:
    @pytest.mark.parametrize("schema", [None, "string", 42, [], {"oneOf": ["x"]},
                                        {"properties": "broken", "required": "nope"},
                                        {"allOf": [{"properties": ["x"]}]},
                                        {"allOf": [{"required": 5}]},
                                        {"allOf": ["x", {"required": [1, None]}]}])
    def test_malformed_fragments_resolve_to_empty_object(self, schema):
        assert synthesize(schema) == {}

    @pytest.mark.parametrize("minimum", [float("inf"), float("-inf"), float("nan"), True, "3"])
    def test_unusable_minimum_gives_zero(self, minimum):
        assert synthesize({"type": "integer", "minimum": minimum}) == 0
        assert synthesize({"type": "number", "minimum": minimum}) == 0

    def test_broken_all_of_part_keeps_valid_parts(self):
        schema = {"allOf": [{"properties": {"a": {"type": "boolean"}}}, {"properties": ["x"], "required": 5}]}
        assert synthesize(schema) == {"a": False}

    def test_every_role_schema_is_fully_keyed(self):
        for agent in board_agents():
            schema = agent.response_schema
            result = synthesize(schema)
            expected = set(schema.get("required", [])) | set(schema.get("properties", {}))
            assert expected <= set(result), agent.agent_id
