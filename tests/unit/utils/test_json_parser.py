"""Tests for recovering JSON from model output."""

import pytest

from deep_synthesis.core.exceptions import ParseError
from deep_synthesis.utils.json_parser import (
    JSON_MODE_ATTEMPTS,
    TEXT_MODE_ATTEMPTS,
    attempts_for,
    parse_concatenated_objects,
    parse_direct,
    parse_first_object,
    parse_or_raise,
    parse_stripped_fences,
    parse_wrapped_content,
    run_pipeline,
)


def _has_queries(value):
    if not isinstance(value, dict) or not isinstance(value.get("queries"), list):
        return "queries is not an array"
    return None


class TestAttempts:

    def test_direct(self):
        result = parse_direct('{"queries": ["a"]}')

        assert result.ok
        assert result.value == {"queries": ["a"]}
        assert result.strategy == "direct"

    def test_direct_rejects_empty(self):
        result = parse_direct("   ")

        assert not result.ok
        assert result.error == "empty content"

    def test_code_fences(self):
        result = parse_stripped_fences('```json\n{"a": 1}\n```')

        assert result.ok
        assert result.value == {"a": 1}

    def test_first_object_ignores_surrounding_chatter(self):
        result = parse_first_object('Sure! {"a": 1} Let me know if {you need more')

        assert result.ok
        assert result.value == {"a": 1}

    def test_first_object_without_braces(self):
        assert not parse_first_object("no json here").ok

    def test_wrapped_content(self):
        raw = 'Here you go:\n<content>\n```json\n{"queries": ["x"]}\n```\n</content>'

        result = parse_wrapped_content(raw)

        assert result.ok
        assert result.value == {"queries": ["x"]}
        assert result.strategy == "wrapped_content"

    def test_wrapped_content_with_prose_inside(self):
        result = parse_wrapped_content('<CONTENT>The result is {"a": 2}.</CONTENT>')

        assert result.ok
        assert result.value == {"a": 2}

    def test_concatenated_objects_are_merged(self):
        raw = '{"papers": [{"arxivId": "1"}]}\n{"papers": [{"arxivId": "2"}], "done": true}'

        result = parse_concatenated_objects(raw)

        assert result.ok
        assert [p["arxivId"] for p in result.value["papers"]] == ["1", "2"]
        assert result.value["done"] is True


class TestPipeline:

    def test_attempt_order_depends_on_json_capability(self):
        assert attempts_for(True) is JSON_MODE_ATTEMPTS
        assert attempts_for(False) is TEXT_MODE_ATTEMPTS

    def test_first_valid_result_wins(self):
        raw = '<content>{"queries": ["from tag"]}</content> {"queries": ["other"]}'

        result = run_pipeline(raw, TEXT_MODE_ATTEMPTS, _has_queries)

        assert result.ok
        assert result.value == {"queries": ["from tag"]}

    def test_validator_failure_is_reported(self):
        result = run_pipeline('{"queries": "not a list"}', JSON_MODE_ATTEMPTS, _has_queries)

        assert not result.ok
        assert result.strategy == "pipeline"
        assert "queries is not an array" in result.error

    def test_parse_or_raise(self):
        with pytest.raises(ParseError) as exc_info:
            parse_or_raise("nothing useful", JSON_MODE_ATTEMPTS, what="search query response")

        assert str(exc_info.value).startswith("Failed to parse search query response")

    def test_parse_or_raise_returns_value(self):
        assert parse_or_raise('{"queries": []}', JSON_MODE_ATTEMPTS) == {"queries": []}
