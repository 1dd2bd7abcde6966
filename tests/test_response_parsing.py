"""Tests for pulling JSON objects out of LLM text."""
import pytest

from core.exceptions import ParseError
from services.response_parsing import extract_json_object


def test_extracts_object_from_markdown_fence():
    text = 'Sure! Here you go:\n```json\n{"meals": [{"name": "Lunch"}]}\n```\nEnjoy.'
    assert extract_json_object(text) == {"meals": [{"name": "Lunch"}]}


def test_nested_braces_use_outermost_span():
    assert extract_json_object('{"a": {"b": 1}}') == {"a": {"b": 1}}


@pytest.mark.parametrize("text", ["", "no json here", "[1, 2, 3]", "} backwards {"])
def test_missing_object_raises_parse_error(text):
    with pytest.raises(ParseError) as exc_info:
        extract_json_object(text)
    assert exc_info.value.code == "AI_PARSE_ERROR"
    assert exc_info.value.status_code == 502


def test_malformed_json_raises_parse_error():
    with pytest.raises(ParseError) as exc_info:
        extract_json_object('{"meals": [,]}')
    assert "malformed" in exc_info.value.message
