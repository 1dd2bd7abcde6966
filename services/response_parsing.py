"""Helpers for pulling JSON out of free-form LLM responses."""

import json
from typing import Any, Dict

from core.exceptions import ParseError


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the JSON object spanning the first `{` to the last `}` in `text`.

    Leading/trailing prose and markdown code fences are tolerated.

    Raises:
        ParseError: If no object is present or it is not valid JSON.
    """
    if not text:
        raise ParseError("No JSON found in AI response")
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ParseError("No JSON found in AI response")
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as exc:
        raise ParseError("AI response contained malformed JSON", details={"error": str(exc)})
    if not isinstance(data, dict):
        raise ParseError("AI response JSON is not an object")
    return data
