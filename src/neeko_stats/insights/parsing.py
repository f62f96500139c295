"""Decoding of JSON lists returned by the LLM."""

import json
import re
from typing import Any, List

from neeko_stats.errors import InsightParseError

_FENCE_RE = re.compile(r"```(?:json)?\n?")


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def parse_insight_list(text: str) -> List[Any]:
    """Parse a (possibly fenced) JSON array.

    Raises:
        InsightParseError: if the text is not JSON or not a list
    """
    cleaned = strip_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise InsightParseError(f"Malformed JSON: {e.msg}") from e
    if not isinstance(data, list):
        raise InsightParseError(f"Expected array of insights, got {type(data).__name__}")
    return data
