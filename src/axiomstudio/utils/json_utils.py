"""
JSON helpers for model output.

Models often wrap JSON in markdown fences or add a sentence around it; both
are stripped before parsing.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from ..errors import OutputContractError

_FENCE_RE = re.compile(r"^```(?:json)?|```$", re.IGNORECASE)


def clean_json_response(text: str) -> str:
    """Strip code fences and slice to the outermost ``{...}`` span."""
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_RE.sub("", cleaned).strip()
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last != -1:
        cleaned = cleaned[first:last + 1]
    return cleaned


def parse_json_response(text: str) -> Dict[str, Any]:
    cleaned = clean_json_response(text)
    if not cleaned:
        raise OutputContractError("", "No text content found in model response", kind="empty_output")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise OutputContractError(text, str(e), kind="invalid_json")
    if not isinstance(data, dict):
        raise OutputContractError(text, "top-level JSON value must be an object", kind="schema")
    return data
