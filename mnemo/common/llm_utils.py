"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import Any, List


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


def _loads_between(raw: str, open_ch: str, close_ch: str) -> Any:
    start = raw.find(open_ch)
    end = raw.rfind(close_ch) + 1
    if start >= 0 and end > start:
        try:
            return json.loads(raw[start:end])
        except json.JSONDecodeError:
            pass
    return None


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict

    Anything that is not a JSON object also yields an empty dict.
    """
    if not raw:
        return {}

    try:
        data = json.loads(_strip_fences(raw))
    except json.JSONDecodeError:
        data = _loads_between(raw, "{", "}")

    return data if isinstance(data, dict) else {}


def parse_llm_json_list(raw: str) -> List[Any]:
    """Parse a JSON array from an LLM response; empty list when there is none."""
    if not raw:
        return []

    try:
        data = json.loads(_strip_fences(raw))
    except json.JSONDecodeError:
        data = _loads_between(raw, "[", "]")

    return data if isinstance(data, list) else []
