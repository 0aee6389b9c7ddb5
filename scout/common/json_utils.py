"""
JSON Utilities for LLM Response Parsing.

LLM outputs may contain malformed JSON (single quotes, trailing commas,
unquoted keys, markdown fences). json-repair is used as a fallback when
standard json.loads() fails.
"""

import json
import re
from typing import Any, Dict, List

from json_repair import repair_json


def parse_llm_json(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object from an LLM response with robust error recovery.

    Handles:
    - Markdown code blocks (```json ... ```)
    - JSON embedded in surrounding text
    - Single quotes, trailing commas, unquoted keys

    Args:
        text: Raw LLM response text that may contain JSON

    Returns:
        Parsed dictionary from the JSON

    Raises:
        ValueError: If no valid JSON can be extracted or repaired

    Example:
        >>> parse_llm_json('```json\\n{"key": "value"}\\n```')
        {'key': 'value'}
        >>> parse_llm_json("{'name': 'test',}")
        {'name': 'test'}
    """
    if not text or not text.strip():
        raise ValueError("Empty input: no JSON content to parse")

    json_str = _strip_markdown_blocks(text.strip())
    json_str = _extract_json_object(json_str)

    try:
        return json.loads(json_str)
    except json.JSONDecodeError:
        pass  # Fall through to repair

    try:
        repaired = repair_json(json_str, return_objects=True)
    except Exception as e:
        raise ValueError(
            f"Failed to parse or repair JSON: {e}\n"
            f"Original text (first 500 chars): {text[:500]}"
        )

    if isinstance(repaired, dict):
        return repaired
    if isinstance(repaired, list) and repaired and all(isinstance(item, dict) for item in repaired):
        if len(repaired) == 1:
            return repaired[0]
        # Multiple objects - merge them (common LLM pattern)
        merged: Dict[str, Any] = {}
        for item in repaired:
            merged.update(item)
        return merged

    raise ValueError(
        f"json_repair returned unexpected value of type {type(repaired).__name__}. "
        f"Original text (first 500 chars): {text[:500]}"
    )


def parse_llm_json_list(text: str, key: str) -> List[Any]:
    """
    Parse a list from an LLM response.

    Prompts ask for ``{"<key>": [...]}``; models sometimes answer with the
    bare array instead, so both shapes are accepted.

    Raises:
        ValueError: If neither shape can be recovered
    """
    if not text or not text.strip():
        raise ValueError("Empty input: no JSON content to parse")

    stripped = _strip_markdown_blocks(text.strip())
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            parsed = repair_json(stripped, return_objects=True)
        if isinstance(parsed, list):
            return parsed

    data = parse_llm_json(text)
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Expected '{key}' to be a list, got {type(value).__name__}")
    return value


def _strip_markdown_blocks(text: str) -> str:
    """Remove markdown code block wrappers (```json / ```) from text."""
    result = text

    if result.startswith("```json"):
        result = result[7:]
    elif result.startswith("```"):
        result = result[3:]

    if result.endswith("```"):
        result = result[:-3]

    return result.strip()


def _extract_json_object(text: str) -> str:
    """
    Extract JSON object from text that may contain surrounding content.

    Raises:
        ValueError: If no JSON object pattern is found
    """
    text = text.strip()

    if text.startswith("{"):
        return text

    # Content between first { and last }
    json_match = re.search(r'\{.*\}', text, re.DOTALL)
    if json_match:
        return json_match.group(0)

    raise ValueError(f"No JSON object found in text: {text[:200]}")
