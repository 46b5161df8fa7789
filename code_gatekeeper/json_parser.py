"""Safe JSON extraction for LLM responses."""
import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

# Greedy: first "{" to last "}" in the reply
JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class JSONExtractionError(ValueError):
    """No JSON object could be recovered from the reply."""


def strip_code_fence(raw: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = raw.strip()
    if text.startswith("```json"):
        text = text[7:].strip()
    elif text.startswith("```"):
        text = text[3:].strip()

    if text.endswith("```"):
        text = text[:-3].strip()
    return text


def extract_json_object(raw: str) -> dict[str, Any]:
    """
    Extract the JSON object embedded in an LLM reply.

    Args:
        raw: Raw LLM response string

    Returns:
        Parsed object

    Raises:
        JSONExtractionError: If no object is present or it does not parse
    """
    text = strip_code_fence(raw or "")
    match = JSON_OBJECT.search(text)
    if not match:
        logger.warning("LLM reply contained no JSON object")
        raise JSONExtractionError("No JSON object in response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"LLM did not return valid JSON: {e}")
        raise JSONExtractionError(f"Invalid JSON in response: {e}") from e

    if not isinstance(data, dict):
        raise JSONExtractionError("Response JSON is not an object")

    return data


def clamp_score(value: Any, default: int = 0) -> int:
    """Clamp a score to the valid range [0, 100]."""
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(0, min(100, score))
