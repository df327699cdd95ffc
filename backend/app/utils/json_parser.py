"""Shared utility for parsing JSON step lists from LLM responses."""

import json
import logging
import re

from pydantic import TypeAdapter, ValidationError

from app.core.errors import MalformedStepData
from app.models.steps import ParsedStep

logger = logging.getLogger(__name__)

# Opening or closing fence, with an optional language tag (```json, ```JSON, ```).
_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*")

_STEPS_ADAPTER = TypeAdapter(list[ParsedStep])

EXPECTED_MIN_STEPS = 5
EXPECTED_MAX_STEPS = 10


def extract_json_array(content: str) -> str:
    """Strip code fences anywhere in *content* and slice from the first '[' to the last ']'.

    Models often wrap the array in prose or a fenced block even when told not to.
    """
    text = _FENCE_RE.sub("", content.strip()).strip()

    first = text.find("[")
    last = text.rfind("]")
    if first != -1 and last > first:
        text = text[first:last + 1]

    return text


def parse_steps(content: str) -> list[ParsedStep]:
    """Parse the model's step output into validated ``ParsedStep`` objects.

    Raises:
        MalformedStepData: if no JSON array can be decoded, it is empty, or any
            element is missing a string ``title``/``description``.
    """
    json_text = extract_json_array(content or "")

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        logger.warning(f"Could not parse JSON from LLM response: {(content or '')[:200]}")
        raise MalformedStepData(f"JSONの解析に失敗しました: {e.msg}") from e

    if not isinstance(data, list) or not data:
        raise MalformedStepData("Invalid steps data format")

    try:
        steps = _STEPS_ADAPTER.validate_python(data)
    except ValidationError as e:
        logger.warning(f"Step objects failed validation: {e.error_count()} errors")
        raise MalformedStepData("Invalid steps data format") from e

    if not EXPECTED_MIN_STEPS <= len(steps) <= EXPECTED_MAX_STEPS:
        logger.warning(f"Model returned {len(steps)} steps (expected {EXPECTED_MIN_STEPS}-{EXPECTED_MAX_STEPS})")

    return steps
