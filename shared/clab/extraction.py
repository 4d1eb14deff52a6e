"""
Recover a JSON payload from free-text model responses.

Models wrap their JSON in prose ("Here is my analysis: {...} Let me know").
``extract_json`` finds the first ``{`` or ``[``, scans forward with a single
depth counter shared by braces and brackets, and parses the substring that
ends where the counter returns to zero.

Brackets inside JSON string literals do not count: the scanner tracks string
and escape state, so ``{"summary": "uses {braces}"}`` is recovered whole.
Mismatched bracket kinds (``{]``) balance the counter but are then rejected by
the JSON parser.
"""

import json
from enum import Enum
from typing import Any

from .errors import ExtractionError


class ScanState(Enum):
    OUTSIDE = "outside"
    SCANNING_BALANCED = "scanning_balanced"
    IN_STRING = "in_string"
    IN_STRING_ESCAPE = "in_string_escape"


OPENERS = "{["
CLOSERS = "}]"


def find_json_span(text: str) -> tuple[int, int]:
    """Return ``(start, end)`` of the first balanced JSON candidate.

    ``text[start:end]`` is the candidate.

    Raises:
        ExtractionError: If there is no opening bracket or it never balances.
    """
    state = ScanState.OUTSIDE
    depth = 0
    start = -1

    for index, char in enumerate(text):
        if state is ScanState.OUTSIDE:
            if char in OPENERS:
                start = index
                depth = 1
                state = ScanState.SCANNING_BALANCED
        elif state is ScanState.SCANNING_BALANCED:
            if char == '"':
                state = ScanState.IN_STRING
            elif char in OPENERS:
                depth += 1
            elif char in CLOSERS:
                depth -= 1
                if depth == 0:
                    return start, index + 1
        elif state is ScanState.IN_STRING:
            if char == "\\":
                state = ScanState.IN_STRING_ESCAPE
            elif char == '"':
                state = ScanState.SCANNING_BALANCED
        else:
            state = ScanState.IN_STRING

    if start == -1:
        raise ExtractionError("No JSON object or array found in response")
    raise ExtractionError(f"Unbalanced JSON starting at offset {start}")


def extract_json(text: str) -> Any:
    """Parse the first balanced JSON object or array embedded in ``text``.

    Raises:
        ExtractionError: No opening bracket, unbalanced brackets, or the
            candidate is not valid JSON.
    """
    if not isinstance(text, str):
        raise ExtractionError(f"Expected text, got {type(text).__name__}")

    start, end = find_json_span(text)
    candidate = text[start:end]
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Invalid JSON in response: {e.msg} (line {e.lineno}, column {e.colno})") from e
