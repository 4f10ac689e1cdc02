"""Extraction of JSON payloads embedded in model replies.

Models wrap JSON in prose and Markdown fences in many ways. Candidates are
searched in three tiers, and the first tier that yields anything wins:

1. fenced blocks tagged ``json``
2. any other fenced block
3. balanced ``{...}``/``[...]`` spans anywhere in the text

A fenced block whose whole body parses gives that value. Otherwise the block
body (or, in tier 3, the text) is scanned for balanced spans. The scanner
tracks string literals, so braces and brackets inside JSON strings do not
affect nesting.
"""

import json
import logging
import re
from typing import Any, List, Tuple

from ..errors import ExtractionError

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```[ \t]*([\w+-]*)[^\S\n]*\n?(.*?)```", re.DOTALL)

_CLOSERS = {"{": "}", "[": "]"}
_MISSING = object()


def balanced_spans(text: str) -> List[Tuple[int, int]]:
    """Return the ``(start, end)`` slices of every balanced ``{...}``/``[...]`` span.

    The text is read once. Spans are ordered by start, so an enclosing span
    comes before the spans nested inside it. An unmatched closer, or a line
    break inside a string, abandons every span still open.
    """
    spans: List[Tuple[int, int]] = []
    stack: List[int] = []
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char == "\n":
                # JSON strings never hold a raw line break, so the quote was prose
                in_string = False
                stack.clear()
            continue
        if char in _CLOSERS:
            stack.append(index)
        elif not stack:
            continue
        elif char == '"':
            in_string = True
        elif char in "}]":
            if _CLOSERS[text[stack[-1]]] == char:
                spans.append((stack.pop(), index + 1))
            else:
                stack.clear()
    spans.sort()
    return spans


def _is_payload(value: Any) -> bool:
    # Bare prose like "[1]" is not a payload
    if isinstance(value, dict):
        return True
    if isinstance(value, list):
        return len(value) > 1 or any(isinstance(item, (str, dict, list)) for item in value)
    return False


def scan_json_spans(text: str) -> List[Any]:
    """Parse every top-level balanced object or array found in ``text``.

    When a span does not parse, the spans nested inside it are tried instead.
    """
    values: List[Any] = []
    position = 0
    for start, end in balanced_spans(text):
        if start < position:
            continue
        value = _loads(text[start:end])
        if value is not _MISSING and _is_payload(value):
            values.append(value)
            position = end
    return values


def _loads(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (ValueError, RecursionError):
        return _MISSING


def _fenced_values(blocks: List[str]) -> List[Any]:
    values: List[Any] = []
    for body in blocks:
        value = _loads(body.strip())
        if value is not _MISSING:
            values.append(value)
        else:
            values.extend(scan_json_spans(body))
    return values


def find_json_values(text: str) -> List[Any]:
    """Return every JSON value embedded in ``text``, in order of appearance."""
    json_blocks: List[str] = []
    other_blocks: List[str] = []
    for match in FENCE_PATTERN.finditer(text):
        language, body = match.group(1).lower(), match.group(2)
        if language == "json":
            json_blocks.append(body)
        else:
            other_blocks.append(body)

    for tier, blocks in (("json fences", json_blocks), ("other fences", other_blocks)):
        values = _fenced_values(blocks)
        if values:
            logger.debug(f"Extracted {len(values)} JSON value(s) from {tier}")
            return values

    values = scan_json_spans(text)
    logger.debug(f"Extracted {len(values)} JSON value(s) from unfenced text")
    return values


def extract_json(text: str) -> Any:
    """Extract the JSON payload from a reply.

    A single value is returned as is; several are returned as a list in the
    order they appear. Raises ExtractionError when nothing is found.
    """
    values = find_json_values(text)
    if not values:
        raise ExtractionError("No JSON data found in the response")
    if len(values) == 1:
        return values[0]
    return values
