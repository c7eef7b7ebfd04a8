"""Tolerant extraction of a JSON value from noisy model output."""

from __future__ import annotations

import json
import logging
import re
from json import JSONDecodeError
from typing import Any, Iterator

from errors import MalformedJSON

LOGGER = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```json[ \t]*\r?\n(.*?)\r?\n?[ \t]*```", re.DOTALL | re.IGNORECASE)


def _span(text: str, opener: str, closer: str) -> tuple[int, int] | None:
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        return None
    return start, end + 1


def extract_json(text: str) -> str:
    """Return the substring of ``text`` most likely to hold the JSON payload.

    Order: a ```json fenced block, then the first-``{``/last-``}`` span or the
    first-``[``/last-``]`` span, then the text unchanged. The object span wins
    when both exist, unless the array span encloses it (a list of objects).

    This is a heuristic: braces inside string literals can throw the span off.
    ``parse_json`` covers that case with a decoder scan.
    """
    match = _FENCED_JSON_RE.search(text)
    if match:
        return match.group(1).strip()

    obj = _span(text, "{", "}")
    arr = _span(text, "[", "]")
    if obj and arr:
        if arr[0] < obj[0] and arr[1] > obj[1]:
            return text[arr[0]:arr[1]]
        return text[obj[0]:obj[1]]
    if obj:
        return text[obj[0]:obj[1]]
    if arr:
        return text[arr[0]:arr[1]]
    return text


def parse_json(text: str) -> Any:
    """Parse the JSON value embedded in ``text`` or raise MalformedJSON.

    When the extracted span does not decode, a decoder scan accepts a value
    only if it is the single JSON object or array in the text; several
    candidates are ambiguous and rejected rather than returned in part.
    """
    candidate = extract_json(text.strip())
    try:
        return json.loads(candidate)
    except JSONDecodeError:
        pass

    parsed = _decode_sole_value(text)
    if parsed is not None:
        return parsed

    LOGGER.error("Failed to parse JSON from AI response: %s", text)
    raise MalformedJSON(text)


def _scan_values(content: str) -> Iterator[Any]:
    """Yield each top-level JSON object or array decodable from ``content``."""
    decoder = json.JSONDecoder()
    index = 0
    while index < len(content):
        if content[index] not in "{[":
            index += 1
            continue
        try:
            candidate, end = decoder.raw_decode(content, index)
        except JSONDecodeError:
            index += 1
            continue
        index = end
        if isinstance(candidate, dict):
            yield candidate
        # Skip bracketed prose such as citation markers "[1]".
        elif candidate and all(isinstance(item, (dict, str)) for item in candidate):
            yield candidate


def _decode_sole_value(content: str) -> Any | None:
    values = _scan_values(content)
    first = next(values, None)
    if first is None:
        return None
    if next(values, None) is not None:
        LOGGER.warning("AI response holds more than one JSON value; refusing to pick one")
        return None
    return first
