"""
JSON helpers for parsing generative-model output.

Models wrap JSON in markdown fences and prose, and regularly emit raw
newlines or tabs inside string values (illegal in JSON). The helpers here
slice out the JSON span, and if the first parse fails, escape control
characters that sit inside string literals before trying exactly once more.
"""

import json
import logging
import re
from typing import Any, Optional

from exceptions import ParsingError

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"```(?:json)?\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```")

_CONTROL_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}


def strip_code_fences(text: str) -> str:
    cleaned = _FENCE_OPEN.sub("", text or "")
    return _FENCE_CLOSE.sub("", cleaned)


def extract_json_span(text: str, opener: str = "[", closer: str = "]") -> Optional[str]:
    """
    Return the substring from the first `opener` to the last `closer`.

    Examples:
        >>> extract_json_span('Here you go: [{"a": 1}] done')
        '[{"a": 1}]'
        >>> extract_json_span("no json here") is None
        True
    """
    cleaned = strip_code_fences(text)
    first = cleaned.find(opener)
    last = cleaned.rfind(closer)
    if first == -1 or last <= first:
        return None
    return cleaned[first : last + 1]


def escape_control_chars_in_strings(text: str) -> str:
    """
    Escape raw control characters that occur inside quoted JSON strings.

    Structural whitespace between tokens is left untouched, so a
    pretty-printed document keeps its layout.

    Examples:
        >>> escape_control_chars_in_strings('{"a": "line1\\nline2"}')
        '{"a": "line1\\\\nline2"}'
    """
    out = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
                out.append(ch)
            elif ch == "\\":
                escaped = True
                out.append(ch)
            elif ch == '"':
                in_string = False
                out.append(ch)
            elif ord(ch) < 0x20:
                out.append(_CONTROL_ESCAPES.get(ch, f"\\u{ord(ch):04x}"))
            else:
                out.append(ch)
        else:
            if ch == '"':
                in_string = True
            out.append(ch)
    return "".join(out)


def _parse_with_repair(span: str, *, logger_name: str) -> Any:
    try:
        return json.loads(span)
    except json.JSONDecodeError as first_error:
        logger.warning(f"[{logger_name}] Initial JSON parse failed, sanitizing: {first_error}")

    sanitized = escape_control_chars_in_strings(span)
    try:
        return json.loads(sanitized)
    except json.JSONDecodeError as e:
        raise ParsingError(
            f"Failed to parse model output after sanitization: {e}",
            detail={"preview": span[:200]},
        ) from e


def parse_model_json_array(text: str, *, logger_name: str = "json") -> list:
    """
    Parse a JSON array out of model output.

    Raises:
        ParsingError: no array span exists, or it is still invalid after
            control characters inside strings were escaped.
    """
    span = extract_json_span(text, "[", "]")
    if span is None:
        raise ParsingError(
            "Model output does not contain a JSON array",
            detail={"preview": (text or "")[:200]},
        )
    parsed = _parse_with_repair(span, logger_name=logger_name)
    if not isinstance(parsed, list):
        raise ParsingError("Model output is not a JSON array")
    return parsed


def parse_model_json_object(text: str, *, logger_name: str = "json") -> dict:
    """
    Parse a JSON object out of model output.

    Raises:
        ParsingError: same rules as parse_model_json_array.
    """
    span = extract_json_span(text, "{", "}")
    if span is None:
        raise ParsingError(
            "Model output does not contain a JSON object",
            detail={"preview": (text or "")[:200]},
        )
    parsed = _parse_with_repair(span, logger_name=logger_name)
    if not isinstance(parsed, dict):
        raise ParsingError("Model output is not a JSON object")
    return parsed
