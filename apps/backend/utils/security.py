"""
Redaction helpers for provider error messages.

httpx exceptions embed the full request URL, and the Google CSE and Gemini
endpoints take their key as a query parameter, so every provider error is
passed through redact_secrets_from_text before it is logged or returned in
an `error` field.
"""

import re
from typing import Any, Dict

_TEXT_REDACTIONS = [
    (re.compile(r"(api_key=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(key=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(token=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(Authorization: Bearer)\s+[^\s]+", re.IGNORECASE), r"\1 [REDACTED]"),
    (re.compile(r"(X-API-KEY:)\s*[^\s]+", re.IGNORECASE), r"\1 [REDACTED]"),
]

SENSITIVE_KEYS = {"api_key", "key", "token", "secret", "authorization", "x-api-key"}


def redact_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of `data` with sensitive values replaced by '[REDACTED]'."""

    def _redact(obj):
        if isinstance(obj, dict):
            return {
                k: "[REDACTED]" if str(k).lower() in SENSITIVE_KEYS else _redact(v)
                for k, v in obj.items()
            }
        if isinstance(obj, list):
            return [_redact(item) for item in obj]
        return obj

    return _redact(data)


def redact_secrets_from_text(text: str) -> str:
    """
    Redact secrets embedded in URLs or header dumps.

    Examples:
        >>> redact_secrets_from_text("GET https://x/customsearch/v1?key=abc&q=y")
        'GET https://x/customsearch/v1?key=[REDACTED]&q=y'
    """
    if not text:
        return text

    out = text
    for pattern, repl in _TEXT_REDACTIONS:
        out = pattern.sub(repl, out)
    return out
