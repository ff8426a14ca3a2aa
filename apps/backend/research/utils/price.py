"""Price extraction from free-text snippets and provider price strings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_PRICE_PATTERNS = (
    (re.compile(r"\$\s*([\d,]+(?:\.\d{2})?)"), "USD"),
    (re.compile(r"€\s*([\d,]+(?:\.\d{2})?)"), "EUR"),
    (re.compile(r"£\s*([\d,]+(?:\.\d{2})?)"), "GBP"),
    (re.compile(r"([\d,]+(?:\.\d{2})?)\s*USD"), "USD"),
    (re.compile(r"([\d,]+(?:\.\d{2})?)\s*EUR"), "EUR"),
    (re.compile(r"([\d,]+(?:\.\d{2})?)\s*GBP"), "GBP"),
)


@dataclass(frozen=True)
class ParsedPrice:
    text: str
    value: float
    currency: str


def extract_price(text: Optional[str]) -> Optional[ParsedPrice]:
    """Return the first recognizable price in `text`, or None.

        >>> extract_price("Asking $1,200.00 or best offer")
        ParsedPrice(text='$1,200.00', value=1200.0, currency='USD')
    """
    if not text:
        return None
    for pattern, currency in _PRICE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        raw = match.group(1).replace(",", "")
        try:
            value = float(raw)
        except ValueError:
            continue
        return ParsedPrice(text=match.group(0), value=value, currency=currency)
    return None


__all__ = ["ParsedPrice", "extract_price"]
