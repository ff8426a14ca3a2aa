"""Utility helpers for domain normalization, dedup keys and price parsing."""

from .url import dedup_key, normalize_domain, same_resource
from .price import ParsedPrice, extract_price

__all__ = [
    "dedup_key",
    "normalize_domain",
    "same_resource",
    "ParsedPrice",
    "extract_price",
]
