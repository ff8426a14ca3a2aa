"""Search query generation from catalog metadata.

Queries run from broad (most likely to match) to specific (exact match):

1. quoted main title + keyword
2. + creator
3. + year
4. + creator + year
5. the original title, quoted verbatim

Everything here is pure and deterministic.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from research.models import ExtractedTitle, ItemMetadata, QueryVariation
from research.taxonomy import resolve_region_name, resolve_template

DEFAULT_KEYWORD = "poster"
CONFIDENT_CREATOR_THRESHOLD = 70

_BOILERPLATE_SUFFIXES = (
    re.compile(r"\s*[-–]\s*original\s*poster\s*$", re.IGNORECASE),
    re.compile(r"\s*[-–]\s*vintage\s*poster\s*$", re.IGNORECASE),
    re.compile(r"\s*[-–]\s*poster\s*$", re.IGNORECASE),
    re.compile(r"\s*original\s*poster\s*$", re.IGNORECASE),
    re.compile(r"\s*vintage\s*poster\s*$", re.IGNORECASE),
    re.compile(r"\s*poster\s*$", re.IGNORECASE),
    re.compile(r"\s*linen\s*backed\s*$", re.IGNORECASE),
    re.compile(r"\s*linen-backed\s*$", re.IGNORECASE),
    re.compile(r"\s*paper\s*backed\s*$", re.IGNORECASE),
)
_TRAILING_PUNCTUATION = re.compile(r"[,.\-–:;]+$")

_YEAR = re.compile(r"\b(1[89]\d{2}|20[0-2]\d)\b")
_DECADE = re.compile(r"\b(1[89]\d|20[0-2])0s\b", re.IGNORECASE)

_PARENTHETICAL = re.compile(r"\s*\([^)]*\)\s*")
_WHITESPACE = re.compile(r"\s+")
_NON_QUERY_CHARS = re.compile(r"[^\w\s-]")


def _strip_once(title: str) -> str:
    for suffix in _BOILERPLATE_SUFFIXES:
        title = suffix.sub("", title)
    return _TRAILING_PUNCTUATION.sub("", title).strip()


def extract_main_title(full_title: Optional[str]) -> str:
    """Strip boilerplate suffixes ("- Vintage Poster", "linen backed", ...) from a title.

    Runs until nothing more can be stripped, so
    ``extract_main_title(extract_main_title(t)) == extract_main_title(t)``.
    """
    if not full_title:
        return ""
    title = full_title.strip()
    while True:
        stripped = _strip_once(title)
        if stripped == title:
            return title
        title = stripped


def extract_year(date_text: Optional[str]) -> Optional[str]:
    """Pull a 4-digit year (1800-2029) or a decade token ("1930s") out of free text.

    An explicit year wins over a decade when both are present.
    """
    if not date_text:
        return None
    year = _YEAR.search(date_text)
    if year:
        return year.group(1)
    decade = _DECADE.search(date_text)
    if decade:
        return f"{decade.group(1)}0s"
    return None


def clean_creator_name(name: Optional[str]) -> Optional[str]:
    """Drop parenthetical qualifiers like "(attributed)" and collapse whitespace."""
    if not name or name.strip().lower() == "unknown":
        return None
    cleaned = _PARENTHETICAL.sub(" ", name.strip()).strip()
    cleaned = _WHITESPACE.sub(" ", cleaned)
    return cleaned or None


def generate_query_variations(
    item: ItemMetadata,
    keyword: str = DEFAULT_KEYWORD,
    *,
    include_exact_title: bool = False,
) -> List[QueryVariation]:
    """Ranked search queries for an item, broadest first.

    The verbatim-title query only helps when a dealer reuses our exact
    catalog wording, so it is opt-in.
    """
    raw_title = (item.title or "").strip()
    if not raw_title:
        return []

    main_title = extract_main_title(raw_title)
    if not main_title:
        return [
            QueryVariation(
                query=f'"{raw_title}" {keyword}',
                label="Full Title",
                description="Search with complete title",
                priority=1,
            )
        ]

    creator = clean_creator_name(item.creator)
    year = extract_year(item.date)

    variations = [
        QueryVariation(
            query=f'"{main_title}" {keyword}',
            label="Broad",
            description="Title only - most likely to find matches",
            priority=1,
        )
    ]
    if creator:
        variations.append(
            QueryVariation(
                query=f'"{main_title}" {creator} {keyword}',
                label="With Artist",
                description=f"Include artist: {creator}",
                priority=2,
            )
        )
    if year:
        variations.append(
            QueryVariation(
                query=f'"{main_title}" {year} {keyword}',
                label="With Date",
                description=f"Include date: {year}",
                priority=3,
            )
        )
    if creator and year:
        variations.append(
            QueryVariation(
                query=f'"{main_title}" {creator} {year} {keyword}',
                label="Artist + Date",
                description=f"Full context: {creator}, {year}",
                priority=4,
            )
        )
    if include_exact_title and raw_title != main_title:
        variations.append(
            QueryVariation(
                query=f'"{raw_title}"',
                label="Exact Title",
                description="Exact title match - most specific",
                priority=5,
            )
        )

    seen = set()
    unique: List[QueryVariation] = []
    for variation in variations:
        if variation.query in seen:
            continue
        seen.add(variation.query)
        unique.append(variation)
    return unique


def generate_optimal_query(item: ItemMetadata, keyword: str = DEFAULT_KEYWORD) -> str:
    """The single query to use when only one call can be spent."""
    raw_title = (item.title or "").strip()
    main_title = extract_main_title(raw_title)

    if not main_title and raw_title:
        return f'"{raw_title}" {keyword}'
    if not main_title:
        return f"vintage {keyword}"

    creator = clean_creator_name(item.creator)
    if creator and (item.creator_confidence or 0) >= CONFIDENT_CREATOR_THRESHOLD:
        return f'"{main_title}" {creator} {keyword}'
    return f'"{main_title}" {keyword}'


def generate_queries_from_titles(
    titles: Iterable[ExtractedTitle],
    max_queries: int = 3,
    keyword: str = DEFAULT_KEYWORD,
) -> List[str]:
    """Turn titles read off visual matches into follow-up text queries."""
    queries: List[str] = []
    for extracted in list(titles)[:max_queries]:
        query = _WHITESPACE.sub(" ", extracted.title)
        query = _NON_QUERY_CHARS.sub("", query).strip()
        if keyword.lower() not in query.lower():
            query = f"{query} {keyword}"
        if len(query) > 10 and query not in queries:
            queries.append(query)
    return queries


def generate_discovery_query(seller_type: str, region: str, language: str = "en") -> str:
    """Localized query for finding new sellers of `seller_type` in `region`."""
    template = resolve_template(seller_type, language)
    return template.replace("{region}", resolve_region_name(region, language))
