"""
AI structured extraction over dealer search snippets.

Two modes share one request/parse discipline (one model call, a JSON array
back, parsed with a single sanitize-and-retry):

- findings: attribution, date, price, dimensions and technique pulled from
  snippets that belong to known dealers
- suggestions: new dealer candidates pulled from raw discovery results
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from exceptions import LLMError
from research.matching import DomainMatcher
from research.models import (
    DealerSnippet,
    DiscoveryRequest,
    DiscoverySuggestion,
    ExtractedPrice,
    ItemContext,
    ResearchFinding,
    SearchResult,
)
from research.taxonomy import (
    SUGGESTION_SELLER_TYPES,
    region_category,
    resolve_region_name,
    seller_type_label,
)
from research.utils.url import normalize_domain
from services.llm import GenerativeModel
from utils.json_utils import parse_model_json_array

logger = logging.getLogger(__name__)

# Hosts that are never a dealer's own site
NON_DEALER_DOMAINS = {
    "ebay.com",
    "etsy.com",
    "amazon.com",
    "facebook.com",
    "instagram.com",
    "pinterest.com",
    "twitter.com",
    "x.com",
    "linkedin.com",
    "youtube.com",
    "reddit.com",
    "wikipedia.org",
    "yelp.com",
    "tripadvisor.com",
}

_PRICE_TYPES = {"asking", "sold", "estimate"}


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "unknown"):
        return None
    return text


def _parse_price(value: Any) -> Optional[ExtractedPrice]:
    if not isinstance(value, dict):
        return None
    try:
        amount = float(value.get("amount"))
    except (TypeError, ValueError):
        return None
    currency = (_clean_str(value.get("currency")) or "USD").upper()
    price_type = (_clean_str(value.get("type")) or "asking").lower()
    if price_type not in _PRICE_TYPES:
        price_type = "asking"
    return ExtractedPrice(amount=amount, currency=currency, type=price_type)


def _index_of(entry: Dict[str, Any]) -> Optional[int]:
    raw = entry.get("resultIndex", entry.get("result_index"))
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def build_findings_prompt(context: ItemContext, snippets: Sequence[DealerSnippet]) -> str:
    header = [f"Title: {context.title or 'Unknown'}"]
    header.append(f"Current Artist Attribution: {context.creator}" if context.creator else "Artist: Unknown")
    if context.date:
        header.append(f"Date: {context.date}")
    if context.dimensions:
        header.append(f"Dimensions: {context.dimensions}")
    if context.technique:
        header.append(f"Technique: {context.technique}")

    blocks = "\n".join(
        f"[Result {i}]\nDealer: {s.dealer_name}\nURL: {s.url}\nTitle: {s.title}\nSnippet: {s.snippet}\n"
        for i, s in enumerate(snippets)
    )

    return f"""You are analyzing search results from antique dealers and auction houses to extract attribution information for a collectible item.

ITEM WE'RE RESEARCHING:
{chr(10).join(header)}

SEARCH RESULTS TO ANALYZE:
{blocks}

For each search result, determine:
1. Does this result appear to be about the SAME item we're researching? (matchConfidence 0-100)
2. What artist name is mentioned, if any?
3. What date/year is mentioned, if any?
4. What price is mentioned, if any? (include currency and whether it's asking/sold/estimate)
5. What dimensions are mentioned, if any?
6. What printing technique is mentioned, if any?

Return a JSON array with at most one object per result, using the result number as resultIndex:
[
  {{
    "resultIndex": 0,
    "matchConfidence": 85,
    "extractedArtist": "Artist Name" or null,
    "extractedDate": "1925" or null,
    "extractedPrice": {{ "amount": 1500, "currency": "USD", "type": "sold" }} or null,
    "extractedDimensions": "24 x 36 inches" or null,
    "extractedTechnique": "lithograph" or null
  }}
]

Only include fields where you found clear information. Set matchConfidence to 0 if the result is clearly about a different item."""


def build_suggestions_prompt(
    results: Sequence[SearchResult],
    request: DiscoveryRequest,
    known_domains: Iterable[str],
) -> str:
    blocks = "\n".join(
        f"[Result {i + 1}]\nTitle: {r.title}\nURL: {r.url}\nSnippet: {r.snippet}\n" for i, r in enumerate(results)
    )
    known = ", ".join(sorted(known_domains)) or "(none)"
    return f"""You are analyzing search results to identify legitimate vintage/antique dealers and galleries.

SEARCH CONTEXT:
- Looking for: {seller_type_label(request.seller_type)}s
- Region: {resolve_region_name(request.region)}
- Language used: {request.language}

ALREADY IN OUR DIRECTORY (skip any result on these domains):
{known}

SEARCH RESULTS:
{blocks}

For each result that appears to be a legitimate dealer/gallery business (NOT a marketplace listing, news article, or directory page), extract:
1. Business name
2. Website domain
3. City (if mentioned)
4. Business type (one of: {", ".join(SUGGESTION_SELLER_TYPES)})
5. Specializations (e.g. movie_posters, travel, advertising, art_deco, art_nouveau, lithography, maps, illustrated_books)
6. Confidence (0-100) that this is a legitimate dealer

Return a JSON array:
[
  {{
    "name": "Dealer Name",
    "website": "https://example.com",
    "city": "Paris" or null,
    "type": "poster_dealer",
    "specializations": ["french", "art_nouveau"],
    "confidence": 85,
    "description": "Brief description of what they sell"
  }}
]

Only include businesses that appear to be actual dealers/galleries. Skip:
- General marketplace listings (eBay, Etsy individual listings)
- News articles or blog posts
- Directory pages listing multiple dealers
- Social media pages
- Results that don't have a clear business website"""


class StructuredExtractor:
    """Turns unstructured dealer snippets into structured research data."""

    def __init__(self, model: GenerativeModel):
        self.model = model

    def is_configured(self) -> bool:
        return self.model.is_configured()

    def resolve_snippets(
        self,
        snippets: Iterable[DealerSnippet],
        matcher: Optional[DomainMatcher] = None,
    ) -> List[DealerSnippet]:
        """Keep only snippets attributable to a dealer.

        With a matcher, ids missing from the snapshot are dropped and
        snippets without an id are resolved by their URL's domain.
        """
        resolved: List[DealerSnippet] = []
        for snippet in snippets:
            if matcher is None:
                if snippet.dealer_id is not None:
                    resolved.append(snippet)
                continue
            seller = matcher.get_seller(snippet.dealer_id) or (
                matcher.lookup(snippet.url) if snippet.dealer_id is None else None
            )
            if seller is None:
                continue
            resolved.append(snippet.model_copy(update={"dealer_id": seller.id, "dealer_name": seller.name}))
        return resolved

    async def extract(
        self,
        context: ItemContext,
        snippets: Sequence[DealerSnippet],
        matcher: Optional[DomainMatcher] = None,
    ) -> List[ResearchFinding]:
        """One model call; at most one finding per snippet.

        Raises:
            ParsingError: the model answered but its output could not be
                parsed even after sanitization.
        """
        usable = self.resolve_snippets(snippets, matcher)
        dropped = len(snippets) - len(usable)
        if dropped:
            logger.info(f"[StructuredExtractor] Dropped {dropped} snippets without a resolvable dealer")
        if not usable:
            return []

        prompt = build_findings_prompt(context, usable)
        try:
            text = await self.model.complete(prompt, max_tokens=2000)
        except LLMError as e:
            logger.error(f"[StructuredExtractor] Model call failed: {e.message}")
            return []

        entries = parse_model_json_array(text, logger_name="StructuredExtractor")

        findings: Dict[int, ResearchFinding] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            index = _index_of(entry)
            if index is None or not 0 <= index < len(usable) or index in findings:
                continue
            source = usable[index]
            findings[index] = ResearchFinding(
                dealer_id=source.dealer_id,
                dealer_name=source.dealer_name,
                url=source.url,
                title=source.title,
                snippet=source.snippet,
                match_confidence=entry.get("matchConfidence", entry.get("match_confidence", 0)),
                extracted_artist=_clean_str(entry.get("extractedArtist")),
                extracted_date=_clean_str(entry.get("extractedDate")),
                extracted_price=_parse_price(entry.get("extractedPrice")),
                extracted_dimensions=_clean_str(entry.get("extractedDimensions")),
                extracted_technique=_clean_str(entry.get("extractedTechnique")),
            )

        logger.info(f"[StructuredExtractor] {len(findings)} findings from {len(usable)} snippets")
        return [findings[i] for i in sorted(findings)]

    async def suggest_dealers(
        self,
        results: Sequence[SearchResult],
        request: DiscoveryRequest,
        known_domains: Set[str],
    ) -> List[DiscoverySuggestion]:
        """Suggestion mode: propose new directory entries, never an already-known domain.

        Raises:
            ParsingError: same rule as `extract`.
        """
        if not results:
            return []

        prompt = build_suggestions_prompt(results, request, known_domains)
        try:
            text = await self.model.complete(prompt, max_tokens=2000)
        except LLMError as e:
            logger.error(f"[StructuredExtractor] Suggestion call failed: {e.message}")
            return []

        entries = parse_model_json_array(text, logger_name="StructuredExtractor")

        known = {normalize_domain(d) for d in known_domains}
        country = resolve_region_name(request.region)
        category = region_category(request.region)
        seen: Set[str] = set()
        suggestions: List[DiscoverySuggestion] = []

        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = _clean_str(entry.get("name"))
            website = _clean_str(entry.get("website") or entry.get("url"))
            if not name or not website:
                continue
            domain = normalize_domain(website)
            if not domain or domain in known or domain in seen or domain in NON_DEALER_DOMAINS:
                continue
            seen.add(domain)

            seller_type = _clean_str(entry.get("type")) or request.seller_type
            specializations = entry.get("specializations") or []
            if not isinstance(specializations, list):
                specializations = []

            suggestions.append(
                DiscoverySuggestion(
                    name=name,
                    url=website if "://" in website else f"https://{website}",
                    domain=domain,
                    region=category,
                    country=country,
                    city=_clean_str(entry.get("city")),
                    type=seller_type,
                    specializations=[str(s) for s in specializations if s],
                    confidence=entry.get("confidence", 50),
                    evidence=_clean_str(entry.get("description")) or "",
                )
            )

        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        return suggestions
