"""
Attribution consensus and price summaries over dealer findings.

Findings from trusted sellers count for more: each finding is scored as
attribution_weight x tier weight x match confidence, where the tier weight
runs from 1.0 (tier 1) down to 0.5 (tier 6).
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from research.models import (
    AttributionComparison,
    AttributionConsensus,
    AttributionSource,
    MatchedResult,
    PriceRange,
    PriceSummary,
    ResearchFinding,
    SaleStatus,
    Seller,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_MATCH_CONFIDENCE = 50
DEFAULT_ATTRIBUTION_WEIGHT = 0.7
DEFAULT_TIER = 3

# Checked in order; the first hit wins
_STATUS_KEYWORDS = (
    ("sold", ("sold", "no longer available")),
    ("out_of_stock", ("out of stock", "unavailable")),
    ("auction_result", ("hammer price", "realized")),
    ("for_sale", ("add to cart", "buy now", "in stock")),
)

# Whole words only, and not right after "not" ("unsold", "not sold" are no sale)
_STATUS_PATTERNS = [
    (status, re.compile("|".join(rf"(?<!\bnot )\b{re.escape(k)}\b" for k in keywords), re.IGNORECASE))
    for status, keywords in _STATUS_KEYWORDS
]

_SOLD_STATUSES = {"sold", "out_of_stock", "auction_result"}


def tier_weight(tier: int) -> float:
    return 1 - (tier - 1) * 0.1


def calculate_attribution_consensus(
    findings: Iterable[ResearchFinding],
    sellers: Iterable[Seller],
    min_match_confidence: int = DEFAULT_MIN_MATCH_CONFIDENCE,
) -> Optional[AttributionConsensus]:
    """Best-supported artist across findings, or None without usable findings."""
    by_id: Dict[int, Seller] = {s.id: s for s in sellers}

    groups: Dict[str, List[ResearchFinding]] = {}
    for finding in findings:
        if finding.match_confidence < min_match_confidence or not finding.extracted_artist:
            continue
        key = finding.extracted_artist.strip().lower()
        if key:
            groups.setdefault(key, []).append(finding)

    if not groups:
        return None

    def trust(finding: ResearchFinding) -> tuple:
        seller = by_id.get(finding.dealer_id)
        if seller is None:
            return DEFAULT_TIER, DEFAULT_ATTRIBUTION_WEIGHT
        return seller.reliability_tier, seller.attribution_weight

    best_key: Optional[str] = None
    best_score = 0.0
    for key, group in groups.items():
        score = 0.0
        for finding in group:
            tier, weight = trust(finding)
            score += weight * tier_weight(tier) * (finding.match_confidence / 100)
        if score > best_score:
            best_key, best_score = key, score

    if best_key is None:
        return None

    best = groups[best_key]
    # Name the artist the way the most trusted source spells it
    named_by = min(best, key=lambda f: trust(f)[0])
    weighted_confidence = min(100, round(best_score / max(1, len(best) * 0.5) * 100))

    consensus = AttributionConsensus(
        artist=named_by.extracted_artist.strip(),
        normalized_artist=best_key,
        sources=[
            AttributionSource(
                dealer_id=f.dealer_id,
                dealer_name=f.dealer_name,
                reliability_tier=trust(f)[0],
                url=f.url,
                match_confidence=f.match_confidence,
            )
            for f in best
        ],
        weighted_confidence=weighted_confidence,
        agreement_count=len(best),
    )
    logger.info(
        f"[Consensus] '{consensus.artist}' from {consensus.agreement_count} sources "
        f"({consensus.weighted_confidence}% weighted, {len(groups)} candidate artists)"
    )
    return consensus


def compare_attributions(
    current_artist: Optional[str],
    current_confidence: int,
    consensus: Optional[AttributionConsensus],
) -> AttributionComparison:
    has_current = bool(current_artist) and current_artist.strip() != "Unknown" and current_confidence > 0
    has_dealer = consensus is not None and consensus.weighted_confidence > 0

    if not has_current and not has_dealer:
        return AttributionComparison(agreement="neither")
    if not has_dealer:
        return AttributionComparison(
            ai_artist=current_artist,
            ai_confidence=current_confidence,
            agreement="ai_only",
        )
    if not has_current:
        return AttributionComparison(
            dealer_artist=consensus.artist,
            dealer_confidence=consensus.weighted_confidence,
            agreement="dealer_only",
        )

    current = current_artist.strip().lower()
    dealer = consensus.normalized_artist
    matched = current == dealer or dealer in current or current in dealer
    return AttributionComparison(
        ai_artist=current_artist,
        ai_confidence=current_confidence,
        dealer_artist=consensus.artist,
        dealer_confidence=consensus.weighted_confidence,
        agreement="match" if matched else "conflict",
    )


def detect_sale_status(text: str) -> SaleStatus:
    for status, pattern in _STATUS_PATTERNS:
        if pattern.search(text or ""):
            return status
    return "unknown"


def _price_range(entries: Sequence[Dict[str, Any]]) -> Optional[PriceRange]:
    if not entries:
        return None
    # Ranges are reported in the most common currency; other currencies stay in all_prices only
    currency = Counter(e["currency"] for e in entries).most_common(1)[0][0]
    amounts = [e["amount"] for e in entries if e["currency"] == currency]
    sources: List[str] = []
    for entry in entries:
        if entry["currency"] == currency and entry["source"] and entry["source"] not in sources:
            sources.append(entry["source"])
    return PriceRange(
        low=min(amounts),
        high=max(amounts),
        average=round(sum(amounts) / len(amounts), 2),
        currency=currency,
        count=len(amounts),
        sources=sources,
    )


def summarize_prices(
    findings: Iterable[ResearchFinding],
    results: Iterable[MatchedResult] = (),
) -> PriceSummary:
    """Current asking prices vs realized prices.

    Findings carry a typed price from extraction; raw results only have a
    parsed price and a keyword-detected sale status. A URL already covered by
    a finding is not counted twice.
    """
    current: List[Dict[str, Any]] = []
    sold: List[Dict[str, Any]] = []
    all_prices: List[Dict[str, Any]] = []
    seen_urls = set()

    for finding in findings:
        price = finding.extracted_price
        if price is None or price.amount <= 0:
            continue
        seen_urls.add(finding.url)
        entry = {
            "amount": price.amount,
            "currency": price.currency,
            "status": price.type,
            "source": finding.dealer_name,
            "url": finding.url,
        }
        all_prices.append(entry)
        (current if price.type == "asking" else sold).append(entry)

    for result in results:
        if result.url in seen_urls or not result.price_value or result.price_value <= 0:
            continue
        seen_urls.add(result.url)
        status = detect_sale_status(f"{result.title} {result.snippet}")
        entry = {
            "amount": result.price_value,
            "currency": result.currency or "USD",
            "status": status,
            "source": result.dealer_name or result.domain,
            "url": result.url,
        }
        all_prices.append(entry)
        if status == "for_sale":
            current.append(entry)
        elif status in _SOLD_STATUSES:
            sold.append(entry)

    return PriceSummary(
        current_listings=_price_range(current),
        sold_prices=_price_range(sold),
        all_prices=all_prices,
    )
