"""Map search results onto the dealer directory."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from research.models import MatchedResult, SearchResult, Seller
from research.utils.price import extract_price
from research.utils.url import normalize_domain
from services.dealers import DealerDirectory

logger = logging.getLogger(__name__)


class DomainMatcher:
    """Normalized domain -> seller lookup over one directory snapshot.

    Build a new matcher per request with `from_directory`; the snapshot is
    never refreshed while a run is in progress.
    """

    def __init__(self, sellers: Iterable[Seller]):
        self._by_domain: Dict[str, Seller] = {}
        self._by_id: Dict[int, Seller] = {}
        for seller in sellers:
            domain = normalize_domain(seller.domain or seller.website or "")
            if not domain:
                continue
            self._by_domain.setdefault(domain, seller)
            self._by_id[seller.id] = seller
        self._unknown: Dict[str, None] = {}

    @classmethod
    async def from_directory(
        cls,
        directory: DealerDirectory,
        dealer_ids: Optional[Iterable[int]] = None,
    ) -> "DomainMatcher":
        sellers = await directory.list_sellers(active_only=True)
        return cls.from_sellers(sellers, dealer_ids)

    @classmethod
    def from_sellers(
        cls,
        sellers: Iterable[Seller],
        dealer_ids: Optional[Iterable[int]] = None,
    ) -> "DomainMatcher":
        """Matcher over an already-read snapshot, optionally narrowed to `dealer_ids`."""
        sellers = list(sellers)
        wanted = set(dealer_ids or ())
        if wanted:
            sellers = [s for s in sellers if s.id in wanted]
        logger.info(f"[DomainMatcher] Snapshot of {len(sellers)} active sellers")
        return cls(sellers)

    def __len__(self) -> int:
        return len(self._by_domain)

    def known_domains(self) -> Set[str]:
        return set(self._by_domain)

    def get_seller(self, seller_id: Optional[int]) -> Optional[Seller]:
        """Seller by id, or None when it is not in this snapshot."""
        if seller_id is None:
            return None
        return self._by_id.get(seller_id)

    def lookup(self, url_or_domain: str) -> Optional[Seller]:
        return self._by_domain.get(normalize_domain(url_or_domain))

    @property
    def unknown_domains(self) -> List[str]:
        """Unmatched domains in the order they were first seen."""
        return list(self._unknown)

    def match(self, result: SearchResult) -> MatchedResult:
        domain = result.domain or normalize_domain(result.url)
        domain = normalize_domain(domain)
        seller = self._by_domain.get(domain)
        if seller is None and domain:
            self._unknown.setdefault(domain, None)

        fields = result.model_dump()
        fields["domain"] = domain
        if isinstance(result, MatchedResult):
            fields.pop("dealer_id", None)
            fields.pop("dealer_name", None)
            fields.pop("reliability_tier", None)
            fields.pop("is_known_dealer", None)

        price_value = fields.pop("price_value", None)
        currency = fields.pop("currency", None)
        if price_value is None and result.price is not None:
            price_value, currency = result.price, currency or "USD"
        if price_value is None:
            parsed = extract_price(result.snippet)
            if parsed:
                price_value, currency = parsed.value, parsed.currency

        return MatchedResult(
            **fields,
            dealer_id=seller.id if seller else None,
            dealer_name=seller.name if seller else None,
            reliability_tier=seller.reliability_tier if seller else None,
            is_known_dealer=seller is not None,
            price_value=price_value,
            currency=currency,
        )

    def match_all(self, results: Iterable[SearchResult]) -> List[MatchedResult]:
        return [self.match(result) for result in results]
