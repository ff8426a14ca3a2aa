"""Direct links into dealers' own search pages."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from urllib.parse import quote

from research.models import DealerSearchLink, Seller
from services.dealers import DealerDirectory

logger = logging.getLogger(__name__)

QUERY_PLACEHOLDERS = ("{query}", "{search}")

# Same character set encodeURIComponent leaves alone
_UNRESERVED = "-_.!~*'()"


def generate_dealer_search_url(seller: Seller, query: str) -> Optional[str]:
    """Fill the seller's search URL template with the encoded query; None without a template.

    `https://www.rubylane.com/search?q={query}` with "Cappiello poster" gives
    `https://www.rubylane.com/search?q=Cappiello%20poster`.
    """
    template = seller.search_url_template
    if not template:
        return None
    encoded = quote(query, safe=_UNRESERVED)
    for placeholder in QUERY_PLACEHOLDERS:
        template = template.replace(placeholder, encoded)
    return template


async def generate_search_urls(
    directory: DealerDirectory,
    query: str,
    dealer_ids: Optional[Iterable[int]] = None,
    max_tier: Optional[int] = None,
    specializations: Optional[Iterable[str]] = None,
) -> List[DealerSearchLink]:
    sellers = await directory.list_sellers(active_only=True, can_research=True)

    wanted_ids = set(dealer_ids or ())
    if wanted_ids:
        sellers = [s for s in sellers if s.id in wanted_ids]
    if max_tier:
        sellers = [s for s in sellers if s.reliability_tier <= max_tier]
    wanted_specializations = set(specializations or ())
    if wanted_specializations:
        sellers = [s for s in sellers if wanted_specializations.intersection(s.specializations)]

    links = [
        DealerSearchLink(
            dealer_id=seller.id,
            dealer_name=seller.name,
            domain=seller.domain,
            reliability_tier=seller.reliability_tier,
            search_url=generate_dealer_search_url(seller, query),
            query=query,
        )
        for seller in sellers
    ]
    logger.info(
        f"[SearchLinks] {len(links)} dealers, {sum(1 for link in links if link.search_url)} with a search page"
    )
    return links


__all__ = ["generate_dealer_search_url", "generate_search_urls"]
