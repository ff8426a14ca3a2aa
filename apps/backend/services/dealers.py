"""
Dealer directory access.

The catalog's seller table lives outside this service; the research pipeline
only reads it through DealerDirectory. StaticDealerDirectory wraps the
curated list of known auction houses, dealers, marketplaces and aggregators
and is what the app uses when no external directory is wired in.

Usage:
  directory = get_dealer_directory()
  sellers = await directory.list_sellers(active_only=True)
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from research.models import Seller
from research.utils.url import normalize_domain

logger = logging.getLogger(__name__)

# Trust defaults per seller type: (tier, attribution weight, pricing weight, can research)
SELLER_TYPE_DEFAULTS: Dict[str, tuple] = {
    "auction_house": (1, 0.9, 0.9, True),
    "dealer": (2, 0.85, 0.85, True),
    "gallery": (2, 0.8, 0.8, True),
    "bookstore": (3, 0.75, 0.75, False),
    "marketplace": (4, 0.7, 0.7, False),
    "aggregator": (5, 0.6, 0.6, False),
    "individual": (5, 0.6, 0.6, False),
}

_KNOWN_SELLERS = [
    # Tier 1: major auction houses
    ("Heritage Auctions", "ha.com", "auction_house"),
    ("Sotheby's", "sothebys.com", "auction_house"),
    ("Christie's", "christies.com", "auction_house"),
    ("Swann Auction Galleries", "swanngalleries.com", "auction_house"),
    ("Bonhams", "bonhams.com", "auction_house"),
    # Tier 2: poster dealers
    ("Golden Age Posters", "goldenageposters.com", "dealer"),
    ("Posteritati", "posteritati.com", "dealer"),
    ("Rennert's Gallery", "rennertsgallery.com", "gallery"),
    ("International Poster Gallery", "internationalposter.com", "gallery"),
    ("Film Art Gallery", "filmartgallery.com", "gallery"),
    ("Ross Art Group", "rossartgroup.com", "dealer"),
    ("L'Affichiste", "laffichiste.com", "dealer"),
    ("Galerie 123", "galerie123.com", "gallery"),
    # Tier 2: print and book dealers
    ("Bauman Rare Books", "baumanrarebooks.com", "dealer"),
    ("Peter Harrington", "peterharrington.co.uk", "dealer"),
    ("The Old Print Shop", "oldprintshop.com", "dealer"),
    ("Arader Galleries", "aradergalleries.com", "gallery"),
    # Tier 4: marketplaces
    ("Ruby Lane", "rubylane.com", "marketplace"),
    ("1stDibs", "1stdibs.com", "marketplace"),
    # Tier 5: aggregators
    ("LiveAuctioneers", "liveauctioneers.com", "aggregator"),
    ("Invaluable", "invaluable.com", "aggregator"),
    ("Barnebys", "barnebys.com", "aggregator"),
    ("AbeBooks", "abebooks.com", "aggregator"),
]


# Search pages that take the query in the URL
_SEARCH_URL_TEMPLATES: Dict[str, str] = {
    "ha.com": "https://www.ha.com/c/search-results.zx?N=0&Ntt={query}",
    "swanngalleries.com": "https://catalogue.swanngalleries.com/search?q={query}",
    "internationalposter.com": "https://www.internationalposter.com/search?q={query}",
    "rubylane.com": "https://www.rubylane.com/search?q={query}",
    "1stdibs.com": "https://www.1stdibs.com/search/?q={query}",
    "liveauctioneers.com": "https://www.liveauctioneers.com/search/?keyword={query}",
    "invaluable.com": "https://www.invaluable.com/search?query={query}",
    "abebooks.com": "https://www.abebooks.com/servlet/SearchResults?kn={query}",
}


def build_seller(seller_id: int, name: str, website: str, seller_type: str, **overrides) -> Seller:
    tier, attribution, pricing, can_research = SELLER_TYPE_DEFAULTS.get(
        seller_type, SELLER_TYPE_DEFAULTS["marketplace"]
    )
    fields = {
        "id": seller_id,
        "name": name,
        "domain": normalize_domain(website),
        "website": website if "://" in website else f"https://{website}",
        "type": seller_type,
        "reliability_tier": tier,
        "attribution_weight": attribution,
        "pricing_weight": pricing,
        "can_research": can_research,
        "search_url_template": _SEARCH_URL_TEMPLATES.get(normalize_domain(website)),
    }
    fields.update(overrides)
    return Seller(**fields)


def default_sellers() -> List[Seller]:
    return [
        build_seller(index, name, website, seller_type)
        for index, (name, website, seller_type) in enumerate(_KNOWN_SELLERS, start=1)
    ]


class DealerDirectory(ABC):
    """Read-only view over the seller directory."""

    @abstractmethod
    async def list_sellers(
        self,
        active_only: bool = True,
        can_research: Optional[bool] = None,
    ) -> List[Seller]:
        """Current sellers. Implementations must read fresh data on every call."""
        ...


class StaticDealerDirectory(DealerDirectory):
    """Directory backed by an in-memory list (the curated defaults unless given one)."""

    def __init__(self, sellers: Optional[Sequence[Seller]] = None):
        self._sellers = list(sellers) if sellers is not None else default_sellers()

    async def list_sellers(
        self,
        active_only: bool = True,
        can_research: Optional[bool] = None,
    ) -> List[Seller]:
        sellers = [s for s in self._sellers if s.is_active or not active_only]
        if can_research is not None:
            sellers = [s for s in sellers if s.can_research == can_research]
        return [s.model_copy() for s in sellers]


_directory: Optional[DealerDirectory] = None


def get_dealer_directory() -> DealerDirectory:
    global _directory
    if _directory is None:
        _directory = StaticDealerDirectory()
        logger.info(f"[DealerDirectory] Using static directory with {len(_KNOWN_SELLERS)} sellers")
    return _directory
