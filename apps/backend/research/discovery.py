"""
Dealer discovery: find sellers that are not in the directory yet.

Usage:
  discovery = DealerDiscovery(text_provider, directory, extractor)
  response = await discovery.discover(DiscoveryRequest(region="france", language="fr"))
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set

from observability.metrics import dealer_suggestions_total
from research.extraction import StructuredExtractor
from research.models import DiscoveryRequest, DiscoveryResponse
from research.providers.base import MAX_RESULTS_PER_CALL, TextSearchProvider
from research.queries import generate_discovery_query
from research.taxonomy import available_languages, available_regions, available_seller_types
from research.utils.url import normalize_domain
from services.dealers import DealerDirectory

logger = logging.getLogger(__name__)


def discovery_options() -> Dict[str, List[Dict[str, str]]]:
    """Choices offered to the discovery form."""
    return {
        "regions": available_regions(),
        "seller_types": available_seller_types(),
        "languages": available_languages(),
    }


def preview_query(request: DiscoveryRequest) -> str:
    return generate_discovery_query(request.seller_type, request.region, request.language)


class DealerDiscovery:
    def __init__(
        self,
        text_provider: TextSearchProvider,
        directory: DealerDirectory,
        extractor: StructuredExtractor,
    ):
        self.text_provider = text_provider
        self.directory = directory
        self.extractor = extractor

    async def known_domains(self) -> Set[str]:
        sellers = await self.directory.list_sellers(active_only=True)
        return {d for d in (normalize_domain(s.domain or s.website or "") for s in sellers) if d}

    async def discover(self, request: DiscoveryRequest) -> DiscoveryResponse:
        """One localized search, then suggestion-mode extraction over the hits.

        Raises:
            ParsingError: the model's suggestion list could not be parsed.
        """
        query = preview_query(request)
        max_results = min(request.max_results, MAX_RESULTS_PER_CALL)

        if not self.text_provider.is_configured():
            not_configured = self.text_provider.not_configured_response(query)
            return DiscoveryResponse(
                success=False,
                configured=False,
                query=query,
                error=not_configured.error,
                error_kind=not_configured.error_kind,
            )

        logger.info(f"[DealerDiscovery] Searching: {query}")
        search = await self.text_provider.search(query, max_results=max_results)
        if search.error:
            return DiscoveryResponse(
                success=False,
                query=query,
                credits_used=search.credits_used,
                error=search.error,
                error_kind=search.error_kind,
            )

        known = await self.known_domains()
        suggestions = await self.extractor.suggest_dealers(search.results, request, known)

        for suggestion in suggestions:
            dealer_suggestions_total.labels(seller_type=suggestion.type).inc()

        logger.info(
            f"[DealerDiscovery] {len(suggestions)} new dealers from {len(search.results)} results "
            f"({len(known)} domains already known)"
        )
        return DiscoveryResponse(
            success=True,
            query=query,
            suggestions=suggestions,
            total_search_results=len(search.results),
            credits_used=search.credits_used,
        )
