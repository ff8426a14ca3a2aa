"""Collectible research pipeline: search, dealer matching, extraction and verification."""

from .models import (
    DiscoveryRequest,
    DiscoveryResponse,
    MatchedResult,
    MultiStageSearchOptions,
    MultiStageSearchResponse,
    ResearchFinding,
    SearchResult,
    Seller,
    VisualMatchResult,
)
from .queries import (
    extract_main_title,
    extract_year,
    generate_discovery_query,
    generate_optimal_query,
    generate_query_variations,
)
from .taxonomy import available_languages, available_regions, available_seller_types

__all__ = [
    "DiscoveryRequest",
    "DiscoveryResponse",
    "MatchedResult",
    "MultiStageSearchOptions",
    "MultiStageSearchResponse",
    "ResearchFinding",
    "SearchResult",
    "Seller",
    "VisualMatchResult",
    "extract_main_title",
    "extract_year",
    "generate_discovery_query",
    "generate_optimal_query",
    "generate_query_variations",
    "available_languages",
    "available_regions",
    "available_seller_types",
]
