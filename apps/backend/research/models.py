"""Data models for the collectible research pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ResultSource = Literal["lens", "web"]
ErrorKind = Literal["not_configured", "quota", "provider"]
PriceType = Literal["asking", "sold", "estimate"]


def clamp_score(value: Any) -> int:
    """Coerce a model-supplied score into an int in [0, 100]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    return int(round(min(100.0, max(0.0, number))))


class SearchResult(BaseModel):
    """One third-party hit, normalized from a provider payload."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    snippet: str = ""
    thumbnail: Optional[str] = None
    domain: str = ""
    source: ResultSource = "web"
    price: Optional[float] = None
    position: Optional[int] = None
    date: Optional[str] = None


class SearchResponse(BaseModel):
    results: List[SearchResult] = Field(default_factory=list)
    total_results: int = 0
    search_time: float = 0.0
    credits_used: int = 0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    query: Optional[str] = None


class KnowledgeGraph(BaseModel):
    title: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class VisualSearchResponse(BaseModel):
    results: List[SearchResult] = Field(default_factory=list)
    knowledge_graph: Optional[KnowledgeGraph] = None
    search_time: float = 0.0
    credits_used: int = 0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class MultiSearchResponse(BaseModel):
    results: List[SearchResult] = Field(default_factory=list)
    total_credits_used: int = 0
    errors: List[str] = Field(default_factory=list)


class ItemMetadata(BaseModel):
    """What the catalog already knows about the item being researched."""

    title: Optional[str] = None
    creator: Optional[str] = None
    date: Optional[str] = None
    creator_confidence: Optional[int] = Field(default=None, ge=0, le=100)


class QueryVariation(BaseModel):
    query: str
    label: str
    description: str = ""
    priority: int


class Seller(BaseModel):
    """A directory entry. Read-only to the research pipeline."""

    id: int
    name: str
    domain: str
    website: Optional[str] = None
    type: str = "dealer"
    reliability_tier: int = Field(default=3, ge=1, le=6)
    attribution_weight: float = 0.7
    pricing_weight: float = 0.7
    can_research: bool = False
    is_active: bool = True
    country: Optional[str] = None
    specializations: List[str] = Field(default_factory=list)
    search_url_template: Optional[str] = None


class DealerSearchLink(BaseModel):
    """A ready-to-open search page on one dealer's own site."""

    dealer_id: int
    dealer_name: str
    domain: str
    reliability_tier: int
    search_url: Optional[str] = None
    query: str


class MatchedResult(SearchResult):
    dealer_id: Optional[int] = None
    dealer_name: Optional[str] = None
    reliability_tier: Optional[int] = None
    is_known_dealer: bool = False
    price_value: Optional[float] = None
    currency: Optional[str] = None
    visually_verified: bool = False
    visual_match: Optional[int] = None
    same_image: Optional[bool] = None
    same_artist: Optional[bool] = None
    visual_explanation: Optional[str] = None


class ExtractedTitle(BaseModel):
    title: str
    source: str
    confidence: float


class MatchTier(str, Enum):
    CONFIRMED = "confirmed"
    LIKELY = "likely"
    SAME_CREATOR_DIFFERENT_WORK = "same_creator_different_work"
    POSSIBLY_RELATED = "possibly_related"
    UNRELATED = "unrelated"


class VisualMatchResult(BaseModel):
    visual_match: int = 0
    same_image: bool = False
    same_artist: bool = False
    explanation: str = ""

    @field_validator("visual_match", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_score(value)

    @field_validator("same_image", "same_artist", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1")
        return bool(value)


class ItemContext(BaseModel):
    title: Optional[str] = None
    creator: Optional[str] = None
    date: Optional[str] = None
    dimensions: Optional[str] = None
    technique: Optional[str] = None


class DealerSnippet(BaseModel):
    dealer_id: Optional[int] = None
    dealer_name: str
    url: str
    title: str = ""
    snippet: str = ""


class ExtractedPrice(BaseModel):
    amount: float
    currency: str = "USD"
    type: PriceType = "asking"


class ResearchFinding(BaseModel):
    dealer_id: int
    dealer_name: str
    url: str
    title: str = ""
    snippet: str = ""
    match_confidence: int = 0
    extracted_artist: Optional[str] = None
    extracted_date: Optional[str] = None
    extracted_price: Optional[ExtractedPrice] = None
    extracted_dimensions: Optional[str] = None
    extracted_technique: Optional[str] = None

    @field_validator("match_confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_score(value)


class DiscoverySuggestion(BaseModel):
    name: str
    url: str
    domain: str
    region: str
    country: Optional[str] = None
    city: Optional[str] = None
    type: str
    specializations: List[str] = Field(default_factory=list)
    confidence: int = 50
    evidence: str = ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_score(value)


class DiscoveryRequest(BaseModel):
    region: str
    seller_type: str = "poster_dealer"
    language: str = "en"
    max_results: int = Field(default=10, ge=1)


class DiscoveryResponse(BaseModel):
    success: bool = True
    configured: bool = True
    query: str
    suggestions: List[DiscoverySuggestion] = Field(default_factory=list)
    total_search_results: int = 0
    credits_used: int = 0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class StageStatus(BaseModel):
    """Outcome of one pipeline stage."""

    stage: str
    status: Literal["ok", "error", "timeout", "skipped"]
    result_count: int = 0
    latency_ms: int = 0
    message: Optional[str] = None


class MultiStageSearchOptions(BaseModel):
    image_url: Optional[str] = None
    query: Optional[str] = None
    query_variations: List[str] = Field(default_factory=list)
    max_lens_results: int = Field(default=20, ge=0)
    max_web_results: int = Field(default=20, ge=0)
    max_web_queries: int = Field(default=3, ge=0)
    include_web_search: bool = True
    dealer_ids: Optional[List[int]] = None
    enable_visual_verification: bool = False
    max_visual_verifications: int = Field(default=10, ge=0, le=20)
    visual_verification_threshold: int = Field(default=0, ge=0, le=100)
    verification_concurrency: int = Field(default=5, ge=1)


class VisualVerificationSummary(BaseModel):
    performed: bool = False
    verified_count: int = 0
    confirmed_count: int = 0
    likely_count: int = 0
    filtered_count: int = 0


class MultiStageSearchResponse(BaseModel):
    success: bool = True
    configured: bool = True
    image_url: Optional[str] = None
    results: List[MatchedResult] = Field(default_factory=list)
    lens_results: List[MatchedResult] = Field(default_factory=list)
    web_results: List[MatchedResult] = Field(default_factory=list)
    knowledge_graph: Optional[KnowledgeGraph] = None
    extracted_titles: List[ExtractedTitle] = Field(default_factory=list)
    unknown_domains: List[str] = Field(default_factory=list)
    credits_used: int = 0
    errors: List[str] = Field(default_factory=list)
    search_time: float = 0.0
    total_results: int = 0
    visual_verification: Optional[VisualVerificationSummary] = None


class AttributionSource(BaseModel):
    dealer_id: int
    dealer_name: str
    reliability_tier: int
    url: str
    match_confidence: int


class AttributionConsensus(BaseModel):
    artist: str
    normalized_artist: str
    sources: List[AttributionSource] = Field(default_factory=list)
    weighted_confidence: int = 0
    agreement_count: int = 0


class PriceRange(BaseModel):
    low: float
    high: float
    average: float
    currency: str
    count: int
    sources: List[str] = Field(default_factory=list)


class PriceSummary(BaseModel):
    current_listings: Optional[PriceRange] = None
    sold_prices: Optional[PriceRange] = None
    all_prices: List[Dict[str, Any]] = Field(default_factory=list)


SaleStatus = Literal["for_sale", "sold", "out_of_stock", "auction_result", "unknown"]
Agreement = Literal["match", "conflict", "ai_only", "dealer_only", "neither"]


class AttributionComparison(BaseModel):
    """Current catalog attribution side by side with the dealer consensus."""

    ai_artist: Optional[str] = None
    ai_confidence: int = 0
    dealer_artist: Optional[str] = None
    dealer_confidence: int = 0
    agreement: Agreement = "neither"
