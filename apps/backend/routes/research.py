"""
Research endpoints: query generation, text and Lens search, the multi-stage
run and visual verification.

Provider failures come back inside the response body (`error`, `errors`);
only ParsingError escapes, and main.py renders it as a 502.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from config import ResearchSettings
from dependencies import (
    get_directory,
    get_extractor,
    get_orchestrator,
    get_settings,
    get_text_provider,
    get_verifier,
    get_visual_provider,
)
from exceptions import ValidationError
from observability.health import run_health_checks
from research.consensus import calculate_attribution_consensus, compare_attributions, summarize_prices
from research.extraction import StructuredExtractor
from research.matching import DomainMatcher
from research.models import (
    AttributionComparison,
    AttributionConsensus,
    DealerSearchLink,
    DealerSnippet,
    ItemContext,
    ItemMetadata,
    KnowledgeGraph,
    MatchedResult,
    MultiStageSearchOptions,
    MultiStageSearchResponse,
    PriceSummary,
    QueryVariation,
    ResearchFinding,
)
from research.orchestrator import MultiStageSearch, rank_results
from research.providers import TextSearchProvider, VisualSearchProvider, search_multiple
from research.queries import extract_main_title, extract_year, generate_optimal_query, generate_query_variations
from research.search_links import generate_search_urls
from research.visual import MAX_BATCH_CANDIDATES, MAX_CONCURRENCY, VisualVerifier, match_label, match_tier
from services.dealers import DealerDirectory

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/research", tags=["research"])

MAX_FINDING_SNIPPETS = 15


class QueryRequest(BaseModel):
    item: ItemMetadata
    keyword: Optional[str] = None


class QueryResponse(BaseModel):
    main_title: str
    year: Optional[str] = None
    optimal_query: str
    variations: List[QueryVariation]


class SearchLinksRequest(BaseModel):
    query: Optional[str] = None
    item: Optional[ItemMetadata] = None
    dealer_ids: Optional[List[int]] = None
    max_tier: Optional[int] = Field(default=None, ge=1, le=6)
    specializations: List[str] = Field(default_factory=list)


class SearchLinksResponse(BaseModel):
    query: str
    links: List[DealerSearchLink]


class TextSearchRequest(BaseModel):
    query: Optional[str] = None
    item: Optional[ItemMetadata] = None
    dealer_ids: Optional[List[int]] = None
    max_queries: int = Field(default=3, ge=1, le=5)
    max_results_per_query: int = Field(default=10, ge=1, le=10)


class TextSearchResponse(BaseModel):
    success: bool = True
    configured: bool = True
    queries: List[str] = Field(default_factory=list)
    results: List[MatchedResult] = Field(default_factory=list)
    unknown_domains: List[str] = Field(default_factory=list)
    credits_used: int = 0
    errors: List[str] = Field(default_factory=list)


class LensRequest(BaseModel):
    image_url: str
    max_results: int = Field(default=20, ge=1, le=50)
    dealer_ids: Optional[List[int]] = None


class LensResponse(BaseModel):
    success: bool = True
    configured: bool = True
    results: List[MatchedResult] = Field(default_factory=list)
    knowledge_graph: Optional[KnowledgeGraph] = None
    unknown_domains: List[str] = Field(default_factory=list)
    credits_used: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None


class ComprehensiveRequest(MultiStageSearchOptions):
    item: Optional[ItemContext] = None
    extract_findings: bool = False
    current_artist: Optional[str] = None
    current_confidence: int = Field(default=0, ge=0, le=100)


class ComprehensiveResponse(BaseModel):
    search: MultiStageSearchResponse
    findings: List[ResearchFinding] = Field(default_factory=list)
    consensus: Optional[AttributionConsensus] = None
    comparison: Optional[AttributionComparison] = None
    price_summary: PriceSummary


class VerifyRequest(BaseModel):
    image_url: str
    candidate_url: Optional[str] = None
    candidate_urls: List[str] = Field(default_factory=list)
    concurrency: int = Field(default=5, ge=1, le=MAX_CONCURRENCY)


def _describe(result) -> Dict[str, Any]:
    return {
        **result.model_dump(),
        "tier": match_tier(result).value,
        "label": match_label(result),
    }


@router.get("/status")
async def research_status(settings: ResearchSettings = Depends(get_settings)):
    """Which providers are usable; lets the UI hide features instead of failing."""
    return {
        "text_search": settings.text_search_configured,
        "text_search_provider": settings.text_search_provider,
        "visual_search": settings.serper_configured,
        "llm": settings.llm_configured,
        "health": run_health_checks(settings),
    }


@router.post("/queries", response_model=QueryResponse)
async def build_queries(body: QueryRequest, settings: ResearchSettings = Depends(get_settings)):
    keyword = body.keyword or settings.search_keyword
    return QueryResponse(
        main_title=extract_main_title(body.item.title),
        year=extract_year(body.item.date),
        optimal_query=generate_optimal_query(body.item, keyword),
        variations=generate_query_variations(body.item, keyword, include_exact_title=True),
    )


@router.post("/search-urls", response_model=SearchLinksResponse)
async def dealer_search_urls(
    body: SearchLinksRequest,
    directory: DealerDirectory = Depends(get_directory),
    settings: ResearchSettings = Depends(get_settings),
):
    """Links into each researchable dealer's own search page; costs no provider credits."""
    if body.query and body.query.strip():
        query = body.query.strip()
    elif body.item is not None:
        query = generate_optimal_query(body.item, settings.search_keyword)
    else:
        raise ValidationError("Either query or item is required")

    links = await generate_search_urls(
        directory,
        query,
        dealer_ids=body.dealer_ids,
        max_tier=body.max_tier,
        specializations=body.specializations,
    )
    return SearchLinksResponse(query=query, links=links)


@router.post("/search", response_model=TextSearchResponse)
async def text_search(
    body: TextSearchRequest,
    provider: TextSearchProvider = Depends(get_text_provider),
    directory: DealerDirectory = Depends(get_directory),
    settings: ResearchSettings = Depends(get_settings),
):
    if body.item is not None:
        variations = generate_query_variations(body.item, settings.search_keyword)
        queries = [v.query for v in variations][: body.max_queries]
    elif body.query and body.query.strip():
        queries = [body.query.strip()]
    else:
        raise ValidationError("Either query or item is required")

    if not queries:
        raise ValidationError("Item has no title to search for")

    if not provider.is_configured():
        return TextSearchResponse(
            success=False,
            configured=False,
            queries=queries,
            errors=[provider.not_configured_response().error],
        )

    matcher = await DomainMatcher.from_directory(directory, body.dealer_ids)
    domains = sorted(matcher.known_domains()) if body.dealer_ids else None
    response = await search_multiple(
        provider,
        queries,
        domains=domains,
        max_results_per_query=body.max_results_per_query,
    )
    results = rank_results(matcher.match_all(response.results))
    return TextSearchResponse(
        success=not response.errors or bool(results),
        queries=queries,
        results=results,
        unknown_domains=matcher.unknown_domains,
        credits_used=response.total_credits_used,
        errors=response.errors,
    )


@router.post("/lens", response_model=LensResponse)
async def lens_search(
    body: LensRequest,
    provider: VisualSearchProvider = Depends(get_visual_provider),
    directory: DealerDirectory = Depends(get_directory),
):
    if not provider.is_configured():
        response = provider.not_configured_response()
        return LensResponse(success=False, configured=False, error=response.error, error_kind=response.error_kind)

    response = await provider.search(body.image_url)
    if response.error:
        return LensResponse(
            success=False,
            credits_used=response.credits_used,
            error=response.error,
            error_kind=response.error_kind,
        )

    matcher = await DomainMatcher.from_directory(directory, body.dealer_ids)
    return LensResponse(
        results=matcher.match_all(response.results[: body.max_results]),
        knowledge_graph=response.knowledge_graph,
        unknown_domains=matcher.unknown_domains,
        credits_used=response.credits_used,
    )


@router.post("/comprehensive", response_model=ComprehensiveResponse)
async def comprehensive_research(
    body: ComprehensiveRequest,
    orchestrator: MultiStageSearch = Depends(get_orchestrator),
    extractor: StructuredExtractor = Depends(get_extractor),
    directory: DealerDirectory = Depends(get_directory),
):
    """Multi-stage search, then (optionally) AI findings, consensus and prices."""
    has_query = bool((body.query or "").strip() or body.query_variations)
    if not body.image_url and not has_query:
        raise ValidationError("Either image_url or query is required")

    options = MultiStageSearchOptions(**body.model_dump(include=set(MultiStageSearchOptions.model_fields)))
    # One snapshot for the run, the findings and the consensus weights
    sellers = await directory.list_sellers(active_only=True)
    search = await orchestrator.run(options, sellers=sellers)

    findings: List[ResearchFinding] = []
    consensus = None
    comparison = None

    if body.extract_findings:
        if not extractor.is_configured():
            search.errors.append("AI extraction is not configured. Add an LLM API key to environment variables.")
        else:
            snippets = [
                DealerSnippet(
                    dealer_id=r.dealer_id,
                    dealer_name=r.dealer_name or r.domain,
                    url=r.url,
                    title=r.title,
                    snippet=r.snippet,
                )
                for r in search.results
                if r.is_known_dealer
            ][:MAX_FINDING_SNIPPETS]
            matcher = DomainMatcher(sellers)
            findings = await extractor.extract(body.item or ItemContext(), snippets, matcher)
            consensus = calculate_attribution_consensus(findings, sellers)
            comparison = compare_attributions(body.current_artist, body.current_confidence, consensus)

    return ComprehensiveResponse(
        search=search,
        findings=findings,
        consensus=consensus,
        comparison=comparison,
        price_summary=summarize_prices(findings, search.results),
    )


@router.post("/verify")
async def verify_images(body: VerifyRequest, verifier: VisualVerifier = Depends(get_verifier)):
    """Single comparison with candidate_url, or a batch (at most 20) with candidate_urls."""
    if not body.candidate_url and not body.candidate_urls:
        raise ValidationError("candidate_url or candidate_urls is required")
    if not verifier.is_configured():
        return {
            "success": False,
            "configured": False,
            "error": "Visual verification is not configured. Add an LLM API key to environment variables.",
        }

    if body.candidate_url:
        result = await verifier.compare(body.image_url, body.candidate_url)
        return {"success": True, "configured": True, "result": _describe(result)}

    if len(body.candidate_urls) > MAX_BATCH_CANDIDATES:
        raise ValidationError(
            f"At most {MAX_BATCH_CANDIDATES} candidate URLs per batch",
            detail={"received": len(body.candidate_urls)},
        )
    results = await verifier.batch_compare(body.image_url, body.candidate_urls, concurrency=body.concurrency)
    return {
        "success": True,
        "configured": True,
        "results": {url: _describe(result) for url, result in results.items()},
    }
