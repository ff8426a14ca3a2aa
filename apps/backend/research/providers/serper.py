"""Serper.dev clients: Google web search and Google Lens."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from config import ResearchSettings
from research.models import KnowledgeGraph, SearchResponse, SearchResult, VisualSearchResponse
from research.providers.base import (
    MAX_RESULTS_PER_CALL,
    TextSearchProvider,
    VisualSearchProvider,
    as_dict,
    as_list,
    as_text,
    build_site_query,
    clamp_max_results,
    credits_for_failure,
    describe_failure,
    ensure_payload,
    raise_for_provider_status,
    record_call,
)
from research.utils.price import extract_price
from research.utils.url import normalize_domain

logger = logging.getLogger(__name__)

SERPER_SEARCH_URL = "https://google.serper.dev/search"
SERPER_LENS_URL = "https://google.serper.dev/lens"


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    parsed = extract_price(as_text(value))
    return parsed.value if parsed else None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _first_image(images: Any) -> Optional[str]:
    first = next(iter(as_list(images)), None)
    if isinstance(first, dict):
        return as_text(first.get("imageUrl")) or as_text(first.get("link")) or as_text(first.get("url"))
    return as_text(first)


def parse_organic_results(data: Dict[str, Any]) -> List[SearchResult]:
    results: List[SearchResult] = []
    for item in as_list(data.get("organic")):
        if not isinstance(item, dict):
            continue
        url = as_text(item.get("link"))
        if not url:
            continue
        results.append(
            SearchResult(
                title=as_text(item.get("title")) or "",
                url=url,
                snippet=as_text(item.get("snippet")) or "",
                domain=normalize_domain(url),
                source="web",
                position=_as_int(item.get("position")),
                date=as_text(item.get("date")),
            )
        )
    return results


def parse_visual_matches(data: Dict[str, Any]) -> List[SearchResult]:
    results: List[SearchResult] = []
    for item in as_list(data.get("visual_matches") or data.get("visualMatches")):
        if not isinstance(item, dict):
            continue
        url = as_text(item.get("link"))
        if not url:
            continue
        price = item.get("price")
        extracted = price.get("extracted") if isinstance(price, dict) else price
        results.append(
            SearchResult(
                title=as_text(item.get("title")) or "",
                url=url,
                snippet=as_text(item.get("source")) or "",
                thumbnail=as_text(item.get("thumbnail")) or as_text(item.get("imageUrl")),
                domain=normalize_domain(url),
                source="lens",
                price=_as_float(extracted),
                position=_as_int(item.get("position")),
            )
        )
    return results


def parse_knowledge_graph(data: Dict[str, Any]) -> Optional[KnowledgeGraph]:
    graph = as_dict(data.get("knowledge_graph") or data.get("knowledgeGraph"))
    if not graph:
        return None
    return KnowledgeGraph(
        title=as_text(graph.get("title")),
        type=as_text(graph.get("type")),
        description=as_text(graph.get("description")),
        image_url=_first_image(graph.get("images")),
    )


class SerperWebSearchProvider(TextSearchProvider):
    """Google organic results through Serper."""

    provider_id = "serper"
    display_name = "Serper API"

    def __init__(self, settings: ResearchSettings):
        self.api_key = settings.serper_api_key or ""
        self.country = settings.search_country
        self.timeout = settings.provider_timeout_seconds
        self.base_url = SERPER_SEARCH_URL

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(
        self,
        query: str,
        domains: Optional[Sequence[str]] = None,
        max_results: int = MAX_RESULTS_PER_CALL,
        start_index: int = 1,
    ) -> SearchResponse:
        if not self.is_configured():
            return self.not_configured_response(query)

        num = clamp_max_results(max_results)
        page = max(1, (max(1, start_index) - 1) // num + 1)
        full_query = build_site_query(query, domains)
        payload = {"q": full_query, "num": num, "page": page, "gl": self.country}
        headers = {"X-API-KEY": self.api_key, "Content-Type": "application/json"}

        logger.info(f"[Serper] Web search: {full_query[:100]!r} num={num} page={page}")
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.base_url, headers=headers, json=payload)
                raise_for_provider_status(response, self.provider_id, self.display_name)
            data = ensure_payload(response, self.provider_id, self.display_name)
            results = parse_organic_results(data)[:num]
            total = _as_int(as_dict(data.get("searchInformation")).get("totalResults")) or len(results)
        except Exception as e:
            message, kind = describe_failure(e)
            credits = credits_for_failure(e)
            elapsed = record_call(self.provider_id, started, 0, credits, kind)
            logger.warning(f"[Serper] Web search failed ({kind}): {message}")
            return SearchResponse(search_time=elapsed, credits_used=credits, error=message, error_kind=kind, query=query)

        elapsed = record_call(self.provider_id, started, len(results), 1)
        logger.info(f"[Serper] Got {len(results)} web results in {elapsed}s")
        return SearchResponse(
            results=results,
            total_results=total,
            search_time=elapsed,
            credits_used=1,
            query=query,
        )


class SerperLensProvider(VisualSearchProvider):
    """Google Lens reverse-image search through Serper."""

    provider_id = "serper_lens"
    display_name = "Serper API"

    def __init__(self, settings: ResearchSettings):
        self.api_key = settings.serper_api_key or ""
        self.country = settings.search_country
        self.timeout = settings.provider_timeout_seconds
        self.base_url = SERPER_LENS_URL

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, image_url: str) -> VisualSearchResponse:
        if not self.is_configured():
            return self.not_configured_response()

        headers = {"X-API-KEY": self.api_key, "Content-Type": "application/json"}
        payload = {"url": image_url, "gl": self.country}

        logger.info(f"[SerperLens] Lens search: {image_url[:80]}")
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.base_url, headers=headers, json=payload)
                raise_for_provider_status(response, self.provider_id, self.display_name)
            data = ensure_payload(response, self.provider_id, self.display_name)
            results = parse_visual_matches(data)
            knowledge_graph = parse_knowledge_graph(data)
        except Exception as e:
            message, kind = describe_failure(e)
            credits = credits_for_failure(e)
            elapsed = record_call(self.provider_id, started, 0, credits, kind)
            logger.warning(f"[SerperLens] Lens search failed ({kind}): {message}")
            return VisualSearchResponse(search_time=elapsed, credits_used=credits, error=message, error_kind=kind)

        elapsed = record_call(self.provider_id, started, len(results), 1)
        logger.info(
            f"[SerperLens] Got {len(results)} visual matches in {elapsed}s "
            f"(knowledge graph: {knowledge_graph is not None})"
        )
        return VisualSearchResponse(
            results=results,
            knowledge_graph=knowledge_graph,
            search_time=elapsed,
            credits_used=1,
        )
