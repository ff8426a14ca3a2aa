"""Google Programmable Search (Custom Search JSON API) text provider."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from config import ResearchSettings
from research.models import SearchResponse, SearchResult
from research.providers.base import (
    MAX_RESULTS_PER_CALL,
    TextSearchProvider,
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
from research.utils.url import normalize_domain

logger = logging.getLogger(__name__)

GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"


def _thumbnail(item: Dict[str, Any]) -> Optional[str]:
    pagemap = as_dict(item.get("pagemap"))
    for key in ("cse_thumbnail", "cse_image"):
        first = next(iter(as_list(pagemap.get(key))), None)
        src = as_text(as_dict(first).get("src"))
        if src:
            return src
    return None


def parse_cse_items(data: Dict[str, Any]) -> List[SearchResult]:
    results: List[SearchResult] = []
    for position, item in enumerate(as_list(data.get("items")), start=1):
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
                thumbnail=_thumbnail(item),
                domain=normalize_domain(as_text(item.get("displayLink")) or url),
                source="web",
                position=position,
            )
        )
    return results


def parse_search_information(data: Dict[str, Any], result_count: int) -> Tuple[int, Optional[float]]:
    """(total results, provider-reported search time) from `searchInformation`."""
    info = as_dict(data.get("searchInformation"))
    try:
        total = int(info.get("totalResults"))
    except (TypeError, ValueError, OverflowError):
        total = result_count
    try:
        search_time: Optional[float] = float(info.get("searchTime"))
    except (TypeError, ValueError):
        search_time = None
    return total, search_time


class GoogleCustomSearchProvider(TextSearchProvider):
    """Google Custom Search - 100 free queries/day"""

    provider_id = "google_cse"
    display_name = "Google Custom Search"

    def __init__(self, settings: ResearchSettings):
        self.api_key = settings.google_cse_api_key or ""
        self.cx = settings.google_cse_id or ""
        self.timeout = settings.provider_timeout_seconds
        self.base_url = GOOGLE_CSE_URL

    def is_configured(self) -> bool:
        return bool(self.api_key and self.cx)

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
        full_query = build_site_query(query, domains)
        params = {
            "key": self.api_key,
            "cx": self.cx,
            "q": full_query,
            "num": num,
            "start": max(1, start_index),
        }

        logger.info(f"[GoogleCSE] Searching: {full_query[:100]!r} num={num}")
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.base_url, params=params)
                raise_for_provider_status(response, self.provider_id, self.display_name)
            data = ensure_payload(response, self.provider_id, self.display_name)
            results = parse_cse_items(data)
            total, reported_time = parse_search_information(data, len(results))
        except Exception as e:
            message, kind = describe_failure(e)
            credits = credits_for_failure(e)
            elapsed = record_call(self.provider_id, started, 0, credits, kind)
            logger.warning(f"[GoogleCSE] Search failed ({kind}): {message}")
            return SearchResponse(search_time=elapsed, credits_used=credits, error=message, error_kind=kind, query=query)

        elapsed = record_call(self.provider_id, started, len(results), 1)
        search_time = reported_time if reported_time is not None else elapsed

        logger.info(f"[GoogleCSE] Got {len(results)} results")
        return SearchResponse(
            results=results,
            total_results=total,
            search_time=search_time,
            credits_used=1,
            query=query,
        )
