import asyncio
import os
import sys
from typing import Dict, List, Optional, Sequence

import pytest

# Add parent directory to path to allow importing research and main
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import ResearchSettings
from exceptions import LLMError
from research.models import SearchResponse, SearchResult, Seller, VisualSearchResponse
from research.providers.base import TextSearchProvider, VisualSearchProvider
from services.dealers import StaticDealerDirectory, build_seller


class FakeTextProvider(TextSearchProvider):
    """Returns canned results per query and records every call."""

    provider_id = "fake_text"
    display_name = "Fake Search"

    def __init__(
        self,
        results: Optional[Dict[str, List[SearchResult]]] = None,
        configured: bool = True,
        errors: Optional[Dict[str, str]] = None,
    ):
        self.results = results or {}
        self.configured = configured
        self.errors = errors or {}
        self.calls: List[dict] = []

    def is_configured(self) -> bool:
        return self.configured

    async def search(self, query, domains=None, max_results=10, start_index=1) -> SearchResponse:
        self.calls.append({"query": query, "domains": domains, "max_results": max_results})
        if not self.configured:
            return self.not_configured_response(query)
        if query in self.errors:
            return SearchResponse(credits_used=1, error=self.errors[query], error_kind="provider", query=query)
        hits = self.results.get(query, [])[:max_results]
        return SearchResponse(results=hits, total_results=len(hits), credits_used=1, query=query)


class FakeVisualProvider(VisualSearchProvider):
    provider_id = "fake_lens"
    display_name = "Fake Lens"

    def __init__(self, response: Optional[VisualSearchResponse] = None, configured: bool = True):
        self.response = response or VisualSearchResponse(credits_used=1)
        self.configured = configured
        self.calls: List[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def search(self, image_url: str) -> VisualSearchResponse:
        self.calls.append(image_url)
        if not self.configured:
            return self.not_configured_response()
        return self.response


class FakeModel:
    """Scripted generative model.

    `text` answers complete(); `image_answers` maps a candidate URL to the
    answer complete_with_images() gives for it. Tracks peak concurrency.
    """

    def __init__(
        self,
        text: str = "[]",
        image_answers: Optional[Dict[str, str]] = None,
        configured: bool = True,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.text = text
        self.image_answers = image_answers or {}
        self.configured = configured
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []
        self.image_calls: List[List[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def is_configured(self) -> bool:
        return self.configured

    async def complete(self, prompt: str, *, max_tokens: int = 4096) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.text

    async def complete_with_images(self, prompt: str, image_urls: Sequence[str], *, max_tokens: int = 500) -> str:
        self.image_calls.append(list(image_urls))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            candidate = image_urls[-1]
            if candidate not in self.image_answers:
                raise LLMError(f"No scripted answer for {candidate}")
            return self.image_answers[candidate]
        finally:
            self.in_flight -= 1


class CountingDirectory(StaticDealerDirectory):
    """Static directory that counts reads."""

    def __init__(self, sellers):
        super().__init__(sellers)
        self.reads = 0

    async def list_sellers(self, active_only=True, can_research=None):
        self.reads += 1
        return await super().list_sellers(active_only=active_only, can_research=can_research)


def make_result(url: str, title: str = "Result title here", source: str = "web", **fields) -> SearchResult:
    return SearchResult(title=title, url=url, source=source, **fields)


@pytest.fixture
def sellers() -> List[Seller]:
    return [
        build_seller(1, "Heritage Auctions", "https://www.ha.com", "auction_house"),
        build_seller(2, "Posteritati", "posteritati.com", "dealer"),
        build_seller(3, "Ruby Lane", "rubylane.com", "marketplace"),
        build_seller(4, "Closed Gallery", "closedgallery.com", "gallery", is_active=False),
    ]


@pytest.fixture
def directory(sellers) -> StaticDealerDirectory:
    return StaticDealerDirectory(sellers)


@pytest.fixture
def settings() -> ResearchSettings:
    return ResearchSettings(
        serper_api_key="test-serper-key",
        google_cse_api_key="test-cse-key",
        google_cse_id="test-cx",
        openrouter_api_key="test-openrouter-key",
    )
