"""Provider interfaces and the shared never-raise response handling."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from exceptions import (
    ConfigurationMissingError,
    ExternalServiceError,
    ProviderError,
    ProviderQuotaExceededError,
)
from observability.metrics import (
    search_provider_credits_total,
    search_provider_duration_seconds,
    search_provider_errors_total,
    search_results_count,
)
from research.models import MultiSearchResponse, SearchResponse, SearchResult, VisualSearchResponse
from research.utils.url import dedup_key
from utils.security import redact_secrets_from_text

logger = logging.getLogger(__name__)

MAX_RESULTS_PER_CALL = 10
QUOTA_EXCEEDED_MESSAGE = "Daily API quota exceeded. Try again tomorrow or upgrade your plan."


def build_site_query(query: str, domains: Optional[Sequence[str]] = None) -> str:
    """Append an OR'd `site:` restriction, e.g. `q (site:a.com OR site:b.com)`."""
    cleaned = [d.strip() for d in (domains or []) if d and d.strip()]
    if not cleaned:
        return query
    restriction = " OR ".join(f"site:{d}" for d in cleaned)
    return f"{query} ({restriction})"


def clamp_max_results(max_results: Optional[int]) -> int:
    if not max_results or max_results < 1:
        return MAX_RESULTS_PER_CALL
    return min(int(max_results), MAX_RESULTS_PER_CALL)


def as_text(value: Any) -> Optional[str]:
    """Payload field as a string; numbers are stringified, anything else is dropped."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def ensure_payload(response: httpx.Response, provider_id: str, display_name: str) -> Dict[str, Any]:
    """Decoded JSON object of a 2xx response; anything else is a provider error."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        raise ProviderError(
            f"Unexpected {display_name} response payload",
            service_name=provider_id,
            status=response.status_code,
        )
    return data


def _error_message_from_payload(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"API error: {response.status_code}"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
    return f"API error: {response.status_code}"


def raise_for_provider_status(response: httpx.Response, provider_id: str, display_name: str) -> None:
    """Classify a non-2xx provider response into the research exception taxonomy."""
    if response.is_success:
        return

    status = response.status_code
    message = _error_message_from_payload(response)

    if status == 429 or "quota" in message.lower():
        raise ProviderQuotaExceededError(QUOTA_EXCEEDED_MESSAGE, service_name=provider_id)
    if status == 401:
        raise ConfigurationMissingError(
            f"Invalid {display_name} key. Check your credentials.",
            service_name=provider_id,
        )
    raise ProviderError(message, service_name=provider_id, status=status)


def credits_for_failure(exc: Exception) -> int:
    """A call the provider answered with a generic error still costs a credit.

    Refused calls (quota, bad key) and calls that never got an answer cost nothing.
    """
    if isinstance(exc, ProviderError) and exc.status is not None:
        return 1
    return 0


def describe_failure(exc: Exception) -> Tuple[str, str]:
    """(redacted message, error_kind) for any exception raised inside a provider call."""
    if isinstance(exc, ExternalServiceError):
        kind = exc.error_kind if exc.error_kind in ("quota", "not_configured") else "provider"
        return redact_secrets_from_text(exc.message), kind
    if isinstance(exc, httpx.TimeoutException):
        return "Search request timed out", "provider"
    return redact_secrets_from_text(f"Search failed: {exc}"), "provider"


def record_call(provider_id: str, started: float, result_count: int, credits: int, error_kind: Optional[str] = None) -> float:
    elapsed = time.monotonic() - started
    search_provider_duration_seconds.labels(provider=provider_id).observe(elapsed)
    search_results_count.labels(provider=provider_id).observe(result_count)
    if credits:
        search_provider_credits_total.labels(provider=provider_id).inc(credits)
    if error_kind:
        search_provider_errors_total.labels(provider=provider_id, error_type=error_kind).inc()
    return round(elapsed, 3)


class TextSearchProvider(ABC):
    """Keyword search restricted (optionally) to a set of domains."""

    provider_id: str = "text"
    display_name: str = "Search"

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def search(
        self,
        query: str,
        domains: Optional[Sequence[str]] = None,
        max_results: int = MAX_RESULTS_PER_CALL,
        start_index: int = 1,
    ) -> SearchResponse:
        """Never raises; failures come back in `error` / `error_kind`."""
        ...

    def not_configured_response(self, query: Optional[str] = None) -> SearchResponse:
        return SearchResponse(
            credits_used=0,
            error=f"{self.display_name} is not configured. Add the API key to environment variables.",
            error_kind="not_configured",
            query=query,
        )


class VisualSearchProvider(ABC):
    """Reverse-image search seeded by an image URL."""

    provider_id: str = "visual"
    display_name: str = "Visual search"

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def search(self, image_url: str) -> VisualSearchResponse:
        """Never raises; failures come back in `error` / `error_kind`."""
        ...

    def not_configured_response(self) -> VisualSearchResponse:
        return VisualSearchResponse(
            credits_used=0,
            error=f"{self.display_name} is not configured. Add the API key to environment variables.",
            error_kind="not_configured",
        )


async def search_multiple(
    provider: TextSearchProvider,
    queries: Sequence[str],
    domains: Optional[Sequence[str]] = None,
    max_results_per_query: int = MAX_RESULTS_PER_CALL,
) -> MultiSearchResponse:
    """Run queries one after another, deduping results by URL across all of them.

    A failing query is recorded in `errors` and the loop moves on.
    """
    seen: Dict[str, SearchResult] = {}
    ordered: List[SearchResult] = []
    total_credits = 0
    errors: List[str] = []

    for query in queries:
        response = await provider.search(query, domains=domains, max_results=max_results_per_query)
        total_credits += response.credits_used

        if response.error:
            errors.append(f'Query "{query}": {response.error}')
            continue

        for result in response.results:
            key = dedup_key(result.url)
            if not key or key in seen:
                continue
            seen[key] = result
            ordered.append(result)

    logger.info(
        f"[{provider.provider_id}] Multi-query search: {len(queries)} queries, "
        f"{len(ordered)} unique results, {total_credits} credits"
    )
    return MultiSearchResponse(results=ordered, total_credits_used=total_credits, errors=errors)
