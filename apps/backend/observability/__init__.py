"""
Observability infrastructure for the research backend.

Provides:
- Structured logging with correlation IDs
- Prometheus metrics
- Request instrumentation middleware
- Provider configuration health checks
"""

from .logging import correlation_id_context, get_correlation_id, setup_logging
from .metrics import (
    metrics_registry,
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
    llm_api_duration_seconds,
    llm_api_errors_total,
    search_provider_duration_seconds,
    search_provider_errors_total,
    search_provider_credits_total,
    research_stage_errors_total,
)
from .middleware import ObservabilityMiddleware
from .health import run_health_checks

__all__ = [
    "correlation_id_context",
    "get_correlation_id",
    "setup_logging",
    "metrics_registry",
    "http_requests_total",
    "http_request_duration_seconds",
    "http_requests_in_progress",
    "llm_api_duration_seconds",
    "llm_api_errors_total",
    "search_provider_duration_seconds",
    "search_provider_errors_total",
    "search_provider_credits_total",
    "research_stage_errors_total",
    "ObservabilityMiddleware",
    "run_health_checks",
]
