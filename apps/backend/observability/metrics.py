"""
Prometheus metrics for the research backend.

RED metrics for the HTTP surface plus duration/error/credit counters for the
third-party search providers and generative models.
"""

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    REGISTRY,
)

metrics_registry = REGISTRY

# HTTP Metrics (RED - Rate, Errors, Duration)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=metrics_registry,
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
    registry=metrics_registry,
)

# Search Provider Metrics
search_provider_duration_seconds = Histogram(
    "search_provider_duration_seconds",
    "Search provider API duration in seconds",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=metrics_registry,
)

search_provider_errors_total = Counter(
    "search_provider_errors_total",
    "Total search provider errors",
    ["provider", "error_type"],  # error_type: quota, provider, not_configured
    registry=metrics_registry,
)

search_provider_credits_total = Counter(
    "search_provider_credits_total",
    "Search provider credits spent",
    ["provider"],
    registry=metrics_registry,
)

search_results_count = Histogram(
    "search_results_count",
    "Number of search results returned",
    ["provider"],
    buckets=[0, 1, 5, 10, 20, 50, 100],
    registry=metrics_registry,
)

# Generative model Metrics
llm_api_duration_seconds = Histogram(
    "llm_api_duration_seconds",
    "LLM API call duration in seconds",
    ["provider", "model"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=metrics_registry,
)

llm_api_errors_total = Counter(
    "llm_api_errors_total",
    "Total LLM API errors",
    ["provider", "error_type"],
    registry=metrics_registry,
)

# Pipeline Metrics
research_stage_errors_total = Counter(
    "research_stage_errors_total",
    "Research pipeline stages that finished with an error",
    ["stage"],  # visual, text, verify
    registry=metrics_registry,
)

visual_verifications_total = Counter(
    "visual_verifications_total",
    "Visual comparisons performed, by resulting tier",
    ["tier"],
    registry=metrics_registry,
)

dealer_suggestions_total = Counter(
    "dealer_suggestions_total",
    "New dealer candidates proposed by discovery",
    ["seller_type"],
    registry=metrics_registry,
)
