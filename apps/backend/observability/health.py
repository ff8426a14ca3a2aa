"""
Health check utilities for dependency monitoring.

Reports which third-party services are usable:
- Search providers (text search, Lens)
- Generative model (OpenRouter, Gemini)

Providers are never pinged here; every call would spend quota.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import ResearchSettings

logger = logging.getLogger(__name__)


class HealthCheckResult:
    """Result of a health check."""

    def __init__(self, name: str, status: str, details: Optional[Dict[str, Any]] = None, error: Optional[str] = None):
        self.name = name
        self.status = status  # "ok", "degraded", "error"
        self.details = details or {}
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": self.status,
            "details": self.details,
        }
        if self.error:
            result["error"] = self.error
        return result

    @property
    def is_healthy(self) -> bool:
        return self.status == "ok"


def check_search_providers(settings: ResearchSettings) -> HealthCheckResult:
    configured: List[str] = []
    if settings.serper_configured:
        configured.extend(["serper_web", "serper_lens"])
    if settings.google_cse_configured:
        configured.append("google_cse")

    details: Dict[str, Any] = {
        "configured_providers": configured,
        "text_search_provider": settings.text_search_provider,
        "text_search": settings.text_search_configured,
        "visual_search": settings.serper_configured,
    }

    if not configured:
        details["message"] = "No search providers configured (SERPER_API_KEY, GOOGLE_CSE_API_KEY + GOOGLE_CSE_ID)"
        return HealthCheckResult(name="search_providers", status="degraded", details=details)
    if not settings.text_search_configured:
        return HealthCheckResult(
            name="search_providers",
            status="degraded",
            details=details,
            error=f"Selected text provider '{settings.text_search_provider}' is not configured",
        )
    return HealthCheckResult(name="search_providers", status="ok", details=details)


def check_llm_api(settings: ResearchSettings) -> HealthCheckResult:
    providers = []
    if settings.openrouter_api_key:
        providers.append({"provider": "openrouter", "model": settings.openrouter_model})
    if settings.gemini_api_key:
        providers.append({"provider": "gemini", "model": settings.gemini_model})

    if not providers:
        return HealthCheckResult(
            name="llm_api",
            status="degraded",
            details={"message": "LLM API not configured (OPENROUTER_API_KEY or GEMINI_API_KEY not set)"},
        )
    return HealthCheckResult(name="llm_api", status="ok", details={"providers": providers})


def run_health_checks(settings: ResearchSettings) -> Dict[str, Any]:
    """
    Run all health checks and return aggregated results.

    Returns:
        Dictionary with overall status and one entry per check
    """
    checks = {
        "search_providers": check_search_providers(settings),
        "llm_api": check_llm_api(settings),
    }

    statuses = [check.status for check in checks.values()]
    if any(status == "error" for status in statuses):
        overall_status = "unhealthy"
    elif any(status == "degraded" for status in statuses):
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    if overall_status != "healthy":
        logger.warning(f"[Health] Research backend is {overall_status}")

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {name: check.to_dict() for name, check in checks.items()},
    }
