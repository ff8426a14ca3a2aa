"""Search provider clients and the factory that wires them from settings."""

from config import ResearchSettings
from research.providers.base import (
    MAX_RESULTS_PER_CALL,
    QUOTA_EXCEEDED_MESSAGE,
    TextSearchProvider,
    VisualSearchProvider,
    build_site_query,
    search_multiple,
)
from research.providers.google_cse import GoogleCustomSearchProvider
from research.providers.serper import SerperLensProvider, SerperWebSearchProvider


def build_text_provider(settings: ResearchSettings) -> TextSearchProvider:
    if settings.text_search_provider == "google_cse":
        return GoogleCustomSearchProvider(settings)
    return SerperWebSearchProvider(settings)


def build_visual_provider(settings: ResearchSettings) -> VisualSearchProvider:
    return SerperLensProvider(settings)


__all__ = [
    "MAX_RESULTS_PER_CALL",
    "QUOTA_EXCEEDED_MESSAGE",
    "TextSearchProvider",
    "VisualSearchProvider",
    "GoogleCustomSearchProvider",
    "SerperLensProvider",
    "SerperWebSearchProvider",
    "build_site_query",
    "build_text_provider",
    "build_visual_provider",
    "search_multiple",
]
