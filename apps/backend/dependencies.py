"""
Centralized FastAPI dependencies for the research routes.

Every collaborator the routes need is built here from ResearchSettings, so
tests can swap any of them through `app.dependency_overrides`.
"""

from functools import lru_cache

from fastapi import Depends

from config import ResearchSettings
from research.discovery import DealerDiscovery
from research.extraction import StructuredExtractor
from research.orchestrator import MultiStageSearch
from research.providers import (
    TextSearchProvider,
    VisualSearchProvider,
    build_text_provider,
    build_visual_provider,
)
from research.visual import VisualVerifier
from services.dealers import DealerDirectory, get_dealer_directory
from services.llm import GenerativeModel, LLMClient


@lru_cache
def get_settings() -> ResearchSettings:
    return ResearchSettings.from_env()


def get_text_provider(settings: ResearchSettings = Depends(get_settings)) -> TextSearchProvider:
    return build_text_provider(settings)


def get_visual_provider(settings: ResearchSettings = Depends(get_settings)) -> VisualSearchProvider:
    return build_visual_provider(settings)


def get_directory() -> DealerDirectory:
    return get_dealer_directory()


def get_model(settings: ResearchSettings = Depends(get_settings)) -> GenerativeModel:
    return LLMClient(settings)


def get_verifier(model: GenerativeModel = Depends(get_model)) -> VisualVerifier:
    return VisualVerifier(model)


def get_extractor(model: GenerativeModel = Depends(get_model)) -> StructuredExtractor:
    return StructuredExtractor(model)


def get_orchestrator(
    text_provider: TextSearchProvider = Depends(get_text_provider),
    visual_provider: VisualSearchProvider = Depends(get_visual_provider),
    directory: DealerDirectory = Depends(get_directory),
    verifier: VisualVerifier = Depends(get_verifier),
    settings: ResearchSettings = Depends(get_settings),
) -> MultiStageSearch:
    return MultiStageSearch(text_provider, visual_provider, directory, verifier=verifier, settings=settings)


def get_discovery(
    text_provider: TextSearchProvider = Depends(get_text_provider),
    directory: DealerDirectory = Depends(get_directory),
    extractor: StructuredExtractor = Depends(get_extractor),
) -> DealerDiscovery:
    return DealerDiscovery(text_provider, directory, extractor)
