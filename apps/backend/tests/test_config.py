"""Tests for settings, the exception taxonomy and health checks."""
import pytest

from config import ResearchSettings
from exceptions import (
    ConfigurationMissingError,
    LLMError,
    ProviderError,
    ProviderQuotaExceededError,
    ValidationError,
)
from observability.health import check_llm_api, check_search_providers, run_health_checks

ENV_VARS = [
    "SERPER_API_KEY",
    "GOOGLE_CSE_API_KEY",
    "GOOGLE_CSE_ID",
    "TEXT_SEARCH_PROVIDER",
    "OPENROUTER_API_KEY",
    "GOOGLE_GENERATIVE_AI_API_KEY",
    "GEMINI_API_KEY",
    "SEARCH_KEYWORD",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestResearchSettings:
    def test_from_env(self, clean_env):
        clean_env.setenv("SERPER_API_KEY", "serper")
        clean_env.setenv("TEXT_SEARCH_PROVIDER", "Google_CSE")
        clean_env.setenv("GOOGLE_CSE_API_KEY", "cse")
        clean_env.setenv("GEMINI_API_KEY", "gem")
        clean_env.setenv("SEARCH_KEYWORD", "affiche")

        settings = ResearchSettings.from_env(env_file=None)

        assert settings.text_search_provider == "google_cse"
        assert settings.serper_configured is True
        assert settings.google_cse_configured is False
        assert settings.text_search_configured is False
        assert settings.gemini_api_key == "gem"
        assert settings.llm_configured is True
        assert settings.search_keyword == "affiche"

    def test_unknown_provider_falls_back_to_serper(self, clean_env):
        clean_env.setenv("TEXT_SEARCH_PROVIDER", "bing")

        settings = ResearchSettings.from_env(env_file=None)

        assert settings.text_search_provider == "serper"
        assert settings.text_search_configured is False

    def test_empty_values_are_unset(self, clean_env):
        clean_env.setenv("OPENROUTER_API_KEY", "")

        assert ResearchSettings.from_env(env_file=None).openrouter_api_key is None


class TestExceptions:
    def test_status_codes_and_kinds(self):
        assert ValidationError("bad").status_code == 400
        assert ConfigurationMissingError("no key").status_code == 503
        assert ConfigurationMissingError("no key").error_kind == "not_configured"
        assert ProviderQuotaExceededError().status_code == 429
        assert ProviderQuotaExceededError().error_kind == "quota"
        assert LLMError("down").status_code == 502

    def test_provider_error_detail(self):
        error = ProviderError("Upstream failure", service_name="serper", status=500)

        assert error.status == 500
        assert error.to_dict() == {
            "error": "ProviderError",
            "message": "Upstream failure",
            "detail": {"status": 500, "service": "serper"},
        }


class TestHealthChecks:
    def test_nothing_configured_is_degraded(self):
        report = run_health_checks(ResearchSettings())

        assert report["status"] == "degraded"
        assert report["checks"]["search_providers"]["status"] == "degraded"
        assert report["checks"]["llm_api"]["status"] == "degraded"

    def test_selected_provider_missing(self):
        result = check_search_providers(ResearchSettings(serper_api_key="s", text_search_provider="google_cse"))

        assert result.status == "degraded"
        assert "google_cse" in result.error

    def test_configured(self, settings):
        assert check_search_providers(settings).is_healthy
        llm = check_llm_api(settings)
        assert llm.is_healthy
        assert llm.details["providers"][0]["provider"] == "openrouter"
        assert run_health_checks(settings)["status"] == "healthy"
