"""
Runtime settings for the research backend.

Settings are read from the environment once (optionally seeded from
apps/backend/.env) and then passed explicitly to providers, the LLM client
and the services. Nothing below reads os.environ at call time, so tests can
swap configuration by constructing a different ResearchSettings.
"""

import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ENV_PATH = Path(__file__).resolve().parent / ".env"

TextProviderName = Literal["serper", "google_cse"]


class ResearchSettings(BaseModel):
    serper_api_key: Optional[str] = None
    google_cse_api_key: Optional[str] = None
    google_cse_id: Optional[str] = None
    text_search_provider: TextProviderName = "serper"

    openrouter_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openrouter_model: str = "google/gemini-3-flash-preview"
    gemini_model: str = "gemini-3-flash-preview"

    search_country: str = "us"
    search_keyword: str = "poster"

    provider_timeout_seconds: float = Field(default=30.0, gt=0)
    llm_timeout_seconds: float = Field(default=60.0, gt=0)

    environment: str = "development"

    @property
    def serper_configured(self) -> bool:
        return bool(self.serper_api_key)

    @property
    def google_cse_configured(self) -> bool:
        return bool(self.google_cse_api_key and self.google_cse_id)

    @property
    def text_search_configured(self) -> bool:
        if self.text_search_provider == "google_cse":
            return self.google_cse_configured
        return self.serper_configured

    @property
    def llm_configured(self) -> bool:
        return bool(self.openrouter_api_key or self.gemini_api_key)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = ENV_PATH) -> "ResearchSettings":
        """Build settings from the process environment.

        Existing environment variables win over values in the .env file.
        """
        if env_file is not None:
            load_dotenv(dotenv_path=env_file, override=False)

        provider = (os.getenv("TEXT_SEARCH_PROVIDER") or "serper").strip().lower()
        if provider not in ("serper", "google_cse"):
            provider = "serper"

        return cls(
            serper_api_key=os.getenv("SERPER_API_KEY") or None,
            google_cse_api_key=os.getenv("GOOGLE_CSE_API_KEY") or None,
            google_cse_id=os.getenv("GOOGLE_CSE_ID") or None,
            text_search_provider=provider,
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
            gemini_api_key=(
                os.getenv("GOOGLE_GENERATIVE_AI_API_KEY") or os.getenv("GEMINI_API_KEY") or None
            ),
            openrouter_model=os.getenv("OPENROUTER_MODEL", "google/gemini-3-flash-preview"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-3-flash-preview"),
            search_country=os.getenv("SEARCH_COUNTRY", "us"),
            search_keyword=os.getenv("SEARCH_KEYWORD", "poster"),
            provider_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30")),
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),
            environment=os.getenv("ENVIRONMENT", "development"),
        )
