"""
LLM service for structured extraction and visual comparison.

Uses httpx to call OpenRouter (primary, OpenAI-compatible) and falls back to
the Gemini REST API directly. Both paths support image inputs: OpenRouter
takes image URLs, Gemini gets the images fetched and inlined as base64.
"""

import base64
import logging
import time
from typing import Any, Dict, List, Protocol, Sequence

import httpx

from config import ResearchSettings
from exceptions import LLMError
from observability.metrics import llm_api_duration_seconds, llm_api_errors_total
from utils.security import redact_secrets_from_text

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
GEMINI_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class GenerativeModel(Protocol):
    """What the research services need from a model client."""

    def is_configured(self) -> bool:
        ...

    async def complete(self, prompt: str, *, max_tokens: int = 4096) -> str:
        ...

    async def complete_with_images(
        self,
        prompt: str,
        image_urls: Sequence[str],
        *,
        max_tokens: int = 500,
    ) -> str:
        ...


class LLMClient:
    """OpenRouter first, Gemini direct as fallback."""

    def __init__(self, settings: ResearchSettings):
        self.openrouter_api_key = settings.openrouter_api_key or ""
        self.gemini_api_key = settings.gemini_api_key or ""
        self.openrouter_model = settings.openrouter_model
        self.gemini_model = settings.gemini_model
        self.timeout = settings.llm_timeout_seconds

    def is_configured(self) -> bool:
        return bool(self.openrouter_api_key or self.gemini_api_key)

    async def complete(self, prompt: str, *, max_tokens: int = 4096) -> str:
        return await self._call(prompt, [], max_tokens=max_tokens)

    async def complete_with_images(
        self,
        prompt: str,
        image_urls: Sequence[str],
        *,
        max_tokens: int = 500,
    ) -> str:
        return await self._call(prompt, list(image_urls), max_tokens=max_tokens)

    async def _call(self, prompt: str, image_urls: List[str], *, max_tokens: int) -> str:
        if self.openrouter_api_key:
            try:
                return await self._timed(
                    "openrouter",
                    self.openrouter_model,
                    self._call_openrouter(prompt, image_urls, max_tokens),
                )
            except Exception as e:
                if not self.gemini_api_key:
                    raise LLMError(f"OpenRouter call failed: {redact_secrets_from_text(str(e))}") from e
                logger.warning(f"OpenRouter failed, trying Gemini direct: {redact_secrets_from_text(str(e))}")

        if self.gemini_api_key:
            try:
                return await self._timed(
                    "gemini",
                    self.gemini_model,
                    self._call_gemini_direct(prompt, image_urls, max_tokens),
                )
            except Exception as e:
                safe_msg = redact_secrets_from_text(str(e))
                logger.error(f"Gemini direct also failed: {safe_msg}")
                raise LLMError(f"Gemini call failed: {safe_msg}") from e

        raise LLMError("No LLM API key configured (OPENROUTER_API_KEY, GEMINI_API_KEY, or GOOGLE_GENERATIVE_AI_API_KEY)")

    async def _timed(self, provider: str, model: str, call) -> str:
        started = time.monotonic()
        try:
            return await call
        except Exception as e:
            llm_api_errors_total.labels(provider=provider, error_type=type(e).__name__).inc()
            raise
        finally:
            llm_api_duration_seconds.labels(provider=provider, model=model).observe(time.monotonic() - started)

    async def _call_openrouter(self, prompt: str, image_urls: List[str], max_tokens: int) -> str:
        headers = {
            "Authorization": f"Bearer {self.openrouter_api_key}",
            "Content-Type": "application/json",
        }
        if image_urls:
            content: Any = [{"type": "text", "text": prompt}] + [
                {"type": "image_url", "image_url": {"url": url}} for url in image_urls
            ]
        else:
            content = prompt
        payload = {
            "model": self.openrouter_model,
            "messages": [{"role": "user", "content": content}],
            "temperature": 0.2,
            "max_tokens": max_tokens,
        }

        async with httpx.AsyncClient() as client:
            resp = await client.post(OPENROUTER_URL, headers=headers, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()

        choices = data.get("choices", [])
        if not choices:
            raise ValueError("OpenRouter returned no choices")
        text = choices[0].get("message", {}).get("content") or ""
        if not text:
            raise ValueError("OpenRouter returned an empty message")
        return text

    async def _call_gemini_direct(self, prompt: str, image_urls: List[str], max_tokens: int) -> str:
        url = GEMINI_URL_TEMPLATE.format(model=self.gemini_model)

        async with httpx.AsyncClient() as client:
            parts: List[Dict[str, Any]] = [{"text": prompt}]
            for image_url in image_urls:
                parts.append(await self._inline_image(client, image_url))

            payload = {
                "contents": [{"parts": parts}],
                "generationConfig": {
                    "temperature": 0.2,
                    "maxOutputTokens": max_tokens,
                },
            }
            resp = await client.post(
                url,
                params={"key": self.gemini_api_key},
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()

        candidates = data.get("candidates", [])
        if not candidates:
            raise ValueError("Gemini returned no candidates")
        parts_out = candidates[0].get("content", {}).get("parts", [])
        if not parts_out:
            raise ValueError("Gemini returned no content parts")
        return parts_out[0].get("text", "")

    async def _inline_image(self, client: httpx.AsyncClient, image_url: str) -> Dict[str, Any]:
        resp = await client.get(image_url, timeout=self.timeout, follow_redirects=True)
        resp.raise_for_status()
        mime_type = (resp.headers.get("content-type") or "image/jpeg").split(";")[0].strip()
        return {
            "inline_data": {
                "mime_type": mime_type,
                "data": base64.b64encode(resp.content).decode("ascii"),
            }
        }

