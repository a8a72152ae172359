"""Text-generation boundary: an OpenAI-compatible chat-completions client over httpx."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are STELLA, the SharedStars Academy astronaut training assistant. "
    "You give short, concrete, encouraging coaching based on training data."
)


class TextGenerationError(Exception):
    """The backend failed or returned something unusable."""


class TextGenerationUnavailable(TextGenerationError):
    """No backend is configured."""


@dataclass
class GenerationRequest:
    prompt: str
    max_tokens: int = 400
    model: Optional[str] = None


@dataclass
class GenerationResponse:
    text: str
    model: str


class TextGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResponse: ...

    async def aclose(self) -> None: ...


class LLMTextGenerator:
    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key or settings.llm_api_key
        if not self.api_key:
            raise ValueError("LLM_API_KEY is not configured")
        self.base_url = base_url or settings.llm_base_url
        self.model = model or settings.llm_model
        self._client = client or httpx.AsyncClient(timeout=30)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        model = request.model or self.model
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": request.prompt},
            ],
            "max_tokens": request.max_tokens,
            "temperature": 0.7,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            r = await self._client.post(self.base_url, headers=headers, json=payload)
            r.raise_for_status()
        except httpx.HTTPStatusError as http_err:
            raise TextGenerationError(
                f"{model} returned HTTP {http_err.response.status_code}"
            ) from http_err
        except httpx.RequestError as net_err:
            raise TextGenerationError(f"{model} request failed: {net_err}") from net_err

        try:
            data = r.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as err:
            raise TextGenerationError(f"Unexpected response from {model}: {r.text[:200]}") from err
        if not isinstance(text, str) or not text.strip():
            raise TextGenerationError(f"Empty response from {model}")
        return GenerationResponse(text=text, model=model)

    async def aclose(self) -> None:
        await self._client.aclose()


class NoOpTextGenerator:
    """Stands in when no API key is configured; every call is unavailable."""

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        raise TextGenerationUnavailable("No text generation backend configured")

    async def aclose(self) -> None:
        return None


def build_text_generator(settings: Settings) -> TextGenerator:
    if settings.llm_api_key:
        return LLMTextGenerator(
            settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
        )
    logger.info("LLM_API_KEY not set; STELLA guidance will use the static fallback")
    return NoOpTextGenerator()
