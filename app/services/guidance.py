"""Recommendation adapter: STELLA guidance with a bounded timeout and a static fallback.

Guidance is best effort. Any failure of the text-generation backend
(timeout, HTTP error, malformed JSON, no backend) yields FALLBACK_GUIDANCE.
"""
import asyncio
import json
import logging
import time
from collections import OrderedDict
from typing import Any, Callable

from app.schemas.session import GuidanceSchema
from app.services.llm_client import (
    GenerationRequest,
    TextGenerationError,
    TextGenerationUnavailable,
    TextGenerator,
)

logger = logging.getLogger(__name__)

MAX_ACTION_ITEMS = 5

FALLBACK_GUIDANCE = GuidanceSchema(
    message="Great work completing your session! Keep training consistently to build your streak.",
    action_items=[
        "Schedule your next session for tomorrow to extend your streak",
        "Review your exercise form before increasing intensity",
        "Rest and hydrate between sessions",
    ],
)


def fallback_guidance() -> GuidanceSchema:
    return FALLBACK_GUIDANCE.model_copy(deep=True)


class GuidanceCache:
    """In-memory TTL cache with a bounded size (oldest entry evicted first)."""

    def __init__(self, ttl_seconds: float, max_entries: int = 512, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, GuidanceSchema]] = OrderedDict()

    def get(self, key: str) -> GuidanceSchema | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: GuidanceSchema) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + self.ttl_seconds, value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def build_prompt(context: dict[str, Any]) -> str:
    return (
        "An astronaut trainee just finished a training session. Using the data below, "
        "write one short motivating message and up to three concrete next steps.\n\n"
        f"Training data (JSON):\n{json.dumps(context, sort_keys=True, default=str)}\n\n"
        'Return ONLY a JSON object with keys "message" (string) and "actionItems" (array of strings).'
    )


def parse_guidance(text: str) -> GuidanceSchema:
    """Extract {"message", "actionItems"} from a model reply; ValueError if malformed."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("no JSON object in response")
    data = json.loads(text[start:end + 1])
    if not isinstance(data, dict):
        raise ValueError("response JSON is not an object")

    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        raise ValueError("missing message")

    items = data.get("actionItems", data.get("action_items", []))
    if not isinstance(items, list):
        raise ValueError("actionItems is not a list")
    action_items = [str(i).strip() for i in items if str(i).strip()][:MAX_ACTION_ITEMS]
    return GuidanceSchema(message=message.strip(), action_items=action_items)


class RecommendationAdapter:
    """Forwards training context to a TextGenerator and normalizes the reply."""

    def __init__(
        self,
        generator: TextGenerator,
        *,
        timeout: float,
        model: str | None = None,
        fallback_model: str | None = None,
        max_tokens: int = 400,
        cache: GuidanceCache | None = None,
    ):
        self.generator = generator
        self.timeout = timeout
        self.models = [m for m in dict.fromkeys([model, fallback_model]) if m] or [None]
        self.max_tokens = max_tokens
        self.cache = cache

    async def get_guidance(self, user_id: str, context: dict[str, Any]) -> GuidanceSchema:
        key = f"{user_id}:{json.dumps(context, sort_keys=True, default=str)}"
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        try:
            guidance = await asyncio.wait_for(self._generate(context), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"STELLA guidance timed out after {self.timeout:.1f}s for user {user_id}")
            return fallback_guidance()
        except Exception as exc:  # any backend failure degrades to the fallback
            logger.warning(f"STELLA guidance failed for user {user_id}: {exc}")
            return fallback_guidance()

        if self.cache is not None:
            self.cache.set(key, guidance)
        return guidance

    async def _generate(self, context: dict[str, Any]) -> GuidanceSchema:
        prompt = build_prompt(context)
        last_error: Exception | None = None
        for model in self.models:
            try:
                response = await self.generator.generate(
                    GenerationRequest(prompt=prompt, max_tokens=self.max_tokens, model=model)
                )
                return parse_guidance(response.text)
            except TextGenerationUnavailable:
                raise
            except (TextGenerationError, ValueError) as exc:
                logger.info(f"Guidance attempt with model {model} failed: {exc}")
                last_error = exc
        raise last_error or TextGenerationError("no model attempted")
