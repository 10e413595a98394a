"""LLM service for OpenAI integration (search query spelling correction)."""

import hashlib
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis
from openai import AsyncOpenAI

from dropiq.config import settings

logger = logging.getLogger(__name__)


class LLMService:
    """
    Thin wrapper around the OpenAI chat API.

    Features:
    - JSON-mode structured output
    - Redis response cache keyed by prompt
    - Daily cost ceiling
    """

    def __init__(self):
        self._client: Optional[AsyncOpenAI] = None
        self._redis: Optional[redis.Redis] = None
        self._daily_cost: float = 0.0
        self._call_count: int = 0
        self._cost_day: date = _utc_today()

    async def _get_client(self) -> AsyncOpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            if not settings.openai_api_key:
                raise ValueError("OpenAI API key not configured")
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.llm_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def _get_redis(self) -> Optional[redis.Redis]:
        """Get or create Redis connection for caching."""
        if not settings.llm_cache_enabled:
            return None

        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis for LLM cache: {e}")
                return None
        return self._redis

    def _get_cache_key(self, prompt: str, system_prompt: str, model: str) -> str:
        combined = f"{system_prompt}:{prompt}:{model}"
        key_hash = hashlib.sha256(combined.encode('utf-8')).hexdigest()
        return f"llm_cache:{key_hash}"

    def _check_cost_limit(self) -> bool:
        """Check if daily cost limit is exceeded."""
        if not settings.track_llm_costs:
            return True

        today = _utc_today()
        if today != self._cost_day:
            logger.info(
                f"New UTC day, resetting LLM cost counter (spent ${self._daily_cost:.4f} "
                f"over {self._call_count} calls on {self._cost_day})"
            )
            self._daily_cost = 0.0
            self._call_count = 0
            self._cost_day = today

        if self._daily_cost >= settings.llm_cost_limit_per_day:
            logger.warning(
                f"Daily LLM cost limit reached: ${self._daily_cost:.2f} >= ${settings.llm_cost_limit_per_day:.2f}"
            )
            return False
        return True

    def _estimate_cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        """
        Estimate cost for an LLM call.

        Pricing (approximate, per 1K tokens):
        - gpt-4o-mini: $0.00015 input, $0.0006 output
        - other gpt-4 class models: $0.01 input, $0.03 output
        """
        name = model.lower()
        if "mini" in name:
            return (prompt_tokens / 1000) * 0.00015 + (completion_tokens / 1000) * 0.0006
        if "gpt-4" in name:
            return (prompt_tokens / 1000) * 0.01 + (completion_tokens / 1000) * 0.03
        return (prompt_tokens / 1000) * 0.0015 + (completion_tokens / 1000) * 0.002

    async def _cache_get(self, key: str) -> Optional[str]:
        redis_client = await self._get_redis()
        if not redis_client:
            return None
        try:
            return await redis_client.get(key)
        except Exception as e:
            logger.warning(f"LLM cache read failed: {e}")
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        redis_client = await self._get_redis()
        if not redis_client:
            return
        try:
            await redis_client.setex(key, settings.llm_cache_ttl_seconds, value)
        except Exception as e:
            logger.warning(f"LLM cache write failed: {e}")

    async def call_llm(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        use_cache: bool = True,
        json_mode: bool = False,
    ) -> str:
        """
        Call LLM with a prompt and return text response.

        Args:
            prompt: User prompt
            system_prompt: System prompt/instructions
            temperature: Temperature (defaults to settings.llm_temperature)
            model: Model name (defaults to settings.llm_model)
            use_cache: Whether to use the Redis cache
            json_mode: Ask the API for a JSON object response

        Returns:
            LLM response text
        """
        model = model or settings.llm_model
        temperature = temperature if temperature is not None else settings.llm_temperature

        if not self._check_cost_limit():
            raise RuntimeError("Daily LLM cost limit exceeded")

        cache_key = self._get_cache_key(prompt, system_prompt, model)
        if use_cache:
            cached = await self._cache_get(cache_key)
            if cached:
                logger.debug(f"LLM cache hit for prompt: {prompt[:50]}...")
                self._call_count += 1
                return cached

        client = await self._get_client()

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=settings.llm_max_tokens,
                **kwargs,
            )
        except Exception as e:
            logger.error(f"LLM API call failed: {e}")
            raise

        result = response.choices[0].message.content or ""

        if settings.track_llm_costs and response.usage is not None:
            cost = self._estimate_cost(
                model, response.usage.prompt_tokens, response.usage.completion_tokens
            )
            self._daily_cost += cost
            logger.debug(f"LLM call cost: ${cost:.5f} (total: ${self._daily_cost:.4f})")

        self._call_count += 1

        if use_cache and result:
            await self._cache_set(cache_key, result)

        return result

    async def call_llm_structured(
        self,
        prompt: str,
        response_schema: Dict[str, Any],
        system_prompt: str = "",
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Call LLM with structured JSON output.

        Returns:
            Parsed JSON response as dictionary

        Raises:
            ValueError: if the response is not a JSON object
        """
        enhanced_system = system_prompt
        if enhanced_system:
            enhanced_system += "\n\n"
        enhanced_system += (
            f"Respond with valid JSON matching this schema: {json.dumps(response_schema, indent=2)}\n"
            "Return only the JSON object, no additional text."
        )

        response_text = await self.call_llm(
            prompt=prompt,
            system_prompt=enhanced_system,
            temperature=temperature,
            model=model,
            json_mode=True,
        )
        return parse_json_object(response_text)

    async def close(self):
        """Close connections."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        if self._client:
            await self._client.close()
            self._client = None


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_json_object(response_text: str) -> Dict[str, Any]:
    """Extract a JSON object from an LLM reply, tolerating code fences."""
    text = (response_text or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    # Some models wrap the object in prose; keep the outermost braces
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        text = text[start : end + 1]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM JSON response: {e}\nResponse: {text[:200]}")
        raise ValueError(f"Invalid JSON response from LLM: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError("LLM response is not a JSON object")
    return parsed


# Global LLM service instance
llm_service = LLMService()
