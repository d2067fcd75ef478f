"""
LLM-backed match explanations.

Wraps the Groq client with an explanation cache, the shared rate limiter and
the eligibility gate. Every failure degrades to None, and resolve() turns
None into the deterministic fallback text.
"""

import asyncio
import hashlib
import json
from typing import Any, Optional, Set

import redis.asyncio as redis
from loguru import logger

from src.llm.groq_client import GroqClient
from src.llm.prompts import SYSTEM_PROMPT, build_user_prompt
from src.llm.rate_limiter import RateLimiter
from src.matching.explanations import generate_fallback_explanation

explainer_log = logger.bind(module="Explainer")

CACHE_PREFIX = "groq:explanation"
INDEX_PREFIX = "groq:explanation-index"

# Placeholder some providers return instead of an explanation
INVALID_EXPLANATIONS = frozenset({"Could not generate explanation."})


def _identity(record: Any) -> str:
    if isinstance(record, dict) and record.get("id"):
        return str(record["id"])
    raw = json.dumps(record, sort_keys=True, default=str)
    return hashlib.sha1(raw.encode()).hexdigest()


class ExplanationGenerator:
    """Produces match explanations, preferring the LLM when it is usable."""

    def __init__(
        self,
        client: GroqClient,
        rate_limiter: RateLimiter,
        redis_client: Optional[redis.Redis] = None,
        threshold: int = 50,
        timeout: float = 5.0,
        cache_ttl: int = 60 * 60 * 24,
        request_delay: float = 0.1,
    ):
        """
        Initialize explanation generator.

        Args:
            client: Groq client
            rate_limiter: Shared rate limiter
            redis_client: Explanation cache, None to run without one
            threshold: Minimum score for an LLM explanation
            timeout: Per-call deadline in seconds
            cache_ttl: Explanation cache TTL in seconds
            request_delay: Spacing before a call while others are in flight
        """
        self.client = client
        self.rate_limiter = rate_limiter
        self.redis = redis_client
        self.threshold = threshold
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.request_delay = request_delay
        # Bumped by invalidate(); calls started before a bump do not store
        self._generations: dict[str, int] = {}

    @staticmethod
    def cache_key(pref: Any, listing: Any) -> str:
        """Explanation cache key for a (preference, listing) pair."""
        return f"{CACHE_PREFIX}:{_identity(pref)}:{_identity(listing)}"

    @staticmethod
    def fallback(pref: Any, listing: Any) -> str:
        """Deterministic explanation, always available."""
        return generate_fallback_explanation(pref, listing)

    def is_eligible(self, score: int) -> bool:
        """Whether a score is high enough to spend an LLM call on."""
        return score >= self.threshold

    @staticmethod
    def index_key(preference_id: str) -> str:
        return f"{INDEX_PREFIX}:{preference_id}"

    async def _cached(self, key: str) -> Optional[str]:
        if self.redis is None:
            return None
        try:
            return await self.redis.get(key)
        except Exception as e:
            explainer_log.debug(f"Explanation cache read failed (non-critical): {e}")
            return None

    async def _store(self, key: str, text: str, preference_id: Optional[str]) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(key, text, ex=self.cache_ttl)
            if preference_id:
                index = self.index_key(preference_id)
                await self.redis.sadd(index, key)
                await self.redis.expire(index, self.cache_ttl)
        except Exception as e:
            explainer_log.debug(f"Explanation cache write failed (non-critical): {e}")

    async def explain(self, pref: dict, listing: dict) -> Optional[str]:
        """
        Get an LLM explanation for one listing.

        Cached explanations are served even when the provider is disabled.

        Args:
            pref: Preference dict
            listing: Listing dict

        Returns:
            Explanation text, or None if unavailable for any reason
        """
        if not pref or not listing:
            return None

        preference_id = pref.get("id") if isinstance(pref, dict) else None
        generation = self._generations.get(preference_id, 0)

        key = self.cache_key(pref, listing)
        cached = await self._cached(key)
        if cached:
            explainer_log.debug("Explanation cache hit")
            return cached

        if not self.client.enabled:
            return None

        if await self.rate_limiter.is_rate_limited():
            explainer_log.debug("Provider rate limited, skipping explanation")
            return None

        async with self.rate_limiter.slot():
            # The limit may have been hit while waiting for the slot
            if await self.rate_limiter.is_rate_limited():
                return None

            if self.rate_limiter.active > 1 and self.request_delay > 0:
                await asyncio.sleep(self.request_delay)

            result = await self.client.complete(
                SYSTEM_PROMPT,
                build_user_prompt(pref, listing),
                timeout=self.timeout,
            )
            if result.status_code is not None:
                await self.rate_limiter.record_response(result.status_code, result.headers)

        if not result.ok:
            return None

        if self._generations.get(preference_id, 0) != generation:
            explainer_log.debug(f"Preference {preference_id} changed during the call, not caching")
        else:
            await self._store(key, result.content, preference_id)
        return result.content

    async def invalidate(self, preference_id: str) -> int:
        """
        Delete cached explanations written for a preference.

        Args:
            preference_id: Preference id

        Returns:
            Number of deleted explanations
        """
        self._generations[preference_id] = self._generations.get(preference_id, 0) + 1
        if self.redis is None:
            return 0

        keys: Set[str] = set()
        try:
            async for key in self.redis.scan_iter(match=f"{CACHE_PREFIX}:{preference_id}:*"):
                keys.add(key)
        except Exception as e:
            explainer_log.debug(f"Explanation cache scan failed for {preference_id}: {e}")
        try:
            keys |= set(await self.redis.smembers(self.index_key(preference_id)))
        except Exception as e:
            explainer_log.debug(f"Explanation index read failed for {preference_id}: {e}")

        try:
            deleted = await self.redis.delete(*sorted(keys)) if keys else 0
            await self.redis.delete(self.index_key(preference_id))
        except Exception as e:
            explainer_log.warning(f"Explanation cache invalidation failed for {preference_id}: {e}")
            return 0

        if deleted:
            explainer_log.info(f"Invalidated {deleted} cached explanation(s) for {preference_id}")
        return deleted

    async def resolve(
        self,
        pref: dict,
        listing: dict,
        score: int,
        fallback: Optional[str] = None,
    ) -> str:
        """
        Final explanation for a scored listing.

        Args:
            pref: Preference dict
            listing: Listing dict
            score: Match score
            fallback: Precomputed fallback text

        Returns:
            LLM text when eligible and valid, otherwise the fallback
        """
        if fallback is None:
            fallback = self.fallback(pref, listing)
        if not self.is_eligible(score):
            return fallback

        try:
            text = await self.explain(pref, listing)
        except Exception as e:
            explainer_log.warning(f"Explanation failed, using fallback: {e}")
            return fallback

        if not text or not text.strip() or text.strip() in INVALID_EXPLANATIONS:
            return fallback
        return text
