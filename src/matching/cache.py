"""
Match result cache.

Caches full response payloads in Redis under canonical keys and keeps a
per-preference index of written keys for exact invalidation. Every operation
is non-fatal: a missing or failing Redis behaves like an empty cache.
"""

import json
from typing import Iterable, Optional, Set

import redis.asyncio as redis
from loguru import logger

from src.matching.models import MatchQuery

cache_log = logger.bind(module="ResultCache")

KEY_PREFIX = "matches"
INDEX_PREFIX = "matches-index"


def serialize_payload(payload: dict) -> str:
    """Serialize a response payload for storage."""
    return json.dumps(payload, ensure_ascii=False, default=str)


def deserialize_payload(data: str) -> Optional[dict]:
    """Parse a stored payload, None if it is corrupt."""
    try:
        payload = json.loads(data)
    except (TypeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


class ResultCache:
    """Redis-backed cache of match response payloads."""

    def __init__(
        self,
        client: Optional[redis.Redis],
        ttl: int = 60 * 60,
        default_limit: int = 6,
        sweep_pages: int = 10,
        sweep_limits: Iterable[int] = (3, 6),
    ):
        """
        Initialize result cache.

        Args:
            client: Redis client, None to disable caching
            ttl: Entry TTL in seconds
            default_limit: Page size used by the invalidation sweep
            sweep_pages: Pages covered by the invalidation sweep
            sweep_limits: Page sizes covered by the invalidation sweep
        """
        self.client = client
        self.ttl = ttl
        self.default_limit = default_limit
        self.sweep_pages = sweep_pages
        self.sweep_limits = sorted(set(sweep_limits) | {default_limit})

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @staticmethod
    def build_key(preference_id: str, query: MatchQuery) -> str:
        """
        Canonical cache key for a preference and query.

        Examples:
            matches:64b7...:page1:limit6:sortmatchScoredesc:all
        """
        return (
            f"{KEY_PREFIX}:{preference_id}:page{query.page}:limit{query.limit}:"
            f"sort{query.sort_by}{query.sort_order}:{query.filters.cache_fragment()}"
        )

    @staticmethod
    def index_key(preference_id: str) -> str:
        return f"{INDEX_PREFIX}:{preference_id}"

    async def get(self, key: str) -> Optional[dict]:
        """
        Read a cached payload.

        Returns:
            Payload dict, or None on miss, corruption or Redis failure
        """
        if self.client is None:
            return None
        try:
            data = await self.client.get(key)
        except Exception as e:
            cache_log.warning(f"Cache read failed for {key}: {e}")
            return None
        if data is None:
            return None

        payload = deserialize_payload(data)
        if payload is None:
            cache_log.warning(f"Discarding corrupt cache entry {key}")
        return payload

    async def set(self, key: str, payload: dict, preference_id: str, ttl: Optional[int] = None) -> bool:
        """
        Write a payload and record its key in the preference's index.

        Args:
            key: Cache key from build_key
            payload: Response payload
            preference_id: Owner preference (for the index)
            ttl: Override TTL in seconds

        Returns:
            True if the payload was stored
        """
        if self.client is None:
            return False
        ttl = self.ttl if ttl is None else ttl
        index = self.index_key(preference_id)
        try:
            await self.client.set(key, serialize_payload(payload), ex=ttl)
            await self.client.sadd(index, key)
            await self.client.expire(index, ttl)
        except Exception as e:
            cache_log.warning(f"Cache write failed for {key}: {e}")
            return False
        return True

    def sweep_keys(self, preference_id: str) -> list[str]:
        """
        Keys a preference may have under the default sort and no filters.

        Best-effort: filtered or re-sorted entries are not covered and expire
        through their TTL.
        """
        return [
            self.build_key(preference_id, MatchQuery(page=page, limit=limit))
            for page in range(1, self.sweep_pages + 1)
            for limit in self.sweep_limits
        ]

    async def _scan(self, preference_id: str) -> Optional[Set[str]]:
        try:
            return {key async for key in self.client.scan_iter(match=f"{KEY_PREFIX}:{preference_id}:*")}
        except Exception as e:
            cache_log.warning(f"Cache scan failed for {preference_id}: {e}")
            return None

    async def _indexed(self, preference_id: str) -> Optional[Set[str]]:
        try:
            return set(await self.client.smembers(self.index_key(preference_id)))
        except Exception as e:
            cache_log.warning(f"Cache index read failed for {preference_id}: {e}")
            return None

    async def invalidate(self, preference_id: str) -> int:
        """
        Delete every cached payload derived from a preference.

        Args:
            preference_id: Preference id

        Returns:
            Number of deleted entries
        """
        if self.client is None:
            return 0

        scanned = await self._scan(preference_id)
        indexed = await self._indexed(preference_id)

        if scanned is None and indexed is None:
            cache_log.info(f"Falling back to sweep invalidation for {preference_id}")
            keys = set(self.sweep_keys(preference_id))
        else:
            keys = (scanned or set()) | (indexed or set())

        try:
            deleted = await self.client.delete(*sorted(keys)) if keys else 0
            await self.client.delete(self.index_key(preference_id))
        except Exception as e:
            cache_log.warning(f"Cache invalidation failed for {preference_id}: {e}")
            return 0

        cache_log.info(f"Invalidated {deleted} cached result(s) for {preference_id}")
        return deleted
