"""
Unit tests for src/matching/cache.py
"""

import asyncio
from typing import Optional, Set, get_type_hints

from src.matching.cache import ResultCache
from src.matching.models import MatchQuery
from src.matching.query_builder import MatchFilters
from tests.fixtures.stores import BrokenRedis, NoEnumerationRedis

# Import fixtures
pytest_plugins = ["tests.fixtures.stores"]

PAYLOAD = {
    "results": [{"apartment": {"id": "a1", "price": 2500.0}, "matchScore": 90, "explanation": "✅ ok"}],
    "totalCount": 1,
    "filteredCount": 1,
}


# ============================================================
# build_key tests
# ============================================================


class TestBuildKey:
    """Tests for ResultCache.build_key."""

    def test_default_query(self, preference_id):
        """Default query should produce the canonical key."""
        key = ResultCache.build_key(preference_id, MatchQuery())
        assert key == f"matches:{preference_id}:page1:limit6:sortmatchScoredesc:all"

    def test_filters_order_independent(self, preference_id):
        """Equivalent filters in a different order should share a key."""
        a = MatchQuery(filters=MatchFilters(bedrooms="3+,2", amenities="Pool,gym"))
        b = MatchQuery(filters=MatchFilters(bedrooms=["2", "3+"], amenities=["gym", "pool"]))
        assert ResultCache.build_key(preference_id, a) == ResultCache.build_key(preference_id, b)

    def test_different_params_differ(self, preference_id):
        """Different pages and sorts should not collide."""
        keys = {
            ResultCache.build_key(preference_id, MatchQuery(page=2)),
            ResultCache.build_key(preference_id, MatchQuery(sort_by="price", sort_order="asc")),
            ResultCache.build_key(preference_id, MatchQuery()),
        }
        assert len(keys) == 3


# ============================================================
# get / set tests
# ============================================================


class TestGetSet:
    """Tests for ResultCache.get and ResultCache.set."""

    def test_round_trip(self, fake_redis, preference_id):
        """Stored payload should be returned unchanged, with TTL and index."""
        cache = ResultCache(fake_redis, ttl=3600)
        key = cache.build_key(preference_id, MatchQuery())

        assert asyncio.run(cache.set(key, PAYLOAD, preference_id)) is True
        assert asyncio.run(cache.get(key)) == PAYLOAD
        assert fake_redis.ttls[key] == 3600
        assert key in fake_redis.sets[f"matches-index:{preference_id}"]

    def test_miss(self, fake_redis):
        """Unknown key should be a miss."""
        assert asyncio.run(ResultCache(fake_redis).get("matches:nope")) is None

    def test_corrupt_entry(self, fake_redis):
        """Corrupt JSON should be treated as a miss."""
        fake_redis.values["matches:bad"] = "{not json"
        assert asyncio.run(ResultCache(fake_redis).get("matches:bad")) is None

    def test_no_client(self, preference_id):
        """Cache without Redis should behave as always empty."""
        cache = ResultCache(None)
        assert cache.enabled is False
        assert asyncio.run(cache.set("k", PAYLOAD, preference_id)) is False
        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.invalidate(preference_id)) == 0

    def test_broken_redis(self, preference_id):
        """Redis errors should never propagate."""
        cache = ResultCache(BrokenRedis())
        assert asyncio.run(cache.set("k", PAYLOAD, preference_id)) is False
        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.invalidate(preference_id)) == 0


# ============================================================
# invalidate tests
# ============================================================


class TestInvalidate:
    """Tests for ResultCache.invalidate."""

    def test_removes_every_derived_key(self, fake_redis, preference_id):
        """All keys of the preference should go, other preferences stay."""
        cache = ResultCache(fake_redis)
        other_id = "0" * 24
        queries = [
            MatchQuery(),
            MatchQuery(page=7, limit=13),
            MatchQuery(sort_by="price", sort_order="asc", filters=MatchFilters(bedrooms="2")),
        ]
        for query in queries:
            asyncio.run(cache.set(cache.build_key(preference_id, query), PAYLOAD, preference_id))
        other_key = cache.build_key(other_id, MatchQuery())
        asyncio.run(cache.set(other_key, PAYLOAD, other_id))

        assert asyncio.run(cache.invalidate(preference_id)) == 3
        for query in queries:
            assert asyncio.run(cache.get(cache.build_key(preference_id, query))) is None
        assert f"matches-index:{preference_id}" not in fake_redis.sets
        assert asyncio.run(cache.get(other_key)) == PAYLOAD

    def test_index_only(self, fake_redis, preference_id):
        """Keys recorded in the index should be removed even if SCAN misses them."""
        cache = ResultCache(fake_redis)
        fake_redis.values["legacy-key"] = "{}"
        fake_redis.sets[f"matches-index:{preference_id}"] = {"legacy-key"}
        assert asyncio.run(cache.invalidate(preference_id)) == 1
        assert "legacy-key" not in fake_redis.values

    def test_sweep_fallback(self, preference_id):
        """Without SCAN or index, the documented default-sort keys should be swept."""
        redis_client = NoEnumerationRedis()
        cache = ResultCache(redis_client, default_limit=6, sweep_pages=10, sweep_limits=[3, 6])

        common = [
            cache.build_key(preference_id, MatchQuery(page=1, limit=6)),
            cache.build_key(preference_id, MatchQuery(page=10, limit=3)),
        ]
        for key in common:
            redis_client.values[key] = "{}"

        assert asyncio.run(cache.invalidate(preference_id)) == 2
        assert not any(key in redis_client.values for key in common)

    def test_sweep_keys(self, preference_id):
        """Sweep should cover pages 1-10 for each sweep limit."""
        cache = ResultCache(None, default_limit=6, sweep_pages=10, sweep_limits=[3])
        keys = cache.sweep_keys(preference_id)
        assert len(keys) == 20
        assert all(key.endswith(":sortmatchScoredesc:all") for key in keys)

    def test_helper_annotations_resolve(self):
        """Key-set helpers should advertise sets, not the set() method."""
        assert get_type_hints(ResultCache._scan)["return"] == Optional[Set[str]]
        assert get_type_hints(ResultCache._indexed)["return"] == Optional[Set[str]]
