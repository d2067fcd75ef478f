"""
In-memory collaborators for match pipeline tests.
"""

import asyncio
import fnmatch
from typing import Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from config.settings import GroqSettings
from src.llm.groq_client import CompletionResult
from src.matching.predicates import evaluate


class FakeRedis:
    """Subset of redis.asyncio.Redis backed by dicts."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.sets: dict[str, set] = {}
        self.ttls: dict[str, int] = {}
        self.get_calls = 0
        self.set_calls = 0

    async def ping(self):
        return True

    async def get(self, key):
        self.get_calls += 1
        return self.values.get(key)

    async def set(self, key, value, ex=None):
        self.set_calls += 1
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        deleted = 0
        for key in keys:
            if self.values.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                deleted += 1
            self.ttls.pop(key, None)
        return deleted

    async def scan_iter(self, match=None):
        for key in list(self.values):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True


class NoEnumerationRedis(FakeRedis):
    """Redis whose SCAN and set commands are unavailable."""

    async def scan_iter(self, match=None):
        raise RedisConnectionError("SCAN disabled")
        yield  # pragma: no cover

    async def sadd(self, key, *members):
        raise RedisConnectionError("SADD disabled")

    async def smembers(self, key):
        raise RedisConnectionError("SMEMBERS disabled")


class BrokenRedis:
    """Redis that fails every command."""

    async def get(self, key):
        raise RedisConnectionError("down")

    async def set(self, key, value, ex=None):
        raise RedisConnectionError("down")

    async def delete(self, *keys):
        raise RedisConnectionError("down")

    async def scan_iter(self, match=None):
        raise RedisConnectionError("down")
        yield  # pragma: no cover

    async def sadd(self, key, *members):
        raise RedisConnectionError("down")

    async def smembers(self, key):
        raise RedisConnectionError("down")

    async def expire(self, key, seconds):
        raise RedisConnectionError("down")


class InMemoryCatalog:
    """Listing catalog evaluating predicates in-process."""

    def __init__(self, listings: list):
        self.listings = listings
        self.calls = 0
        self.last_predicate = None

    async def find(self, predicate):
        self.calls += 1
        self.last_predicate = predicate
        # Non-dict records are passed through untouched, like a corrupt store
        return [
            listing for listing in self.listings
            if not isinstance(listing, dict) or evaluate(predicate, listing)
        ]


class GatedCatalog(InMemoryCatalog):
    """Catalog whose find() waits until released."""

    def __init__(self, listings: list):
        super().__init__(listings)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def find(self, predicate):
        self.entered.set()
        await self.release.wait()
        return await super().find(predicate)


class FailingCatalog:
    """Catalog whose queries always fail."""

    async def find(self, predicate):
        raise RuntimeError("database unavailable")


class InMemoryPreferences:
    """Preference store keyed by id."""

    def __init__(self, *preferences: dict):
        self.items = {pref["id"]: dict(pref) for pref in preferences}

    async def get_by_id(self, preference_id):
        pref = self.items.get(preference_id)
        return dict(pref) if pref else None

    async def update(self, preference_id, data):
        if preference_id not in self.items:
            return None
        self.items[preference_id].update(data)
        return dict(self.items[preference_id])


class StubGroqClient:
    """Groq client returning scripted results."""

    def __init__(self, result: Optional[CompletionResult] = None, enabled: bool = True, delay: float = 0.0):
        self.settings = GroqSettings(api_key="test-key" if enabled else "")
        self.result = result or CompletionResult(content="✅ Matches in: Price", status_code=200)
        self._enabled = enabled
        self.delay = delay
        self.calls = 0
        self.timeouts: list = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def complete(self, system, user, timeout=None):
        self.calls += 1
        self.timeouts.append(timeout)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result

    async def close(self):
        pass


@pytest.fixture
def fake_redis():
    """Empty in-memory Redis."""
    return FakeRedis()


@pytest.fixture
def stub_groq():
    """Enabled Groq stub returning a fixed explanation."""
    return StubGroqClient()
