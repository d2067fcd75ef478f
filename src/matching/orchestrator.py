"""
Match orchestrator.

Runs one match request end to end:

    validate -> cache lookup -> build query -> fetch candidates -> filter
    -> (pre-sort) -> bounded scoring -> (score sort) -> paginate -> enrich
    -> cache write

Only preference lookup and catalog fetch failures surface to the caller.
Cache, LLM and enrichment problems degrade to cache misses and fallback text.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from config.settings import MatchingSettings
from src.matching.cache import ResultCache
from src.matching.errors import MatchError, PreferenceNotFoundError, UpstreamError
from src.matching.explainer import ExplanationGenerator
from src.matching.explanations import GENERIC_EXPLANATION
from src.matching.models import SORT_DATE_ADDED, SORT_MATCH_SCORE, SORT_PRICE, MatchQuery, validate_preference_id
from src.matching.predicates import all_of
from src.matching.query_builder import build_listing_predicate, build_location_condition
from src.matching.scorer import calculate_match_score, parse_price_value, stable_sort

match_log = logger.bind(module="Matcher")


def filter_valid(records: Optional[Iterable[Any]]) -> list[dict]:
    """
    Drop records that cannot be scored or should not be shown.

    Removes non-mapping records, records without an id, and records
    explicitly marked inactive or unapproved.
    """
    valid = []
    for record in records or []:
        if not isinstance(record, Mapping) or not record.get("id"):
            continue
        if record.get("is_active") is False or record.get("is_approved") is False:
            continue
        valid.append(dict(record))
    return valid


def _timestamp(value: Any) -> Optional[float]:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value.strip():
        try:
            moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


def sort_value(sort_by: str, listing: dict) -> Optional[float]:
    """Numeric pre-score sort key for a listing; None sorts last."""
    if sort_by == SORT_PRICE:
        return parse_price_value(listing.get("price"))
    if sort_by == SORT_DATE_ADDED:
        return _timestamp(listing.get("created_at"))
    return None


class MatchOrchestrator:
    """Produces ranked, paginated, explained match results for a preference."""

    def __init__(
        self,
        preferences,
        listings,
        cache: ResultCache,
        explainer: ExplanationGenerator,
        settings: Optional[MatchingSettings] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            preferences: Preference store with get_by_id() / update()
            listings: Listing catalog with find(predicate)
            cache: Result cache
            explainer: Explanation generator
            settings: Matching settings
        """
        self.preferences = preferences
        self.listings = listings
        self.cache = cache
        self.explainer = explainer
        self.settings = settings or MatchingSettings()
        # Bumped on every invalidation; a request that saw an older value does not cache
        self._generations: dict[str, int] = {}

    def parse_query(self, **params: Any) -> MatchQuery:
        """MatchQuery.parse with the configured limit bounds."""
        return MatchQuery.parse(
            default_limit=self.settings.default_limit,
            min_limit=self.settings.min_limit,
            max_limit=self.settings.max_limit,
            **params,
        )

    async def load_preference(self, preference_id: str) -> dict:
        """
        Resolve a preference by id.

        Raises:
            MatchValidationError: Malformed id
            PreferenceNotFoundError: Unknown id
            UpstreamError: Preference store failure
        """
        validate_preference_id(preference_id)
        try:
            pref = await self.preferences.get_by_id(preference_id)
        except MatchError:
            raise
        except Exception as e:
            match_log.error(f"Failed to load preference {preference_id}: {e}")
            raise UpstreamError("Error loading preference") from e
        if not pref:
            raise PreferenceNotFoundError(preference_id)
        return pref

    async def get_matches(self, preference_id: str, query: MatchQuery) -> dict:
        """
        Get one page of match results.

        Args:
            preference_id: 24-char hex preference id
            query: Parsed request parameters

        Returns:
            {"results": [...], "totalCount": int, "filteredCount": int}
        """
        generation = self._generations.get(preference_id, 0)
        pref = await self.load_preference(preference_id)

        key = self.cache.build_key(preference_id, query)
        if query.force_refresh:
            match_log.debug(f"Forced refresh for {key}")
        else:
            cached = await self.cache.get(key)
            if cached is not None:
                match_log.debug(f"Cache hit for {key}")
                return cached

        predicate = all_of(
            build_listing_predicate(query.filters),
            build_location_condition(pref.get("location_preference")),
        )

        try:
            fetched = await self.listings.find(predicate)
        except Exception as e:
            match_log.error(f"Failed to fetch listings for {preference_id}: {e}")
            raise UpstreamError("Error fetching apartments") from e

        candidates = filter_valid(fetched)
        total_count = len(candidates)

        full_scoring = query.sort_by == SORT_MATCH_SCORE
        if full_scoring:
            bound = self.settings.max_scored
        else:
            candidates = stable_sort(
                candidates,
                key=lambda listing: sort_value(query.sort_by, listing),
                descending=query.descending,
            )
            bound = min(
                query.page * query.limit + self.settings.pagination_lookahead,
                self.settings.max_scored,
            )

        scored = await self._score(pref, candidates[:bound])

        if full_scoring:
            scored = stable_sort(scored, key=lambda item: item["matchScore"], descending=query.descending)
            remainder = candidates[bound:]
            if remainder:
                match_log.debug(f"{len(remainder)} candidates beyond the scoring bound get score 0")
                scored += [
                    {"apartment": listing, "matchScore": 0, "explanation": GENERIC_EXPLANATION}
                    for listing in remainder
                ]

        match_log.debug(
            f"Scored {min(bound, total_count)} of {total_count} candidates for {preference_id}"
        )

        page = [dict(item) for item in scored[query.offset:query.offset + query.limit]]
        for item in page:
            if item.get("explanation") is None:
                item["explanation"] = self.explainer.fallback(pref, item["apartment"])

        try:
            await self._enrich(pref, page)
        except Exception as e:
            match_log.warning(f"Enrichment failed, keeping fallback explanations: {e}")

        payload = {
            "results": page,
            "totalCount": total_count,
            "filteredCount": len(scored),
        }
        if self._generations.get(preference_id, 0) != generation:
            match_log.debug(f"Preference {preference_id} was invalidated during the request, not caching {key}")
        else:
            await self.cache.set(key, payload, preference_id)
        return payload

    async def _score(self, pref: dict, listings: list[dict]) -> list[dict]:
        """Score listings in batches, yielding to the event loop between batches."""
        scored = []
        batch_size = max(1, self.settings.batch_size)
        for start in range(0, len(listings), batch_size):
            for listing in listings[start:start + batch_size]:
                scored.append({
                    "apartment": listing,
                    "matchScore": calculate_match_score(pref, listing),
                    "explanation": None,
                })
            await asyncio.sleep(0)
        return scored

    async def _enrich(self, pref: dict, page: list[dict]) -> None:
        """Replace fallback text with LLM explanations for eligible page items."""
        eligible = [item for item in page if self.explainer.is_eligible(item["matchScore"])]
        if not eligible:
            return

        tasks = {
            asyncio.create_task(
                self.explainer.resolve(pref, item["apartment"], item["matchScore"], item["explanation"])
            ): item
            for item in eligible
        }
        done, pending = await asyncio.wait(tasks, timeout=self.settings.enrich_timeout)

        if pending:
            match_log.warning(f"Enrichment deadline reached, {len(pending)} explanation(s) use fallback")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            if task.cancelled() or task.exception() is not None:
                continue
            tasks[task]["explanation"] = task.result()

    async def update_preference(self, preference_id: str, data: dict) -> tuple[dict, int]:
        """
        Update a preference and drop its cached matches.

        Args:
            preference_id: Preference id
            data: Fields to update

        Returns:
            (updated preference, number of invalidated cache entries)

        Raises:
            MatchValidationError: Malformed id
            PreferenceNotFoundError: Unknown id
            UpstreamError: Preference store failure
        """
        validate_preference_id(preference_id)
        try:
            updated = await self.preferences.update(preference_id, data)
        except MatchError:
            raise
        except Exception as e:
            match_log.error(f"Failed to update preference {preference_id}: {e}")
            raise UpstreamError("Error updating preference") from e
        if not updated:
            raise PreferenceNotFoundError(preference_id)

        cleared = await self._drop_cached(preference_id)
        return updated, cleared

    async def invalidate(self, preference_id: str) -> int:
        """Drop cached matches for a preference."""
        validate_preference_id(preference_id)
        return await self._drop_cached(preference_id)

    async def _drop_cached(self, preference_id: str) -> int:
        """Drop cached matches and explanations; returns the match entry count."""
        self._generations[preference_id] = self._generations.get(preference_id, 0) + 1
        cleared = await self.cache.invalidate(preference_id)
        await self.explainer.invalidate(preference_id)
        return cleared
