"""Match routes."""

from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Query
from loguru import logger

from src.api.dependencies import Orchestrator
from src.matching.errors import MatchError
from src.matching.models import MatchResponse

router = APIRouter(prefix="/matches", tags=["Matches"])

matches_log = logger.bind(module="Matches")

OptionalParam = Optional[str]


@router.get("/{preference_id}", response_model=MatchResponse)
async def get_matches(
    preference_id: str,
    orchestrator: Orchestrator,
    page: OptionalParam = None,
    limit: OptionalParam = None,
    sort_by: Annotated[OptionalParam, Query(alias="sortBy")] = None,
    sort_order: Annotated[OptionalParam, Query(alias="sortOrder")] = None,
    force_refresh: Annotated[OptionalParam, Query(alias="forceRefresh")] = None,
    min_price: Annotated[OptionalParam, Query(alias="minPrice")] = None,
    max_price: Annotated[OptionalParam, Query(alias="maxPrice")] = None,
    bedrooms: OptionalParam = None,
    bathrooms: OptionalParam = None,
    neighborhoods: OptionalParam = None,
    amenities: OptionalParam = None,
) -> dict:
    """
    Get ranked matches for a preference.

    Filters are comma-separated lists (e.g. bedrooms=2,3+).
    """
    try:
        query = orchestrator.parse_query(
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            force_refresh=force_refresh == "true",
            filters={
                "min_price": min_price,
                "max_price": max_price,
                "bedrooms": bedrooms,
                "bathrooms": bathrooms,
                "neighborhoods": neighborhoods,
                "amenities": amenities,
            },
        )
        return await orchestrator.get_matches(preference_id, query)
    except MatchError as e:
        if e.status_code >= 500:
            matches_log.error(f"Match request for {preference_id} failed: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{preference_id}/cache")
async def clear_matches_cache(preference_id: str, orchestrator: Orchestrator) -> dict:
    """Drop cached match results for a preference."""
    try:
        cleared = await orchestrator.invalidate(preference_id)
    except MatchError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"success": True, "cleared": cleared}
