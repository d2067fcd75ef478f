"""Preference routes."""

from fastapi import APIRouter, HTTPException

from src.api.dependencies import Orchestrator
from src.matching.errors import MatchError
from src.modules.preferences import PreferenceResponse, PreferenceUpdate, PreferenceUpdateResponse

router = APIRouter(prefix="/preferences", tags=["Preferences"])


@router.get("/{preference_id}", response_model=PreferenceResponse)
async def get_preference(preference_id: str, orchestrator: Orchestrator) -> PreferenceResponse:
    """Get a preference by ID."""
    try:
        pref = await orchestrator.load_preference(preference_id)
    except MatchError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return PreferenceResponse.model_validate(pref)


@router.put("/{preference_id}", response_model=PreferenceUpdateResponse)
async def update_preference(
    preference_id: str,
    data: PreferenceUpdate,
    orchestrator: Orchestrator,
) -> PreferenceUpdateResponse:
    """
    Update a preference.

    Cached match results for the preference are invalidated so the next
    request is scored against the new criteria.
    """
    try:
        updated, cleared = await orchestrator.update_preference(
            preference_id, data.model_dump(exclude_unset=True)
        )
    except MatchError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return PreferenceUpdateResponse(
        success=True,
        cacheCleared=cleared > 0,
        preference=PreferenceResponse.model_validate(updated),
    )
