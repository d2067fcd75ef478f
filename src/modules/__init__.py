"""Modules package - Domain modules with repository pattern."""

from src.modules.listings import ListingRepository
from src.modules.preferences import (
    LocationPreference,
    PreferenceBase,
    PreferenceRepository,
    PreferenceResponse,
    PreferenceUpdate,
    PreferenceUpdateResponse,
)

__all__ = [
    # Preferences
    "LocationPreference",
    "PreferenceBase",
    "PreferenceUpdate",
    "PreferenceResponse",
    "PreferenceUpdateResponse",
    "PreferenceRepository",
    # Listings
    "ListingRepository",
]
