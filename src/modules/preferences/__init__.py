"""Preferences module."""

from src.modules.preferences.models import (
    LocationPreference,
    PreferenceBase,
    PreferenceResponse,
    PreferenceUpdate,
    PreferenceUpdateResponse,
)
from src.modules.preferences.repository import PreferenceRepository, row_to_preference

__all__ = [
    "LocationPreference",
    "PreferenceBase",
    "PreferenceUpdate",
    "PreferenceResponse",
    "PreferenceUpdateResponse",
    "PreferenceRepository",
    "row_to_preference",
]
