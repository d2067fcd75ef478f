"""
Preference Models.

Pydantic models for reading and updating housing preferences.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class LocationPreference(BaseModel):
    """Search center and radius."""

    center: list[float] = Field(..., min_length=2, max_length=2, description="[lng, lat]")
    radius: float = Field(10.0, gt=0, description="Radius in km")

    @field_validator("center")
    @classmethod
    def validate_center(cls, v: list[float]) -> list[float]:
        """Longitude in [-180, 180], latitude in [-90, 90]."""
        lng, lat = v
        if not (-180 <= lng <= 180 and -90 <= lat <= 90):
            raise ValueError("center must be [lng, lat] within valid ranges")
        return v


class PreferenceBase(BaseModel):
    """Fields shared by preference reads and updates."""

    price_range: Optional[str] = Field(None, description='e.g. "2000-3000", "$3,000+"')
    bedrooms: Optional[str] = None
    bathrooms: Optional[str] = None
    neighborhoods: list[str] = Field(default_factory=list)
    amenities: list[str] = Field(default_factory=list)
    move_in_date: Optional[date] = None
    location_preference: Optional[LocationPreference] = None
    floor: Optional[str] = None
    pets: Optional[str] = None
    parking: Optional[str] = None
    style: Optional[str] = None
    transport: Optional[str] = None
    sqft: Optional[str] = Field(None, description='e.g. "500 - 1,000 sq. ft."')
    safety: Optional[str] = None
    view: Optional[str] = None
    lease_capacity: Optional[str] = None
    roommates: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_single_neighborhood(cls, data):
        """Accept `neighborhood` (string) as an alias for `neighborhoods`."""
        if isinstance(data, dict) and "neighborhood" in data and not data.get("neighborhoods"):
            data = dict(data)
            single = data.pop("neighborhood")
            data["neighborhoods"] = [single] if single else []
        return data


class PreferenceUpdate(PreferenceBase):
    """Model for updating a preference. Only fields that are sent are changed."""

    neighborhoods: Optional[list[str]] = None
    amenities: Optional[list[str]] = None


class PreferenceResponse(PreferenceBase):
    """Model for preference response."""

    id: str
    user_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PreferenceUpdateResponse(BaseModel):
    """Result of a preference update."""

    success: bool = True
    cacheCleared: bool
    preference: PreferenceResponse
