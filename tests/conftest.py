"""
Shared pytest fixtures for all tests.
"""

import pytest

PREFERENCE_ID = "64b7f0c2a1d3e4f5a6b7c8d9"


# ============================================================
# Sample Data Fixtures
# ============================================================


@pytest.fixture
def preference_id() -> str:
    """Valid 24-char hex preference id."""
    return PREFERENCE_ID


@pytest.fixture
def sample_preference() -> dict:
    """Preference with every scored dimension set."""
    return {
        "id": PREFERENCE_ID,
        "user_email": "renter@example.com",
        "price_range": "2000-3000",
        "bedrooms": "2",
        "bathrooms": "1",
        "neighborhoods": ["Downtown", "Back Bay"],
        "amenities": ["Gym", "Dishwasher"],
        "move_in_date": "2026-09-01",
        "location_preference": {"center": [-71.0589, 42.3601], "radius": 5},
        "floor": "mid",
        "pets": "Yes",
        "parking": "Not needed",
    }


@pytest.fixture
def sample_listing() -> dict:
    """Listing satisfying sample_preference on every dimension."""
    return {
        "id": "apt-1",
        "title": "Sunny 2BR near the Common",
        "price": 2500,
        "bedrooms": "2 Bedrooms",
        "bathrooms": "1",
        "neighborhood": "Downtown",
        "amenities": ["gym", "Dishwasher", "Roof Deck"],
        "move_in_date": "2026-08-15",
        "location": {"coordinates": [-71.0589, 42.3601]},
        "floor": 3,
        "pets": "Pets allowed",
        "parking": "No",
        "is_active": True,
        "is_approved": True,
        "created_at": "2026-07-01T10:00:00",
    }


@pytest.fixture
def downtown_preference() -> dict:
    """Minimal preference from the end-to-end example."""
    return {
        "id": PREFERENCE_ID,
        "price_range": "2000-3000",
        "bedrooms": "2",
        "neighborhood": "Downtown",
    }


@pytest.fixture
def downtown_listings() -> list[dict]:
    """Catalog from the end-to-end example (worse match first)."""
    return [
        {
            "id": "uptown-1",
            "price": 5000,
            "bedrooms": "1",
            "neighborhood": "Uptown",
            "created_at": "2026-07-02T00:00:00",
        },
        {
            "id": "downtown-1",
            "price": 2500,
            "bedrooms": "2",
            "neighborhood": "Downtown",
            "created_at": "2026-07-01T00:00:00",
        },
    ]
