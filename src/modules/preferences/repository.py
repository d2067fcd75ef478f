"""
Preference Repository.

Data access layer for housing preferences.
"""

from typing import Optional

from asyncpg import Pool

# Columns that can be written through update()
UPDATABLE_COLUMNS = (
    "price_range",
    "bedrooms",
    "bathrooms",
    "neighborhoods",
    "amenities",
    "move_in_date",
    "floor",
    "pets",
    "parking",
    "style",
    "transport",
    "sqft",
    "safety",
    "view",
    "lease_capacity",
    "roommates",
)


def row_to_preference(row) -> dict:
    """
    Convert a preferences row into the preference dict used by matching.

    The location columns are folded into
    location_preference {"center": [lng, lat], "radius": km}.
    """
    data = dict(row)
    lng = data.pop("location_lng", None)
    lat = data.pop("location_lat", None)
    radius = data.pop("location_radius", None)
    data["location_preference"] = (
        {"center": [float(lng), float(lat)], "radius": float(radius) if radius else 10.0}
        if lng is not None and lat is not None
        else None
    )
    data["neighborhoods"] = list(data.get("neighborhoods") or [])
    data["amenities"] = list(data.get("amenities") or [])
    return data


class PreferenceRepository:
    """Repository for preference database operations."""

    def __init__(self, pool: Pool):
        """
        Initialize repository with database connection pool.

        Args:
            pool: asyncpg connection pool
        """
        self._pool = pool

    async def get_by_id(self, preference_id: str) -> Optional[dict]:
        """
        Get preference by ID.

        Args:
            preference_id: 24-char hex preference ID

        Returns:
            Preference dict or None if not found
        """
        query = "SELECT * FROM preferences WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, preference_id)
            return row_to_preference(row) if row else None

    async def update(self, preference_id: str, data: dict) -> Optional[dict]:
        """
        Update a preference.

        Args:
            preference_id: Preference ID
            data: Fields to update (only the keys present are written)

        Returns:
            Updated preference dict or None if not found
        """
        # Build dynamic update query
        fields = []
        values = []
        idx = 1

        for key in UPDATABLE_COLUMNS:
            if key in data:
                fields.append(f"{key} = ${idx}")
                values.append(data[key])
                idx += 1

        if "location_preference" in data:
            location = data["location_preference"] or {}
            center = location.get("center") or [None, None]
            for column, value in (
                ("location_lng", center[0]),
                ("location_lat", center[1]),
                ("location_radius", location.get("radius")),
            ):
                fields.append(f"{column} = ${idx}")
                values.append(value)
                idx += 1

        if not fields:
            return await self.get_by_id(preference_id)

        values.append(preference_id)
        query = f"""
        UPDATE preferences
        SET {", ".join(fields)}, updated_at = NOW()
        WHERE id = ${idx}
        RETURNING *
        """

        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, *values)
            return row_to_preference(row) if row else None
