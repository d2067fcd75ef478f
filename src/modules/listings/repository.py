"""
Listing Repository.

Read-only catalog access for the match pipeline.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from asyncpg import Pool
from loguru import logger

from src.matching.predicates import Predicate, to_sql

listings_log = logger.bind(module="Listings")

LISTING_COLUMNS = """
    id, title, price, bedrooms, bathrooms, neighborhood, amenities,
    move_in_date, longitude, latitude, floor, pets, parking,
    style, transport, sqft, safety, view, lease_capacity, roommates,
    is_active, is_approved, created_at
"""


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def row_to_listing(row) -> dict:
    """
    Convert an apartments row into a JSON-ready listing dict.

    Coordinates are folded into location {"coordinates": [lng, lat]}; dates
    become ISO strings and numerics floats, so a freshly built payload and
    its cached copy are identical.
    """
    data = {key: _plain(value) for key, value in dict(row).items()}
    lng = data.pop("longitude", None)
    lat = data.pop("latitude", None)
    data["location"] = {"coordinates": [lng, lat]} if lng is not None and lat is not None else None
    data["amenities"] = list(data.get("amenities") or [])
    if data.get("id") is not None:
        data["id"] = str(data["id"])
    return data


class ListingRepository:
    """Repository for listing queries."""

    def __init__(self, pool: Pool):
        """
        Initialize repository with database connection pool.

        Args:
            pool: asyncpg connection pool
        """
        self._pool = pool

    async def find(self, predicate: Predicate) -> list[dict]:
        """
        Find listings matching a predicate.

        Args:
            predicate: Predicate tree from the query builder

        Returns:
            Listing dicts, oldest first
        """
        clause, params = to_sql(predicate)
        query = f"""
        SELECT {LISTING_COLUMNS}
        FROM apartments
        WHERE {clause}
        ORDER BY created_at, id
        """
        listings_log.debug(f"Listing query: WHERE {clause} {params}")

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
            return [row_to_listing(row) for row in rows]
