"""
Listing predicate tree.

Store-agnostic boolean filter expressions produced by the query builder.
A predicate can be evaluated in-process against a listing dict, or compiled
into a PostgreSQL WHERE clause with asyncpg positional parameters.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Union

# Columns a predicate is allowed to reference when compiled to SQL
SQL_COLUMNS = {
    "price": "price",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "neighborhood": "neighborhood",
    "amenities": "amenities",
}

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class MatchAll:
    """Matches every listing."""


@dataclass(frozen=True)
class AllOf:
    """Logical AND of child predicates."""

    conditions: tuple["Predicate", ...]


@dataclass(frozen=True)
class AnyOf:
    """Logical OR of child predicates."""

    conditions: tuple["Predicate", ...]


@dataclass(frozen=True)
class Range:
    """Numeric range on a field. A missing bound is unconstrained."""

    field: str
    gte: float | None = None
    lte: float | None = None


@dataclass(frozen=True)
class Equals:
    """Exact string equality on a field."""

    field: str
    value: str


@dataclass(frozen=True)
class Pattern:
    """Regular-expression search on a string field."""

    field: str
    pattern: str
    ignore_case: bool = False


@dataclass(frozen=True)
class AnyElementPattern:
    """At least one element of an array field matches the pattern."""

    field: str
    pattern: str
    ignore_case: bool = True


@dataclass(frozen=True)
class WithinRadius:
    """Listing location lies within radius_km of (lng, lat)."""

    lng: float
    lat: float
    radius_km: float


Predicate = Union[MatchAll, AllOf, AnyOf, Range, Equals, Pattern, AnyElementPattern, WithinRadius]


# ============================================================
# Combinators
# ============================================================


def all_of(*conditions: Predicate) -> Predicate:
    """AND conditions together, dropping MatchAll and flattening single children."""
    kept = tuple(c for c in conditions if not isinstance(c, MatchAll))
    if not kept:
        return MatchAll()
    if len(kept) == 1:
        return kept[0]
    return AllOf(kept)


def any_of(*conditions: Predicate) -> Predicate:
    """OR conditions together. An empty OR matches nothing useful, so callers skip it."""
    if len(conditions) == 1:
        return conditions[0]
    return AnyOf(tuple(conditions))


# ============================================================
# In-process evaluation
# ============================================================


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    return str(value)


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def haversine_km(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Great-circle distance between two points in kilometers."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def listing_coordinates(listing: dict) -> tuple[float, float] | None:
    """
    Extract (lng, lat) from a listing's location.

    Args:
        listing: Listing dict with location {"coordinates": [lng, lat]}

    Returns:
        (lng, lat) tuple, or None if missing or out of range
    """
    location = listing.get("location")
    if not isinstance(location, dict):
        return None
    coords = location.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        return None
    lng, lat = _as_number(coords[0]), _as_number(coords[1])
    if lng is None or lat is None:
        return None
    if not (-180 <= lng <= 180 and -90 <= lat <= 90):
        return None
    return lng, lat


def evaluate(predicate: Predicate, listing: dict) -> bool:
    """
    Evaluate a predicate against a listing dict.

    Missing or mistyped fields never match a condition on that field.

    Args:
        predicate: Predicate tree
        listing: Listing data

    Returns:
        True if the listing satisfies the predicate
    """
    if isinstance(predicate, MatchAll):
        return True

    if isinstance(predicate, AllOf):
        return all(evaluate(c, listing) for c in predicate.conditions)

    if isinstance(predicate, AnyOf):
        return any(evaluate(c, listing) for c in predicate.conditions)

    if isinstance(predicate, Range):
        value = _as_number(listing.get(predicate.field))
        if value is None:
            return False
        if predicate.gte is not None and value < predicate.gte:
            return False
        if predicate.lte is not None and value > predicate.lte:
            return False
        return True

    if isinstance(predicate, Equals):
        return _as_text(listing.get(predicate.field)) == predicate.value

    if isinstance(predicate, Pattern):
        text = _as_text(listing.get(predicate.field))
        if text is None:
            return False
        flags = re.IGNORECASE if predicate.ignore_case else 0
        return re.search(predicate.pattern, text, flags) is not None

    if isinstance(predicate, AnyElementPattern):
        items = listing.get(predicate.field)
        if not isinstance(items, (list, tuple)):
            return False
        flags = re.IGNORECASE if predicate.ignore_case else 0
        regex = re.compile(predicate.pattern, flags)
        return any(
            regex.search(text) is not None
            for text in (_as_text(item) for item in items)
            if text is not None
        )

    if isinstance(predicate, WithinRadius):
        coords = listing_coordinates(listing)
        if coords is None:
            return False
        return haversine_km(predicate.lng, predicate.lat, *coords) <= predicate.radius_km

    raise TypeError(f"Unknown predicate type: {type(predicate).__name__}")


# ============================================================
# SQL compilation
# ============================================================


def _column(field: str) -> str:
    try:
        return SQL_COLUMNS[field]
    except KeyError:
        raise ValueError(f"Field not allowed in listing query: {field}") from None


def to_sql(predicate: Predicate, start: int = 1) -> tuple[str, list]:
    """
    Compile a predicate into a PostgreSQL WHERE clause.

    Args:
        predicate: Predicate tree
        start: Index of the first positional parameter ($start)

    Returns:
        Tuple of (clause, params) for asyncpg

    Examples:
        >>> to_sql(Range("price", gte=1000))
        ('(price >= $1)', [1000])
    """
    params: list = []

    def add(value: Any) -> str:
        params.append(value)
        return f"${start + len(params) - 1}"

    def compile_node(node: Predicate) -> str:
        if isinstance(node, MatchAll):
            return "TRUE"

        if isinstance(node, (AllOf, AnyOf)):
            joiner = " AND " if isinstance(node, AllOf) else " OR "
            parts = [compile_node(c) for c in node.conditions]
            if not parts:
                return "TRUE" if isinstance(node, AllOf) else "FALSE"
            return "(" + joiner.join(parts) + ")"

        if isinstance(node, Range):
            column = _column(node.field)
            bounds = []
            if node.gte is not None:
                bounds.append(f"{column} >= {add(node.gte)}")
            if node.lte is not None:
                bounds.append(f"{column} <= {add(node.lte)}")
            if not bounds:
                return f"{column} IS NOT NULL"
            return "(" + " AND ".join(bounds) + ")"

        if isinstance(node, Equals):
            return f"{_column(node.field)} = {add(node.value)}"

        if isinstance(node, Pattern):
            operator = "~*" if node.ignore_case else "~"
            return f"{_column(node.field)} {operator} {add(node.pattern)}"

        if isinstance(node, AnyElementPattern):
            operator = "~*" if node.ignore_case else "~"
            return (
                f"EXISTS (SELECT 1 FROM unnest({_column(node.field)}) AS item "
                f"WHERE item {operator} {add(node.pattern)})"
            )

        if isinstance(node, WithinRadius):
            lng, lat, radius = add(node.lng), add(node.lat), add(node.radius_km)
            # Haversine on the longitude/latitude columns
            return (
                "(longitude IS NOT NULL AND latitude IS NOT NULL AND "
                f"{EARTH_RADIUS_KM} * 2 * asin(sqrt(least(1.0, "
                f"power(sin(radians(latitude - {lat}) / 2), 2) + "
                f"cos(radians({lat})) * cos(radians(latitude)) * "
                f"power(sin(radians(longitude - {lng}) / 2), 2)))) <= {radius})"
            )

        raise TypeError(f"Unknown predicate type: {type(node).__name__}")

    return compile_node(predicate), params
