"""
Listing query builder.

Translates match filter criteria into a store-agnostic predicate tree.
Values within one filter category are ORed, categories are ANDed.
"""

import re
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from src.matching.predicates import (
    AnyElementPattern,
    Equals,
    MatchAll,
    Pattern,
    Predicate,
    Range,
    WithinRadius,
    all_of,
    any_of,
)

STUDIO = "Studio"
THREE_PLUS = "3+"

_ROOM_COUNT = re.compile(r"^\d{1,2}(?:\.\d)?$")


def normalize_room_value(value: Any) -> str | None:
    """
    Canonicalise a bedroom/bathroom filter value.

    Args:
        value: Raw filter value (e.g., "2", " studio ", "3+")

    Returns:
        "Studio", "3+", a count such as "2" or "1.5", or None if unrecognized

    Examples:
        >>> normalize_room_value(" studio ")
        'Studio'
        >>> normalize_room_value("2.0")
        '2'
        >>> normalize_room_value("2 bedrooms") is None
        True
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.lower() == "studio":
        return STUDIO
    if text == THREE_PLUS:
        return THREE_PLUS
    if _ROOM_COUNT.match(text):
        count = float(text)
        return str(int(count)) if count.is_integer() else str(count)
    return None


def _split_list(value: Any) -> list[str]:
    """Accept a comma-separated string or an iterable of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        return []
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def _unique(values: list[str]) -> list[str]:
    return sorted(set(values))


class MatchFilters(BaseModel):
    """
    Filter criteria for a match request.

    All fields are optional. Values are normalised once here so the
    builder and the cache key never see raw query strings.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    min_price: int | None = None
    max_price: int | None = None
    bedrooms: list[str] = []
    bathrooms: list[str] = []
    neighborhoods: list[str] = []
    amenities: list[str] = []

    @field_validator("min_price", "max_price", mode="before")
    @classmethod
    def parse_price(cls, v: Any) -> int | None:
        """Unparseable or negative prices are treated as absent."""
        if v is None or isinstance(v, bool):
            return None
        try:
            price = int(float(str(v).replace(",", "").strip()))
        except (TypeError, ValueError, OverflowError):
            return None
        return price if price >= 0 else None

    @field_validator("bedrooms", "bathrooms", mode="before")
    @classmethod
    def parse_rooms(cls, v: Any) -> list[str]:
        """Keep only recognised room values."""
        values = (normalize_room_value(item) for item in _split_list(v))
        return _unique([value for value in values if value is not None])

    @field_validator("neighborhoods", "amenities", mode="before")
    @classmethod
    def parse_names(cls, v: Any) -> list[str]:
        """Names match case-insensitively, so they are lowercased."""
        return _unique([item.lower() for item in _split_list(v)])

    def is_empty(self) -> bool:
        """True if no filter is active."""
        return (
            self.min_price is None
            and self.max_price is None
            and not self.bedrooms
            and not self.bathrooms
            and not self.neighborhoods
            and not self.amenities
        )

    def cache_fragment(self) -> str:
        """
        Deterministic, order-independent serialization of the active filters.

        Returns:
            e.g. "amenities=gym,pool|bedrooms=2,3+|minPrice=1000", or "all"
        """
        parts = []
        active = {
            "amenities": ",".join(self.amenities),
            "bathrooms": ",".join(self.bathrooms),
            "bedrooms": ",".join(self.bedrooms),
            "maxPrice": "" if self.max_price is None else str(self.max_price),
            "minPrice": "" if self.min_price is None else str(self.min_price),
            "neighborhoods": ",".join(self.neighborhoods),
        }
        for name in sorted(active):
            if active[name]:
                parts.append(f"{name}={active[name]}")
        return "|".join(parts) if parts else "all"


# ============================================================
# Condition builders
# ============================================================


def build_price_condition(min_price: int | None, max_price: int | None) -> Predicate:
    """Closed or half-open price range."""
    if min_price is None and max_price is None:
        return MatchAll()
    return Range("price", gte=min_price, lte=max_price)


def _three_plus(field: str) -> list[Predicate]:
    return [
        Pattern(field, r"^[3-9]"),
        Pattern(field, r"^[1-9][0-9]+"),
    ]


def build_bedroom_condition(values: list[str]) -> Predicate:
    """
    Bedroom counts stored as free text ("2", "2 Bedrooms", "2BHK", "Studio").

    Args:
        values: Canonical room values from MatchFilters

    Returns:
        OR of exact and prefix-pattern conditions, or MatchAll
    """
    conditions: list[Predicate] = []
    for value in values:
        if value == STUDIO:
            conditions += [
                Equals("bedrooms", "0"),
                Equals("bedrooms", STUDIO),
                Equals("bedrooms", "0 Bedrooms"),
                Pattern("bedrooms", r"^studio", ignore_case=True),
            ]
        elif value == THREE_PLUS:
            conditions += _three_plus("bedrooms")
        else:
            conditions += [
                Equals("bedrooms", value),
                Pattern("bedrooms", rf"^{re.escape(value)}\s", ignore_case=True),
                Pattern("bedrooms", rf"^{re.escape(value)}BHK", ignore_case=True),
            ]
    return any_of(*conditions) if conditions else MatchAll()


def build_bathroom_condition(values: list[str]) -> Predicate:
    """Bathroom counts use the same conventions as bedrooms, without studio."""
    conditions: list[Predicate] = []
    for value in values:
        if value == THREE_PLUS:
            conditions += _three_plus("bathrooms")
        elif value != STUDIO:
            conditions += [
                Equals("bathrooms", value),
                Pattern("bathrooms", rf"^{re.escape(value)}\s", ignore_case=True),
            ]
    return any_of(*conditions) if conditions else MatchAll()


def build_neighborhood_condition(values: list[str]) -> Predicate:
    """Case-insensitive substring match on any selected neighborhood."""
    if not values:
        return MatchAll()
    return any_of(*[Pattern("neighborhood", re.escape(v), ignore_case=True) for v in values])


def amenity_pattern(amenity: str) -> str:
    """
    Pattern tolerant of whitespace and hyphen differences.

    Examples:
        >>> amenity_pattern("pet-friendly")
        'pet[\\\\s-]*friendly'
    """
    tokens = [re.escape(token) for token in re.split(r"[\s-]+", amenity.strip()) if token]
    return r"[\s-]*".join(tokens)


def build_amenity_condition(values: list[str]) -> Predicate:
    """At least one requested amenity present in the listing's amenities."""
    conditions = [
        AnyElementPattern("amenities", amenity_pattern(v))
        for v in values
        if amenity_pattern(v)
    ]
    return any_of(*conditions) if conditions else MatchAll()


def build_location_condition(location_preference: Any, default_radius_km: float = 10.0) -> Predicate:
    """
    Geo restriction from a preference's location_preference.

    Args:
        location_preference: {"center": [lng, lat], "radius": km} or None
        default_radius_km: Radius used when none is stored

    Returns:
        WithinRadius, or MatchAll if the center is missing or invalid
    """
    if not isinstance(location_preference, Mapping):
        return MatchAll()
    center = location_preference.get("center")
    if not isinstance(center, (list, tuple)) or len(center) < 2:
        return MatchAll()
    try:
        lng, lat = float(center[0]), float(center[1])
        radius = float(location_preference.get("radius") or default_radius_km)
    except (TypeError, ValueError):
        return MatchAll()
    if not (-180 <= lng <= 180 and -90 <= lat <= 90) or radius <= 0:
        return MatchAll()
    return WithinRadius(lng=lng, lat=lat, radius_km=radius)


def build_listing_predicate(filters: MatchFilters | Mapping[str, Any] | None) -> Predicate:
    """
    Build the listing predicate for a set of filters.

    Args:
        filters: MatchFilters, or a raw mapping validated here

    Returns:
        Predicate tree; MatchAll when no filter is active
    """
    if filters is None:
        return MatchAll()
    if not isinstance(filters, MatchFilters):
        filters = MatchFilters.model_validate(dict(filters))

    return all_of(
        build_price_condition(filters.min_price, filters.max_price),
        build_bedroom_condition(filters.bedrooms),
        build_bathroom_condition(filters.bathrooms),
        build_neighborhood_condition(filters.neighborhoods),
        build_amenity_condition(filters.amenities),
    )
