"""
Deterministic fallback explanations.

Used whenever an LLM explanation is unavailable, ineligible or late.
"""

from typing import Any, Callable, Mapping

from loguru import logger

from src.matching.scorer import (
    normalize_amenities,
    normalize_bedrooms,
    parse_date,
    parse_price_range,
    parse_price_value,
    preference_neighborhoods,
)

explain_log = logger.bind(module="Explanations")

BULLET = "✅"
GENERIC_EXPLANATION = f"{BULLET} This listing may match some of your preferences"


def _price_reason(pref: Mapping, listing: Mapping) -> str | None:
    price_range = parse_price_range(pref.get("price_range"))
    price = parse_price_value(listing.get("price"))
    if price_range and price is not None and price_range[0] <= price <= price_range[1]:
        return "Within your budget range"
    return None


def _bedroom_reason(pref: Mapping, listing: Mapping) -> str | None:
    wanted = normalize_bedrooms(pref.get("bedrooms"))
    if wanted is not None and normalize_bedrooms(listing.get("bedrooms")) == wanted:
        return "Has your required bedrooms"
    return None


def _neighborhood_reason(pref: Mapping, listing: Mapping) -> str | None:
    actual = listing.get("neighborhood")
    if isinstance(actual, str) and actual.strip().lower() in preference_neighborhoods(pref):
        return "In your preferred neighborhood"
    return None


def _move_in_reason(pref: Mapping, listing: Mapping) -> str | None:
    wanted = parse_date(pref.get("move_in_date"))
    available = parse_date(listing.get("move_in_date"))
    if wanted and available and available <= wanted:
        return "Available within your timeframe"
    return None


def _amenity_reason(pref: Mapping, listing: Mapping) -> str | None:
    wanted = normalize_amenities(pref.get("amenities"))
    if not wanted:
        return None
    available = set(normalize_amenities(listing.get("amenities")))
    shared = sum(1 for name in wanted if name in available)
    if shared == len(wanted):
        return "Has all your desired amenities"
    if shared > 0:
        return f"Has {shared} of your desired amenities"
    return None


REASONS: tuple[Callable[[Mapping, Mapping], str | None], ...] = (
    _price_reason,
    _bedroom_reason,
    _neighborhood_reason,
    _move_in_reason,
    _amenity_reason,
)


def generate_fallback_explanation(pref: Any, listing: Any) -> str:
    """
    Build a bullet list of the criteria a listing satisfies.

    Args:
        pref: Preference dict
        listing: Listing dict

    Returns:
        Newline-joined "✅ ..." bullets, or GENERIC_EXPLANATION if none apply
    """
    if not isinstance(pref, Mapping) or not isinstance(listing, Mapping):
        return GENERIC_EXPLANATION

    lines = []
    for reason in REASONS:
        try:
            text = reason(pref, listing)
        except (TypeError, ValueError, AttributeError, ArithmeticError) as e:
            explain_log.debug(f"{reason.__name__} skipped: {e}")
            continue
        if text:
            lines.append(f"{BULLET} {text}")

    return "\n".join(lines) if lines else GENERIC_EXPLANATION
