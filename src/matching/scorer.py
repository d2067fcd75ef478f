"""
Match scoring between a housing preference and a listing.

Both sides are plain dicts (snake_case keys). Every dimension the preference
expresses adds its weight to the denominator; the listing earns that weight
(or a fraction of it) when it satisfies the dimension. Missing or unparseable
listing data earns nothing and never raises.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, TypeVar

from loguru import logger

from src.matching.predicates import haversine_km, listing_coordinates

scorer_log = logger.bind(module="Scorer")

T = TypeVar("T")

# Dimension weights
WEIGHT_PRICE = 15
WEIGHT_BEDROOMS = 15
WEIGHT_NEIGHBORHOOD = 10
WEIGHT_LOCATION = 12
WEIGHT_MOVE_IN = 8
WEIGHT_PETS = 8
WEIGHT_PARKING = 8
WEIGHT_FLOOR = 5
WEIGHT_PER_AMENITY = 3
WEIGHT_STYLE = 5
WEIGHT_TRANSPORT = 5
WEIGHT_SQFT = 6
WEIGHT_SAFETY = 7
WEIGHT_VIEW = 4
WEIGHT_LEASE_CAPACITY = 8
WEIGHT_ROOMMATES = 6

DEFAULT_RADIUS_KM = 10.0

# Floor applied when at least half of the possible weight is earned
MIN_SCORE_HALF_MET = 30

_NEGATIVE_WORDS = re.compile(r"\b(no|not|none|unavailable|prohibited)\b")
_PETS_POSITIVE = re.compile(r"\b(yes|allow|allowed|permit|permitted|friendly)\b")
_PARKING_POSITIVE = re.compile(r"\b(yes|need|needed|require|required|available|garage)\b")


# ============================================================
# Parsing helpers
# ============================================================


def safe_float(value: Any) -> float | None:
    """
    Convert a value to a finite float.

    Examples:
        >>> safe_float("2,500")
        2500.0
        >>> safe_float(float("nan")) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, str):
            value = value.replace(",", "").strip()
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def parse_price_value(value: Any) -> float | None:
    """
    Parse a listing price ("2500", "$2,500", 2500.0).

    Returns:
        Positive price, or None if missing, zero or unparseable
    """
    if isinstance(value, str):
        value = re.sub(r"[^\d.]", "", value)
    price = safe_float(value)
    if price is None or price <= 0:
        return None
    return price


def _digits(text: str) -> int | None:
    digits = re.sub(r"[^\d]", "", text)
    return int(digits) if digits else None


def parse_price_range(value: Any) -> tuple[float, float] | None:
    """
    Parse a preference price range.

    Args:
        value: "2000-3000", "$1,000 - $2,000", "$3,000+", or "2500"

    Returns:
        (min, max) with max possibly infinite, or None if unparseable

    Examples:
        >>> parse_price_range("$3,000+")
        (3000, inf)
        >>> parse_price_range("3000-2000")
        (2000, 3000)
    """
    if not isinstance(value, str) or not value.strip():
        return None

    if "+" in value:
        low = _digits(value)
        return (low, math.inf) if low is not None else None

    parts = [_digits(part) for part in value.split("-")]
    if len(parts) == 2 and all(p is not None and p > 0 for p in parts):
        low, high = parts
        return (low, high) if low <= high else (high, low)
    if len(parts) == 1 and parts[0] is not None and parts[0] > 0:
        return (0, parts[0])
    return None


def normalize_bedrooms(value: Any) -> str | None:
    """
    Extract the bedroom count from free text.

    Examples:
        >>> normalize_bedrooms("2 Bedrooms")
        '2'
        >>> normalize_bedrooms("Studio")
        '0'
    """
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.lower().startswith("studio"):
        return "0"
    match = re.search(r"(\d+)", text)
    return str(int(match.group(1))) if match else text.lower()


def parse_date(value: Any) -> date | None:
    """Parse a date, datetime or ISO-8601 string into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def normalize_floor(value: Any) -> str | None:
    """Bucket a floor into ground / mid / top."""
    if value is None or isinstance(value, bool):
        return None
    number = safe_float(value)
    if number is not None:
        if number <= 1:
            return "ground"
        if number <= 5:
            return "mid"
        return "top"
    text = str(value).strip().lower()
    if not text:
        return None
    if "ground" in text:
        return "ground"
    if "mid" in text:
        return "mid"
    if "top" in text or "high" in text:
        return "top"
    return text


def _yes_no(value: Any, positive: re.Pattern, default: str | None) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "yes" if value else "no"
    text = str(value).strip().lower()
    if not text:
        return None
    if _NEGATIVE_WORDS.search(text):
        return "no"
    if positive.search(text):
        return "yes"
    return default


def normalize_pets(value: Any) -> str | None:
    """Pets answers default to yes when unclear."""
    return _yes_no(value, _PETS_POSITIVE, default="yes")


def normalize_parking(value: Any) -> str | None:
    """Parking answers that are neither yes nor no are ignored."""
    return _yes_no(value, _PARKING_POSITIVE, default=None)


def normalize_amenity(value: Any) -> str | None:
    """Map common amenity spellings onto one name."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    if "gym" in text or "fitness" in text:
        return "gym"
    if "park" in text and "space" in text:
        return "parking space"
    if "balcon" in text:
        return "balcony"
    if "laundry" in text or "washer" in text or "dryer" in text:
        return "in-unit laundry"
    if "dishwasher" in text:
        return "dishwasher"
    if "air" in text and "condition" in text:
        return "air conditioning"
    return re.sub(r"[\s-]+", " ", text)


def normalize_amenities(values: Any) -> list[str]:
    """Normalise an amenity list, dropping blanks and duplicates (order kept)."""
    if not isinstance(values, (list, tuple, set)):
        return []
    seen: list[str] = []
    for item in values:
        name = normalize_amenity(item)
        if name and name not in seen:
            seen.append(name)
    return seen


def preference_neighborhoods(pref: Mapping) -> list[str]:
    """Lowercased neighborhoods from `neighborhoods` (list) and `neighborhood` (str)."""
    names: list[Any] = []
    listed = pref.get("neighborhoods")
    if isinstance(listed, (list, tuple)):
        names.extend(listed)
    elif isinstance(listed, str):
        names.append(listed)
    single = pref.get("neighborhood")
    if isinstance(single, str):
        names.append(single)
    return [str(n).strip().lower() for n in names if n is not None and str(n).strip()]


def parse_sqft_range(value: Any) -> tuple[float, float] | None:
    """
    Parse a preferred size range.

    Examples:
        >>> parse_sqft_range("500 - 1,000 sq. ft.")
        (500, 1000)
        >>> parse_sqft_range("800")
        (800, 800)
    """
    if not isinstance(value, str):
        return None
    numbers = [int(n.replace(",", "")) for n in re.findall(r"\d+(?:,\d+)?", value)]
    numbers = [n for n in numbers if n > 0]
    if len(numbers) >= 2:
        low, high = numbers[0], numbers[1]
        return (low, high) if low <= high else (high, low)
    if len(numbers) == 1:
        return numbers[0], numbers[0]
    return None


def parse_sqft_value(value: Any) -> float | None:
    """Listing size from a number or text such as "850 sq ft"."""
    if isinstance(value, str):
        match = re.search(r"\d+(?:,\d+)*(?:\.\d+)?", value)
        value = match.group(0) if match else None
    size = safe_float(value)
    return size if size is not None and size > 0 else None


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip().lower()
    return text or None


def normalize_roommates(value: Any) -> str | None:
    """Whether a roommate answer means sharing ("yes") or not ("no")."""
    text = _text(value)
    if text is None:
        return None
    if any(word in text for word in ("yes", "with roommates", "friends", "shared")):
        return "yes"
    return "no"


# ============================================================
# Dimensions
# ============================================================
# Each returns (weight, fraction earned) or None when the preference
# does not express the dimension.


def _score_price(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    price_range = parse_price_range(pref.get("price_range"))
    if price_range is None:
        return None
    low, high = price_range
    price = parse_price_value(listing.get("price"))
    in_range = price is not None and low <= price <= high
    return WEIGHT_PRICE, 1.0 if in_range else 0.0


def _score_bedrooms(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = normalize_bedrooms(pref.get("bedrooms"))
    if wanted is None:
        return None
    return WEIGHT_BEDROOMS, 1.0 if normalize_bedrooms(listing.get("bedrooms")) == wanted else 0.0


def _score_neighborhood(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = preference_neighborhoods(pref)
    if not wanted:
        return None
    actual = listing.get("neighborhood")
    if not isinstance(actual, str):
        return WEIGHT_NEIGHBORHOOD, 0.0
    return WEIGHT_NEIGHBORHOOD, 1.0 if actual.strip().lower() in wanted else 0.0


def _score_location(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    location = pref.get("location_preference")
    if not isinstance(location, Mapping):
        return None
    center = location.get("center")
    if not isinstance(center, (list, tuple)) or len(center) < 2:
        return None
    lng, lat = safe_float(center[0]), safe_float(center[1])
    if lng is None or lat is None or not (-180 <= lng <= 180 and -90 <= lat <= 90):
        return None
    radius = safe_float(location.get("radius")) or DEFAULT_RADIUS_KM
    if radius <= 0:
        radius = DEFAULT_RADIUS_KM

    coords = listing_coordinates(dict(listing))
    if coords is None:
        return WEIGHT_LOCATION, 0.0

    distance = haversine_km(lng, lat, *coords)
    if distance <= radius:
        # 1.0 at the center, 0.5 at the edge
        return WEIGHT_LOCATION, 1.0 - (distance / radius) * 0.5
    excess = distance - radius
    max_excess = radius * 2
    if excess <= max_excess:
        # 0.5 at the edge, 0 at three radii
        return WEIGHT_LOCATION, 0.5 * (1.0 - excess / max_excess)
    return WEIGHT_LOCATION, 0.0


def _score_move_in(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = parse_date(pref.get("move_in_date"))
    if wanted is None:
        return None
    available = parse_date(listing.get("move_in_date"))
    return WEIGHT_MOVE_IN, 1.0 if available is not None and available <= wanted else 0.0


def _score_pets(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = normalize_pets(pref.get("pets"))
    if wanted is None:
        return None
    return WEIGHT_PETS, 1.0 if normalize_pets(listing.get("pets")) == wanted else 0.0


def _score_parking(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = normalize_parking(pref.get("parking"))
    if wanted is None:
        return None
    return WEIGHT_PARKING, 1.0 if normalize_parking(listing.get("parking")) == wanted else 0.0


def _score_floor(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = normalize_floor(pref.get("floor"))
    if wanted is None:
        return None
    return WEIGHT_FLOOR, 1.0 if normalize_floor(listing.get("floor")) == wanted else 0.0


def _score_amenities(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = normalize_amenities(pref.get("amenities"))
    if not wanted:
        return None
    available = set(normalize_amenities(listing.get("amenities")))
    shared = sum(1 for name in wanted if name in available)
    return WEIGHT_PER_AMENITY * len(wanted), shared / len(wanted)


def _score_text_equal(field: str, weight: float, pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = _text(pref.get(field))
    if wanted is None:
        return None
    return weight, 1.0 if _text(listing.get(field)) == wanted else 0.0


def _score_style(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    return _score_text_equal("style", WEIGHT_STYLE, pref, listing)


def _score_view(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    return _score_text_equal("view", WEIGHT_VIEW, pref, listing)


def _score_transport(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = _text(pref.get("transport"))
    if wanted is None:
        return None
    actual = _text(listing.get("transport"))
    if actual is None:
        return WEIGHT_TRANSPORT, 0.0
    if actual == wanted:
        return WEIGHT_TRANSPORT, 1.0
    close = (
        ("important" in wanted and "good" in actual)
        or ("somewhat" in wanted and "average" in actual)
        or ("close" in wanted and "good" in actual)
    )
    return WEIGHT_TRANSPORT, 0.5 if close else 0.0


def _score_sqft(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    size_range = parse_sqft_range(pref.get("sqft"))
    if size_range is None:
        return None
    low, high = size_range
    size = parse_sqft_value(listing.get("sqft"))
    if size is None:
        return WEIGHT_SQFT, 0.0
    if low <= size <= high:
        return WEIGHT_SQFT, 1.0
    # Within 10% of either end
    if low * 0.9 <= size <= high * 1.1:
        return WEIGHT_SQFT, 0.5
    return WEIGHT_SQFT, 0.0


def _score_safety(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = _text(pref.get("safety"))
    if wanted is None:
        return None
    actual = _text(listing.get("safety"))
    if actual is None:
        return WEIGHT_SAFETY, 0.0
    met = (
        actual == wanted
        or (("very" in wanted or "important" in wanted) and ("high" in actual or "good" in actual))
        or ("somewhat" in wanted and "average" in actual)
    )
    return WEIGHT_SAFETY, 1.0 if met else 0.0


def _score_lease_capacity(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = pref.get("lease_capacity")
    if wanted is None or not str(wanted).strip():
        return None
    actual = listing.get("lease_capacity")
    same = actual is not None and str(actual).strip() == str(wanted).strip()
    return WEIGHT_LEASE_CAPACITY, 1.0 if same else 0.0


def _score_roommates(pref: Mapping, listing: Mapping) -> tuple[float, float] | None:
    wanted = normalize_roommates(pref.get("roommates"))
    if wanted is None:
        return None
    return WEIGHT_ROOMMATES, 1.0 if normalize_roommates(listing.get("roommates")) == wanted else 0.0


DIMENSIONS: tuple[Callable[[Mapping, Mapping], tuple[float, float] | None], ...] = (
    _score_price,
    _score_bedrooms,
    _score_neighborhood,
    _score_location,
    _score_move_in,
    _score_pets,
    _score_parking,
    _score_floor,
    _score_amenities,
    _score_style,
    _score_transport,
    _score_sqft,
    _score_safety,
    _score_view,
    _score_lease_capacity,
    _score_roommates,
)


def calculate_match_score(pref: Any, listing: Any) -> int:
    """
    Calculate the 0-100 match score between a preference and a listing.

    Pure and total: the same inputs always give the same integer, and
    malformed input on any dimension only forfeits that dimension.

    Args:
        pref: Preference dict
        listing: Listing dict

    Returns:
        Integer score in [0, 100]
    """
    if not isinstance(pref, Mapping) or not isinstance(listing, Mapping):
        return 0

    earned = 0.0
    possible = 0.0
    for dimension in DIMENSIONS:
        try:
            result = dimension(pref, listing)
        except (TypeError, ValueError, AttributeError, ArithmeticError) as e:
            scorer_log.debug(f"{dimension.__name__} skipped: {e}")
            continue
        if result is None:
            continue
        weight, fraction = result
        if not math.isfinite(weight) or weight <= 0:
            continue
        if not math.isfinite(fraction):
            fraction = 0.0
        fraction = min(1.0, max(0.0, fraction))
        possible += weight
        earned += weight * fraction

    if possible <= 0:
        return 0
    if earned >= possible:
        return 100

    percent = math.floor(earned / possible * 100 + 0.5)
    if earned * 2 >= possible:
        percent = max(percent, MIN_SCORE_HALF_MET)
    return int(min(100, max(0, percent)))


# ============================================================
# Ordering
# ============================================================


def stable_sort(
    items: Iterable[T],
    key: Callable[[T], float | None],
    descending: bool = False,
) -> list[T]:
    """
    Sort by a numeric key, breaking ties by original position.

    Items whose key is None or non-finite go last in either direction.

    Args:
        items: Items in their pre-sort order
        key: Numeric sort key
        descending: Highest key first

    Returns:
        New sorted list
    """
    decorated = []
    for index, item in enumerate(items):
        value = key(item)
        if value is None or not math.isfinite(value):
            decorated.append(((1, 0.0, index), item))
        else:
            decorated.append(((0, -value if descending else value, index), item))
    decorated.sort(key=lambda pair: pair[0])
    return [item for _, item in decorated]
