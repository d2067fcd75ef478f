"""
Match request and response models.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import BaseModel, Field

from src.matching.errors import MatchValidationError
from src.matching.query_builder import MatchFilters

SORT_MATCH_SCORE = "matchScore"
SORT_PRICE = "price"
SORT_DATE_ADDED = "dateAdded"
SORT_FIELDS = (SORT_MATCH_SCORE, SORT_PRICE, SORT_DATE_ADDED)

ORDER_ASC = "asc"
ORDER_DESC = "desc"
SORT_ORDERS = (ORDER_ASC, ORDER_DESC)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 6
MIN_LIMIT = 1
MAX_LIMIT = 50

PREFERENCE_ID = re.compile(r"^[0-9a-fA-F]{24}$")


def validate_preference_id(preference_id: Any) -> str:
    """
    Check a preference id is 24 hex characters.

    Raises:
        MatchValidationError: If the id is malformed
    """
    if not isinstance(preference_id, str) or not PREFERENCE_ID.match(preference_id):
        raise MatchValidationError("Invalid preference ID")
    return preference_id


def _parse_int(name: str, value: Any, default: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise MatchValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise MatchValidationError(f"{name} must be an integer") from None


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class MatchQuery:
    """Validated match request parameters."""

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort_by: str = SORT_MATCH_SCORE
    sort_order: str = ORDER_DESC
    force_refresh: bool = False
    filters: MatchFilters = field(default_factory=MatchFilters)

    @classmethod
    def parse(
        cls,
        page: Any = None,
        limit: Any = None,
        sort_by: Any = None,
        sort_order: Any = None,
        force_refresh: Any = False,
        filters: MatchFilters | Mapping[str, Any] | None = None,
        default_limit: int = DEFAULT_LIMIT,
        min_limit: int = MIN_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> "MatchQuery":
        """
        Parse raw request parameters.

        Page is clamped to at least 1 and limit to [min_limit, max_limit].

        Args:
            page: Page number (1-based)
            limit: Page size
            sort_by: matchScore, price or dateAdded
            sort_order: asc or desc
            force_refresh: Skip the cache read
            filters: Filter criteria

        Returns:
            MatchQuery

        Raises:
            MatchValidationError: Non-integer page/limit or unknown sort values
        """
        page_number = max(1, _parse_int("page", page, DEFAULT_PAGE))
        page_size = min(max_limit, max(min_limit, _parse_int("limit", limit, default_limit)))

        sort_by = SORT_MATCH_SCORE if sort_by in (None, "") else sort_by
        if sort_by not in SORT_FIELDS:
            raise MatchValidationError(f"sortBy must be one of: {', '.join(SORT_FIELDS)}")

        sort_order = ORDER_DESC if sort_order in (None, "") else str(sort_order).lower()
        if sort_order not in SORT_ORDERS:
            raise MatchValidationError("sortOrder must be asc or desc")

        if filters is None:
            filters = MatchFilters()
        elif not isinstance(filters, MatchFilters):
            filters = MatchFilters.model_validate(dict(filters))

        return cls(
            page=page_number,
            limit=page_size,
            sort_by=sort_by,
            sort_order=sort_order,
            force_refresh=_parse_bool(force_refresh),
            filters=filters,
        )

    @property
    def descending(self) -> bool:
        return self.sort_order == ORDER_DESC

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class MatchResult(BaseModel):
    """One scored listing."""

    apartment: dict[str, Any]
    matchScore: int = Field(ge=0, le=100)
    explanation: str


class MatchResponse(BaseModel):
    """Paginated match results."""

    results: list[MatchResult]
    totalCount: int
    filteredCount: int
