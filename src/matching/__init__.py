"""
Matching module for preference-to-listing matching.

This module builds listing queries from filters, scores listings against
a preference, explains matches and caches paginated results.
"""

from src.matching.cache import ResultCache
from src.matching.errors import (
    MatchError,
    MatchValidationError,
    PreferenceNotFoundError,
    UpstreamError,
)
from src.matching.explainer import ExplanationGenerator
from src.matching.explanations import GENERIC_EXPLANATION, generate_fallback_explanation
from src.matching.models import MatchQuery, MatchResponse, MatchResult
from src.matching.orchestrator import MatchOrchestrator
from src.matching.predicates import evaluate, to_sql
from src.matching.query_builder import MatchFilters, build_listing_predicate, build_location_condition
from src.matching.scorer import calculate_match_score, stable_sort

__all__ = [
    # Query building
    "MatchFilters",
    "build_listing_predicate",
    "build_location_condition",
    "evaluate",
    "to_sql",
    # Scoring
    "calculate_match_score",
    "stable_sort",
    # Explanations
    "GENERIC_EXPLANATION",
    "generate_fallback_explanation",
    "ExplanationGenerator",
    # Caching
    "ResultCache",
    # Orchestration
    "MatchQuery",
    "MatchResult",
    "MatchResponse",
    "MatchOrchestrator",
    # Errors
    "MatchError",
    "MatchValidationError",
    "PreferenceNotFoundError",
    "UpstreamError",
]
