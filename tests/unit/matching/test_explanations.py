"""
Unit tests for src/matching/explanations.py
"""

import pytest

from src.matching.explanations import GENERIC_EXPLANATION, generate_fallback_explanation


class TestGenerateFallbackExplanation:
    """Tests for generate_fallback_explanation function."""

    def test_downtown_example(self, downtown_preference, downtown_listings):
        """Matching listing should mention price, bedrooms and neighborhood."""
        text = generate_fallback_explanation(downtown_preference, downtown_listings[1])
        assert text.splitlines() == [
            "✅ Within your budget range",
            "✅ Has your required bedrooms",
            "✅ In your preferred neighborhood",
        ]

    def test_all_reasons(self, sample_preference, sample_listing):
        """Full match should include move-in and all amenities."""
        text = generate_fallback_explanation(sample_preference, sample_listing)
        assert "✅ Available within your timeframe" in text
        assert "✅ Has all your desired amenities" in text

    def test_partial_amenities(self):
        """Partial amenity overlap should report the count."""
        pref = {"amenities": ["gym", "pool", "balcony"]}
        listing = {"amenities": ["Gym", "Pool"]}
        assert generate_fallback_explanation(pref, listing) == "✅ Has 2 of your desired amenities"

    def test_no_match_generic(self, downtown_preference, downtown_listings):
        """Non-matching listing should get the generic text."""
        assert generate_fallback_explanation(downtown_preference, downtown_listings[0]) == GENERIC_EXPLANATION

    @pytest.mark.parametrize(
        "pref,listing",
        [
            (None, {}),
            ({}, None),
            ({"price_range": 5, "amenities": "gym"}, {"price": {"a": 1}}),
            ({"neighborhoods": [None, 3]}, {"neighborhood": ["Downtown"]}),
        ],
    )
    def test_malformed_input(self, pref, listing):
        """Malformed input should still produce a non-empty explanation."""
        text = generate_fallback_explanation(pref, listing)
        assert isinstance(text, str) and text
