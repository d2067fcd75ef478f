"""
Unit tests for src/matching/scorer.py
"""

import math

import pytest

from src.matching.scorer import (
    calculate_match_score,
    normalize_bedrooms,
    normalize_floor,
    normalize_parking,
    normalize_pets,
    normalize_roommates,
    parse_price_range,
    parse_price_value,
    parse_sqft_range,
    parse_sqft_value,
    stable_sort,
)


# ============================================================
# Parser tests
# ============================================================


class TestParsePriceRange:
    """Tests for parse_price_range function."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2000-3000", (2000, 3000)),
            ("$1,000 - $2,000", (1000, 2000)),
            ("3000-2000", (2000, 3000)),
            ("2500", (0, 2500)),
            ("$3,000+", (3000, math.inf)),
        ],
    )
    def test_valid(self, value, expected):
        """Supported formats should parse to (min, max)."""
        assert parse_price_range(value) == expected

    @pytest.mark.parametrize("value", [None, "", "cheap", "1-2-3", 2500, "0"])
    def test_invalid(self, value):
        """Unparseable ranges should return None."""
        assert parse_price_range(value) is None


class TestParsePriceValue:
    """Tests for parse_price_value function."""

    def test_formatted(self):
        """Currency formatting should be stripped."""
        assert parse_price_value("$2,500") == 2500.0

    @pytest.mark.parametrize("value", [None, 0, -10, "n/a", float("nan"), float("inf"), True])
    def test_invalid(self, value):
        """Missing, non-positive and non-finite prices should return None."""
        assert parse_price_value(value) is None


class TestNormalizers:
    """Tests for dimension normalizers."""

    def test_bedrooms(self):
        """Bedroom text should reduce to the digit count."""
        assert normalize_bedrooms("2 Bedrooms") == "2"
        assert normalize_bedrooms(2) == "2"
        assert normalize_bedrooms("Studio") == "0"
        assert normalize_bedrooms(None) is None

    def test_floor(self):
        """Floors should bucket into ground/mid/top."""
        assert normalize_floor(1) == "ground"
        assert normalize_floor("4") == "mid"
        assert normalize_floor(12) == "top"
        assert normalize_floor("Top floor") == "top"

    def test_pets(self):
        """Negative wording should win over positive wording."""
        assert normalize_pets("Pets allowed") == "yes"
        assert normalize_pets("No pets") == "no"
        assert normalize_pets("Not allowed") == "no"
        assert normalize_pets("cats ok") == "yes"

    def test_parking(self):
        """Unclear parking answers should be ignored."""
        assert normalize_parking("Required") == "yes"
        assert normalize_parking("Unavailable") == "no"
        assert normalize_parking("maybe") is None
        assert normalize_parking(True) == "yes"

    def test_roommates(self):
        """Sharing answers should map to yes, anything else to no."""
        assert normalize_roommates("Yes") == "yes"
        assert normalize_roommates("Open to living with roommates") == "yes"
        assert normalize_roommates("Shared with friends") == "yes"
        assert normalize_roommates("No roommates") == "no"
        assert normalize_roommates("Private") == "no"
        assert normalize_roommates(None) is None


class TestParseSqft:
    """Tests for parse_sqft_range and parse_sqft_value."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("500 - 1,000 sq. ft.", (500, 1000)),
            ("1000-500", (500, 1000)),
            ("800", (800, 800)),
            ("any size", None),
            (None, None),
        ],
    )
    def test_range(self, value, expected):
        """Ranges, single sizes and reversed bounds should parse."""
        assert parse_sqft_range(value) == expected

    def test_value(self):
        """Listing sizes may be numbers or text."""
        assert parse_sqft_value(850) == 850.0
        assert parse_sqft_value("1,080 sq ft") == 1080.0
        assert parse_sqft_value("unknown") is None
        assert parse_sqft_value(0) is None


# ============================================================
# calculate_match_score tests
# ============================================================


class TestCalculateMatchScore:
    """Tests for calculate_match_score function."""

    def test_perfect_match(self, sample_preference, sample_listing):
        """Listing meeting every criterion should score 100."""
        assert calculate_match_score(sample_preference, sample_listing) == 100

    def test_deterministic(self, sample_preference, sample_listing):
        """Repeated calls should give the same score."""
        scores = {calculate_match_score(sample_preference, sample_listing) for _ in range(5)}
        assert len(scores) == 1

    def test_no_match(self, downtown_preference):
        """Listing meeting nothing should score 0."""
        listing = {"id": "x", "price": 5000, "bedrooms": "1", "neighborhood": "Uptown"}
        assert calculate_match_score(downtown_preference, listing) == 0

    def test_no_expressed_dimension(self):
        """Empty preference should score 0."""
        assert calculate_match_score({}, {"price": 100}) == 0

    def test_partial_match(self, downtown_preference):
        """Matching only price should give the price share of the weights."""
        listing = {"price": 2500, "bedrooms": "1", "neighborhood": "Uptown"}
        # 15 / (15 + 15 + 10)
        assert calculate_match_score(downtown_preference, listing) == 38

    def test_floor_is_weight_based(self):
        """Meeting half the criteria by count should not lift a low weighted score."""
        pref = {"floor": "mid", "price_range": "1000-2000"}
        # 5 / 20, only the light criterion is met
        assert calculate_match_score(pref, {"floor": 3, "price": 9999}) == 25
        # 15 / 20
        assert calculate_match_score(pref, {"floor": 20, "price": 1500}) == 75

    def test_amenity_overlap_proportional(self):
        """Amenity credit should be proportional to the overlap."""
        pref = {"amenities": ["gym", "pool", "balcony", "dishwasher"]}
        listing = {"amenities": ["Gym", "Pool"]}
        assert calculate_match_score(pref, listing) == 50

    def test_missing_listing_data(self, sample_preference):
        """Listing with no data should score 0, not raise."""
        assert calculate_match_score(sample_preference, {"id": "empty"}) == 0

    def test_location_partial_credit(self):
        """Listing at the edge of the radius should get half the location weight."""
        pref = {"location_preference": {"center": [0.0, 0.0], "radius": 10}}
        at_center = {"location": {"coordinates": [0.0, 0.0]}}
        far_away = {"location": {"coordinates": [50.0, 50.0]}}
        assert calculate_match_score(pref, at_center) == 100
        assert calculate_match_score(pref, far_away) == 0

        # ~10 km east of the center: 1 - 0.5 * (10/10) = 0.5
        edge = {"location": {"coordinates": [0.0899, 0.0]}}
        assert 45 <= calculate_match_score(pref, edge) <= 55

    @pytest.mark.parametrize(
        "listing",
        [
            {"price": "NaN", "bedrooms": {"x": 1}, "neighborhood": 42},
            {"price": float("inf"), "amenities": "gym", "location": "here"},
            {"move_in_date": "not-a-date", "location": {"coordinates": ["a", "b"]}},
            {"amenities": [None, 5, {"a": 1}], "floor": float("nan")},
        ],
    )
    def test_malformed_listing_never_raises(self, sample_preference, listing):
        """Malformed listing fields should never raise and stay in bounds."""
        score = calculate_match_score(sample_preference, listing)
        assert isinstance(score, int)
        assert 0 <= score <= 100

    @pytest.mark.parametrize(
        "pref",
        [
            {"price_range": ["2000"], "bedrooms": {"n": 2}},
            {"location_preference": {"center": [float("nan"), 1]}},
            {"move_in_date": 12345, "amenities": "gym"},
            None,
            "preference",
        ],
    )
    def test_malformed_preference_never_raises(self, pref, sample_listing):
        """Malformed preferences should never raise and stay in bounds."""
        score = calculate_match_score(pref, sample_listing)
        assert isinstance(score, int)
        assert 0 <= score <= 100


# ============================================================
# Lifestyle dimension tests
# ============================================================


class TestLifestyleDimensions:
    """Tests for style, transport, sqft, safety, view, lease capacity and roommates."""

    @pytest.mark.parametrize(
        "pref,listing,expected",
        [
            ({"style": "Modern"}, {"style": " modern "}, 100),
            ({"style": "Modern"}, {"style": "Classic"}, 0),
            ({"view": "City"}, {"view": "city"}, 100),
            ({"lease_capacity": "2"}, {"lease_capacity": 2}, 100),
            ({"lease_capacity": "2"}, {"lease_capacity": "3"}, 0),
            ({"roommates": "Yes"}, {"roommates": "Shared with friends"}, 100),
            ({"roommates": "No"}, {"roommates": "Yes"}, 0),
        ],
    )
    def test_exact_dimensions(self, pref, listing, expected):
        """Text dimensions should compare case-insensitively."""
        assert calculate_match_score(pref, listing) == expected

    @pytest.mark.parametrize(
        "wanted,actual,expected",
        [
            ("Very important", "very important", 100),
            ("Very important", "Good", 50),
            ("Somewhat important", "Average", 50),
            ("Close to subway", "Good", 50),
            ("Very important", "Poor", 0),
        ],
    )
    def test_transport_partial_credit(self, wanted, actual, expected):
        """Nearby transport answers should earn half the weight."""
        assert calculate_match_score({"transport": wanted}, {"transport": actual}) == expected

    @pytest.mark.parametrize(
        "actual,expected",
        [(800, 100), ("1,080 sq ft", 50), (460, 50), (1200, 0), (None, 0)],
    )
    def test_sqft_tolerance(self, actual, expected):
        """Sizes within 10% of the range should earn half the weight."""
        assert calculate_match_score({"sqft": "500 - 1,000 sq. ft."}, {"sqft": actual}) == expected

    @pytest.mark.parametrize(
        "wanted,actual,expected",
        [
            ("Very Important", "High", 100),
            ("Important", "Good", 100),
            ("Somewhat important", "Average", 100),
            ("Very Important", "Low", 0),
        ],
    )
    def test_safety_equivalents(self, wanted, actual, expected):
        """Safety priorities should accept equivalent listing ratings."""
        assert calculate_match_score({"safety": wanted}, {"safety": actual}) == expected

    def test_missing_listing_value_counts(self):
        """Expressed dimensions with no listing data should still weigh in."""
        pref = {"price_range": "2000-3000", "style": "modern", "view": "park"}
        # 15 / (15 + 5 + 4)
        assert calculate_match_score(pref, {"price": 2500}) == 63

    def test_weights_combine(self):
        """New dimensions should share the denominator with the core ones."""
        pref = {"price_range": "2000-3000", "style": "modern", "sqft": "500-1000"}
        listing = {"price": 2500, "style": "classic", "sqft": 1050}
        # (15 + 0 + 3) / (15 + 5 + 6)
        assert calculate_match_score(pref, listing) == 69


# ============================================================
# stable_sort tests
# ============================================================


class TestStableSort:
    """Tests for stable_sort function."""

    def test_ties_keep_input_order_descending(self):
        """Equal keys should keep their original order when descending."""
        items = [("a", 50), ("b", 80), ("c", 50), ("d", 80)]
        result = stable_sort(items, key=lambda item: item[1], descending=True)
        assert [name for name, _ in result] == ["b", "d", "a", "c"]

    def test_ties_keep_input_order_ascending(self):
        """Equal keys should keep their original order when ascending."""
        items = [("a", 50), ("b", 80), ("c", 50)]
        result = stable_sort(items, key=lambda item: item[1])
        assert [name for name, _ in result] == ["a", "c", "b"]

    def test_missing_keys_last(self):
        """None and NaN keys should go last in both directions."""
        items = [("a", None), ("b", 1), ("c", float("nan")), ("d", 2)]
        assert [n for n, _ in stable_sort(items, key=lambda i: i[1])] == ["b", "d", "a", "c"]
        assert [n for n, _ in stable_sort(items, key=lambda i: i[1], descending=True)] == ["d", "b", "a", "c"]

    def test_does_not_mutate(self):
        """Input list should be left untouched."""
        items = [3, 1, 2]
        stable_sort(items, key=float)
        assert items == [3, 1, 2]
