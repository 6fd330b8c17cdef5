"""Unit tests for the regional pricing adjuster."""

import pytest

from models.location import LocationInfo
from services.regional_pricing import (
    apply_regional_pricing,
    extract_state,
    get_regional_adjustment_display,
    get_regional_multiplier,
    parse_location,
)


class TestParseLocation:
    """Tests for parse_location."""

    def test_street_city_state_zip(self):
        location = parse_location("456 Oak Street, Dallas, TX 75201")
        assert location.city == "Dallas"
        assert location.state == "TX"
        assert location.raw == "456 Oak Street, Dallas, TX 75201"

    def test_full_state_name(self):
        location = parse_location("Austin, Texas")
        assert location.city == "Austin"
        assert location.state == "TX"

    def test_trailing_country(self):
        location = parse_location("123 Main St, Austin, TX 78701, USA")
        assert location.city == "Austin"
        assert location.state == "TX"

    def test_mixed_case_code(self):
        location = parse_location("denver, co 80202")
        assert location.city == "denver"
        assert location.state == "CO"

    def test_single_segment_not_parsed(self):
        location = parse_location("Dallas TX")
        assert location.state is None
        assert location.is_parsed is False

    def test_empty_address(self):
        assert parse_location(None) == LocationInfo(raw="")
        assert parse_location("") == LocationInfo(raw="")

    def test_no_state_found(self):
        location = parse_location("221 Baker Street, London")
        assert location.city is None
        assert location.state is None

    def test_state_only(self):
        location = parse_location("Texas, USA")
        assert location.state == "TX"
        assert location.city is None

    def test_street_suffix_is_not_a_state(self):
        location = parse_location("12 Elm Ct, Springfield")
        assert location.state is None
        assert get_regional_multiplier(location).multiplier == 1.0

    def test_street_suffix_before_real_state(self):
        location = parse_location("12 Elm Ct, Hartford, CT 06103")
        assert location.city == "Hartford"
        assert location.state == "CT"


class TestExtractState:
    """Tests for extract_state."""

    def test_longest_name_wins(self):
        assert extract_state("West Virginia") == "WV"

    def test_unknown_two_letter_token_ignored(self):
        """Two-letter words that are not state codes are not states."""
        assert extract_state("Apt ZZ") is None

    def test_code_with_zip(self):
        assert extract_state("ny 10001") == "NY"

    def test_street_line_ignored(self):
        assert extract_state("12 Elm Ct") is None
        assert extract_state("900 Virginia Ave") is None


class TestGetRegionalMultiplier:
    """Tests for get_regional_multiplier."""

    def test_city_premium(self):
        result = get_regional_multiplier(LocationInfo(city="San Francisco", state="CA"))
        assert result.multiplier == 1.25
        assert result.label == "San Francisco premium"
        assert result.adjustment_percent == 25
        assert result.applies_to == "labor only"
        assert result.source == "city"

    def test_city_match_is_case_insensitive(self):
        result = get_regional_multiplier(LocationInfo(city="seattle", state="WA"))
        assert result.multiplier == 1.20

    def test_baseline_city(self):
        result = get_regional_multiplier(LocationInfo(city="Dallas", state="TX"))
        assert result.multiplier == 1.0
        assert result.label == "Standard rate"
        assert result.adjustment_percent == 0

    def test_baseline_city_below_one(self):
        result = get_regional_multiplier(LocationInfo(city="San Antonio", state="TX"))
        assert result.multiplier == 0.95
        assert result.adjustment_percent == -5

    def test_state_default_premium(self):
        result = get_regional_multiplier(LocationInfo(city="Fresno", state="CA"))
        assert result.multiplier == 1.10
        assert result.label == "CA premium"
        assert result.source == "state"

    def test_state_default_discount(self):
        result = get_regional_multiplier(LocationInfo(city="Lubbock", state="TX"))
        assert result.multiplier == 0.95
        assert result.label == "TX rate"

    def test_unlisted_state_is_rural(self):
        result = get_regional_multiplier(LocationInfo(city="Springfield", state="IL"))
        assert result.multiplier == 0.85
        assert result.label == "Rural area discount"
        assert result.adjustment_percent == -15
        assert result.source == "rural"

    def test_no_location_is_standard(self):
        result = get_regional_multiplier(LocationInfo(raw=""))
        assert result.multiplier == 1.0
        assert result.label == "Standard rate"
        assert result.source == "default"

    def test_city_in_wrong_state_falls_through(self):
        """Portland, ME is not Portland, OR."""
        result = get_regional_multiplier(LocationInfo(city="Portland", state="ME"))
        assert result.source == "rural"


class TestApplyRegionalPricing:
    """Tests for apply_regional_pricing and the display helper."""

    def test_labor_adjusted_in_cents(self):
        adjusted, regional = apply_regional_pricing(10500, parse_location("Boston, MA"))
        assert adjusted == 12600
        assert regional.label == "Boston premium"

    def test_half_cent_rounds_up(self):
        adjusted, _ = apply_regional_pricing(10001, LocationInfo(city="Oakland", state="CA"))
        # 10001 * 1.2 = 12001.2
        assert adjusted == 12001
        adjusted, _ = apply_regional_pricing(10, LocationInfo(city="Manhattan", state="NY"))
        assert adjusted == 13

    @pytest.mark.parametrize("address,expected", [
        ("San Francisco, CA", "+25% San Francisco premium"),
        ("Springfield, IL", "-15% Rural area discount"),
        ("Dallas, TX", ""),
    ])
    def test_display(self, address, expected):
        assert get_regional_adjustment_display(parse_location(address)) == expected
