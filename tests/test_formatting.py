"""Tests for amount display helpers."""

from decimal import Decimal

from lightswap.utils.formatting import format_sats, number_with_commas


class TestNumberWithCommas:
    """Tests for number_with_commas."""

    def test_groups_thousands(self):
        """Test thousands grouping."""
        assert number_with_commas(1_234_567) == "1,234,567"

    def test_short_numbers_unchanged(self):
        """Test numbers below a thousand."""
        assert number_with_commas(999) == "999"
        assert number_with_commas(0) == "0"

    def test_negative(self):
        """Test negative numbers."""
        assert number_with_commas(-1234) == "-1,234"

    def test_fraction_kept(self):
        """Test fractions are not grouped."""
        assert number_with_commas(Decimal("1234.5")) == "1,234.5"

    def test_empty(self):
        """Test empty input."""
        assert number_with_commas(None) == "0"
        assert number_with_commas("") == "0"


def test_format_sats():
    """Test sat formatting with unit."""
    assert format_sats(100_000) == "100,000 sats"
