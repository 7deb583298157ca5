"""Tests for fee schedules and the two-sided quote calculator."""

from decimal import Decimal

import pytest

from lightswap.errors import InputValidationError
from lightswap.fees.base import Direction, MinerFees, SwapQuote
from lightswap.fees.calculator import QuoteCalculator
from lightswap.fees.engine import effective_limit


class TestSwapQuote:
    """Tests for fee schedule parsing."""

    def test_from_pair_flat_miner_fee(self):
        """Test submarine pair with a flat miner fee."""
        quote = SwapQuote.from_pair(
            Direction.SUBMARINE,
            {
                "hash": "abc",
                "rate": 1,
                "fees": {"percentage": 0.1, "minerFees": 150},
                "limits": {"minimal": 1000, "maximal": 25_000_000, "maximalZeroConf": 0},
            },
        )

        assert quote.fee_percent == Decimal("0.1")
        assert quote.network_fee == 150
        assert quote.min_limit == 1000
        assert quote.max_limit == 25_000_000

    def test_from_pair_split_miner_fees(self):
        """Test reverse pair with lockup and claim fees."""
        quote = SwapQuote.from_pair(
            Direction.REVERSE,
            {
                "fees": {"percentage": 0.25, "minerFees": {"lockup": 462, "claim": 333}},
                "limits": {"minimal": 25_000, "maximal": 25_000_000},
            },
        )

        assert quote.miner_fee == MinerFees(lockup=462, claim=333)
        assert quote.network_fee == 795

    def test_from_pair_missing_values(self):
        """Absent fields default to zero instead of failing."""
        quote = SwapQuote.from_pair(Direction.SUBMARINE, None)

        assert quote.fee_percent == Decimal("0")
        assert quote.network_fee == 0
        assert quote.max_limit == 0

    def test_empty_reverse_has_split_fees(self):
        """Test empty reverse schedule shape."""
        assert SwapQuote.empty(Direction.REVERSE).miner_fee == MinerFees(0, 0)


class TestQuoteCalculator:
    """Tests for QuoteCalculator."""

    @pytest.fixture
    def calculator(self, submarine_quote, reverse_quote) -> QuoteCalculator:
        return QuoteCalculator(submarine_quote, reverse_quote)

    def test_from_send_submarine(self, calculator):
        """Test submarine breakdown from the send side."""
        breakdown = calculator.from_send(100_000)

        assert breakdown.direction == Direction.SUBMARINE
        assert breakdown.receive == 99_353
        assert breakdown.service_fee == 497
        assert breakdown.network_fee == 150
        assert not breakdown.has_error

    def test_from_send_reverse(self, calculator):
        """Test reverse breakdown from the send side."""
        calculator.toggle()
        breakdown = calculator.from_send(50_000)

        assert breakdown.direction == Direction.REVERSE
        assert breakdown.service_fee == 125
        assert breakdown.receive == 49_575
        assert breakdown.network_fee == 300

    def test_from_receive_submarine(self, calculator):
        """Test submarine breakdown from the receive side."""
        breakdown = calculator.from_receive(99_353)

        assert breakdown.send == 100_000
        # ceil(99353 * 0.5%)
        assert breakdown.service_fee == 497

    def test_from_receive_reverse(self, calculator):
        """Test reverse breakdown from the receive side."""
        calculator.toggle()
        breakdown = calculator.from_receive(49_575)

        assert breakdown.send == 50_000
        assert breakdown.service_fee == 125

    def test_from_receive_zero(self, calculator):
        """An empty receive box means nothing to send."""
        breakdown = calculator.from_receive("")

        assert breakdown.send == 0
        assert breakdown.service_fee == 0

    def test_toggle_recomputes_from_new_schedule(self, calculator):
        """Toggling never keeps values derived from the old direction."""
        before = calculator.from_send(100_000)
        assert calculator.toggle() == Direction.REVERSE
        after = calculator.from_send(100_000)

        assert after.receive != before.receive
        assert after.network_fee == 300
        assert calculator.toggle() == Direction.SUBMARINE

    def test_double_toggle_restores_limits(self, calculator, submarine_quote):
        """Toggling there and back yields the original send-side limits."""
        min_send, max_send = calculator.min_send, calculator.max_send

        calculator.toggle()
        assert (calculator.min_send, calculator.max_send) != (min_send, max_send)
        calculator.toggle()

        assert calculator.direction == Direction.SUBMARINE
        assert (calculator.min_send, calculator.max_send) == (min_send, max_send)
        quote = calculator.quote
        assert effective_limit(quote.min_limit, quote.fee_percent, quote.network_fee, calculator.direction) == min_send
        assert min_send == effective_limit(
            submarine_quote.min_limit, submarine_quote.fee_percent, submarine_quote.network_fee, Direction.SUBMARINE
        )

    def test_limits_submarine(self, calculator):
        """Test submarine limits converted to send-side amounts."""
        assert calculator.min_send == 10_200
        # 1000000 + ceil(5000) + 150
        assert calculator.max_send == 1_005_150

    def test_limits_reverse(self, calculator):
        """Test reverse limits used as-is."""
        calculator.toggle()

        assert calculator.min_send == 50_000
        assert calculator.max_send == 5_000_000

    def test_out_of_range_flagged(self, calculator):
        """Test out-of-range flags on breakdowns."""
        assert calculator.from_send(5_000).send_out_of_range
        assert calculator.from_send(2_000_000).has_error
        assert not calculator.from_send(0).send_out_of_range

    def test_update_quote(self, calculator):
        """Test replacing a schedule after a refresh."""
        calculator.update_quote(
            SwapQuote(
                direction=Direction.SUBMARINE,
                fee_percent=Decimal("0"),
                miner_fee=0,
                min_limit=1,
                max_limit=10_000,
            )
        )

        assert calculator.from_send(5_000).receive == 5_000
        assert calculator.max_send == 10_000

    def test_validate_send_accepts_formatted_amount(self, calculator):
        """Test comma-formatted input."""
        assert calculator.validate_send("100,000") == 100_000

    @pytest.mark.parametrize("value", ["0", "", "5000", "2000000", "-1", "abc"])
    def test_validate_send_rejects(self, calculator, value):
        """Test amounts that cannot start a swap."""
        with pytest.raises(InputValidationError):
            calculator.validate_send(value)

    def test_unloaded_calculator_is_zero(self):
        """Before any schedule is loaded every amount maps to itself."""
        calculator = QuoteCalculator()

        breakdown = calculator.from_send(1_000)
        assert breakdown.receive == 1_000
        assert breakdown.service_fee == 0
