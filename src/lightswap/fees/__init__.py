"""Fee schedules and satoshi-exact amount calculation."""

from lightswap.fees.base import Direction, MinerFees, SwapQuote
from lightswap.fees.calculator import AmountBreakdown, QuoteCalculator
from lightswap.fees.engine import (
    effective_limit,
    parse_amount,
    receive_from_send,
    send_from_receive,
    service_fee,
)

__all__ = [
    # Types
    "Direction",
    "MinerFees",
    "SwapQuote",
    "AmountBreakdown",
    "QuoteCalculator",
    # Engine
    "parse_amount",
    "receive_from_send",
    "send_from_receive",
    "service_fee",
    "effective_limit",
]
