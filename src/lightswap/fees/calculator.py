"""Two-sided amount form state.

Keeps the send and receive boxes of a swap form consistent with the
current fee schedule. Nothing derived is cached: every read recomputes
from the quote of the current direction, so toggling direction can never
leave stale values behind.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal, localcontext
from typing import Optional

from lightswap.errors import InputValidationError
from lightswap.fees.base import Direction, SwapQuote
from lightswap.fees.engine import (
    HUNDRED,
    PRECISION,
    AmountLike,
    effective_limit,
    parse_amount,
    receive_from_send,
    send_from_receive,
    service_fee,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AmountBreakdown:
    """Both sides of a swap plus the fees between them."""

    direction: Direction
    send: int
    receive: int
    service_fee: int
    network_fee: int
    fee_percent: Decimal
    min_send: int
    max_send: int

    @property
    def send_out_of_range(self) -> bool:
        """Non-zero send outside the send-side limits."""
        return (self.send != 0 and self.send < self.min_send) or self.send > self.max_send

    @property
    def receive_negative(self) -> bool:
        return self.receive < 0

    @property
    def has_error(self) -> bool:
        return self.send_out_of_range or self.receive_negative


class QuoteCalculator:
    """Mirrors amounts between the send and receive side of a swap."""

    def __init__(
        self,
        submarine_quote: Optional[SwapQuote] = None,
        reverse_quote: Optional[SwapQuote] = None,
        direction: Direction = Direction.SUBMARINE,
    ):
        self._quotes = {
            Direction.SUBMARINE: submarine_quote or SwapQuote.empty(Direction.SUBMARINE),
            Direction.REVERSE: reverse_quote or SwapQuote.empty(Direction.REVERSE),
        }
        self.direction = direction

    @property
    def quote(self) -> SwapQuote:
        return self._quotes[self.direction]

    def update_quote(self, quote: SwapQuote) -> None:
        """Replace the schedule for the quote's direction."""
        self._quotes[quote.direction] = quote

    def toggle(self) -> Direction:
        """Flip the swap direction."""
        self.direction = self.direction.opposite
        logger.debug(f"Direction toggled to {self.direction.value}")
        return self.direction

    @property
    def min_send(self) -> int:
        quote = self.quote
        return effective_limit(quote.min_limit, quote.fee_percent, quote.network_fee, self.direction)

    @property
    def max_send(self) -> int:
        quote = self.quote
        return effective_limit(quote.max_limit, quote.fee_percent, quote.network_fee, self.direction)

    def from_send(self, value: AmountLike) -> AmountBreakdown:
        """Fill the form from the send box."""
        quote = self.quote
        send = parse_amount(value)
        return self._breakdown(
            send=int(send),
            receive=receive_from_send(send, quote.fee_percent, quote.network_fee, self.direction),
            fee=service_fee(send, quote.fee_percent, quote.network_fee, self.direction),
        )

    def from_receive(self, value: AmountLike) -> AmountBreakdown:
        """Fill the form from the receive box."""
        quote = self.quote
        receive = parse_amount(value)

        if receive == 0:
            send = 0
        else:
            send = send_from_receive(receive, quote.fee_percent, quote.network_fee, self.direction)

        # The fee base differs per direction: reverse fees are taken from what the
        # user pays, submarine fees from what the invoice receives.
        fee_base = Decimal(send) if self.direction is Direction.REVERSE and send else receive
        with localcontext() as ctx:
            ctx.prec = PRECISION
            fee = int((fee_base * quote.fee_percent / HUNDRED).to_integral_value(rounding=ROUND_CEILING))

        return self._breakdown(send=send, receive=int(receive), fee=fee)

    def validate_send(self, value: AmountLike) -> int:
        """Return the send amount or raise InputValidationError if it is unusable."""
        send = int(parse_amount(value, strict=True))
        if send == 0:
            raise InputValidationError("Amount must be greater than zero")
        if send < self.min_send:
            raise InputValidationError(f"Amount {send} is below the minimum of {self.min_send} sats")
        if send > self.max_send:
            raise InputValidationError(f"Amount {send} is above the maximum of {self.max_send} sats")
        return send

    def _breakdown(self, send: int, receive: int, fee: int) -> AmountBreakdown:
        quote = self.quote
        return AmountBreakdown(
            direction=self.direction,
            send=send,
            receive=receive,
            service_fee=fee,
            network_fee=quote.network_fee,
            fee_percent=quote.fee_percent,
            min_send=self.min_send,
            max_send=self.max_send,
        )
