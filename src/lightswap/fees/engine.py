"""Bidirectional swap amount calculator.

All amounts are satoshis. Arithmetic runs on Decimal in a 50-digit context
and every operation states its rounding mode explicitly: fees round up,
payable amounts round down.

Submarine (send on-chain, receive Lightning):
    receive = floor(max((send - miner) / (1 + pct/100), 0))
    send    = floor(receive + ceil(receive * pct/100) + miner)

Reverse (send Lightning, receive on-chain):
    receive = floor(max(send - ceil(send * pct/100) - miner, 0))
    send    = ceil((receive + miner) / (1 - pct/100))

send_from_receive(receive_from_send(x)) is not guaranteed to equal x; the
difference comes from fee rounding and is at most one satoshi per fee
computation.
"""

import logging
from decimal import ROUND_CEILING, ROUND_DOWN, ROUND_FLOOR, Decimal, InvalidOperation, localcontext
from typing import Union

from lightswap.errors import InputValidationError
from lightswap.fees.base import Direction

logger = logging.getLogger(__name__)

AmountLike = Union[int, str, Decimal, float, None]

PRECISION = 50
HUNDRED = Decimal(100)
ONE = Decimal(1)
ZERO = Decimal(0)


def parse_amount(value: AmountLike, strict: bool = False) -> Decimal:
    """Normalize user input into a non-negative whole number of satoshis.

    Empty, non-numeric, NaN and infinite input becomes zero. Negative input
    raises InputValidationError when ``strict`` is set and is clamped to zero
    otherwise. Fractions are truncated toward zero.
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return ZERO

    try:
        amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        if strict:
            raise InputValidationError(f"Not a number: {value!r}")
        return ZERO

    if not amount.is_finite():
        if strict:
            raise InputValidationError(f"Not a finite amount: {value!r}")
        return ZERO

    if amount < 0:
        if strict:
            raise InputValidationError(f"Amount must not be negative: {value}")
        return ZERO

    return amount.to_integral_value(rounding=ROUND_DOWN)


def parse_percent(value: AmountLike) -> Decimal:
    """Parse a fee percentage, keeping its fractional part."""
    if value is None or isinstance(value, bool) or value == "":
        return ZERO
    try:
        pct = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        return ZERO
    if not pct.is_finite() or pct < 0:
        return ZERO
    return pct


def _ceil(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_CEILING)


def _floor(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR)


def receive_from_send(
    send: AmountLike,
    fee_percent: AmountLike,
    miner_fee: AmountLike,
    direction: Direction,
) -> int:
    """Amount the counterparty side delivers for a given send amount."""
    amount = parse_amount(send)
    pct = parse_percent(fee_percent)
    miner = parse_amount(miner_fee)

    with localcontext() as ctx:
        ctx.prec = PRECISION
        if direction is Direction.REVERSE:
            receive = amount - _ceil(amount * pct / HUNDRED) - miner
        else:
            receive = (amount - miner) / (ONE + pct / HUNDRED)
        return int(_floor(max(receive, ZERO)))


def send_from_receive(
    receive: AmountLike,
    fee_percent: AmountLike,
    miner_fee: AmountLike,
    direction: Direction,
) -> int:
    """Amount the user has to send so the other side delivers ``receive``."""
    amount = parse_amount(receive)
    pct = parse_percent(fee_percent)
    miner = parse_amount(miner_fee)

    with localcontext() as ctx:
        ctx.prec = PRECISION
        if direction is Direction.REVERSE:
            if pct >= HUNDRED:
                raise InputValidationError(f"Fee percentage {pct} leaves nothing to receive")
            send = _ceil((amount + miner) / (ONE - pct / HUNDRED))
        else:
            send = _floor(amount + _ceil(amount * pct / HUNDRED) + miner)
        return int(send)


def service_fee(
    send: AmountLike,
    fee_percent: AmountLike,
    miner_fee: AmountLike,
    direction: Direction,
) -> int:
    """Service fee charged on a given send amount, rounded up."""
    amount = parse_amount(send)
    pct = parse_percent(fee_percent)
    miner = parse_amount(miner_fee)

    with localcontext() as ctx:
        ctx.prec = PRECISION
        if direction is Direction.REVERSE:
            return int(_ceil(amount * pct / HUNDRED))

        if amount < miner:
            return 0
        receive = Decimal(receive_from_send(amount, pct, miner, direction))
        return int(_ceil(amount - receive - miner))


def effective_limit(
    limit: AmountLike,
    fee_percent: AmountLike,
    miner_fee: AmountLike,
    direction: Direction,
) -> int:
    """Express a protocol limit as a send-side amount.

    Submarine limits are quoted on the Lightning (receive) side and are
    converted; reverse limits are already send-side.
    """
    if direction is Direction.SUBMARINE:
        return send_from_receive(limit, fee_percent, miner_fee, direction)
    return int(parse_amount(limit))
