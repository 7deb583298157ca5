"""Fee schedule types shared by the amount engine and the service client."""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    """Which side of the trade is on-chain.

    SUBMARINE: user locks on-chain BTC, the service pays a Lightning invoice.
    REVERSE: user pays a Lightning invoice, the service locks on-chain BTC.
    """
    SUBMARINE = "submarine"
    REVERSE = "reverse"

    @property
    def opposite(self) -> "Direction":
        return Direction.REVERSE if self is Direction.SUBMARINE else Direction.SUBMARINE


@dataclass(frozen=True)
class MinerFees:
    """Miner fee split into lockup and claim legs (reverse swaps)."""

    lockup: int
    claim: int

    @property
    def total(self) -> int:
        return self.lockup + self.claim


@dataclass(frozen=True)
class SwapQuote:
    """Fee schedule and limits for one swap direction.

    Attributes:
        direction: Direction this schedule applies to
        fee_percent: Service fee in percent (0.5 means 0.5%)
        miner_fee: Flat miner fee, or lockup/claim legs for reverse swaps
        min_limit: Protocol minimum in satoshis
        max_limit: Protocol maximum in satoshis
    """

    direction: Direction
    fee_percent: Decimal
    miner_fee: Union[int, MinerFees]
    min_limit: int
    max_limit: int

    @property
    def network_fee(self) -> int:
        """Total miner fee charged on a swap, in satoshis."""
        if isinstance(self.miner_fee, MinerFees):
            return self.miner_fee.total
        return self.miner_fee

    @classmethod
    def empty(cls, direction: Direction) -> "SwapQuote":
        """Zero schedule used before the service has answered."""
        return cls(
            direction=direction,
            fee_percent=Decimal("0"),
            miner_fee=MinerFees(0, 0) if direction is Direction.REVERSE else 0,
            min_limit=0,
            max_limit=0,
        )

    @classmethod
    def from_pair(cls, direction: Direction, payload: Optional[dict]) -> "SwapQuote":
        """Parse a per-pair fee schedule.

        Expected shape:
            {"fees": {"percentage": 0.1, "minerFees": 150 | {"lockup": .., "claim": ..}},
             "limits": {"minimal": 1000, "maximal": 25000000}}

        Missing values default to zero.
        """
        payload = payload or {}
        fees = payload.get("fees") or {}
        limits = payload.get("limits") or {}

        raw_miner = fees.get("minerFees") or 0
        if isinstance(raw_miner, dict):
            miner_fee: Union[int, MinerFees] = MinerFees(
                lockup=_to_int(raw_miner.get("lockup")),
                claim=_to_int(raw_miner.get("claim")),
            )
        else:
            miner_fee = _to_int(raw_miner)

        return cls(
            direction=direction,
            fee_percent=_to_decimal(fees.get("percentage")),
            miner_fee=miner_fee,
            min_limit=_to_int(limits.get("minimal")),
            max_limit=_to_int(limits.get("maximal")),
        )


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        # str() keeps JSON floats like 0.1 exact instead of their binary expansion
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning(f"Unparseable fee value {value!r}, using 0")
        return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result


def _to_int(value: Any) -> int:
    return int(_to_decimal(value))
