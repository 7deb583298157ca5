"""Swap lifecycle states and the record owned by a session.

    CREATED -> INVOICE_SET -> MEMPOOL_SEEN -> CLAIM_PENDING -> CLAIMED

Any non-terminal state may drop to FAILED. Status only moves forward or to FAILED, never back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from lightswap.fees.base import Direction
from lightswap.signing.keys import SwapKeyMaterial
from lightswap.signing.taproot import SwapTree


class SwapStatus(str, Enum):
    """Session status."""
    CREATED = "created"
    INVOICE_SET = "invoice_set"
    MEMPOOL_SEEN = "mempool_seen"
    CLAIM_PENDING = "claim_pending"
    CLAIMED = "claimed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SwapStatus.CLAIMED, SwapStatus.FAILED)


# Service event status -> state it moves the session to
EVENT_TRANSITIONS: dict[str, SwapStatus] = {
    "invoice.set": SwapStatus.INVOICE_SET,
    "transaction.mempool": SwapStatus.MEMPOOL_SEEN,
    "transaction.claim.pending": SwapStatus.CLAIM_PENDING,
    "transaction.claimed": SwapStatus.CLAIMED,
}

# Service event statuses that end the swap unsuccessfully
FAILURE_EVENTS: frozenset[str] = frozenset({
    "swap.expired",
    "invoice.failedToPay",
    "transaction.lockupFailed",
})

# Which states each state may advance to on an event. The mempool event can be
# missed (e.g. lockup confirmed before subscription), so INVOICE_SET may go
# straight to CLAIM_PENDING.
ALLOWED_NEXT: dict[SwapStatus, frozenset[SwapStatus]] = {
    SwapStatus.CREATED: frozenset({SwapStatus.INVOICE_SET}),
    SwapStatus.INVOICE_SET: frozenset({SwapStatus.MEMPOOL_SEEN, SwapStatus.CLAIM_PENDING}),
    SwapStatus.MEMPOOL_SEEN: frozenset({SwapStatus.CLAIM_PENDING}),
    SwapStatus.CLAIM_PENDING: frozenset({SwapStatus.CLAIMED}),
    SwapStatus.CLAIMED: frozenset(),
    SwapStatus.FAILED: frozenset(),
}


@dataclass
class SwapRecord:
    """One created swap.

    Attributes:
        id: Service swap id
        direction: Swap direction
        invoice: Invoice the service pays
        payment_hash: Payment hash decoded from the invoice
        keys: Ephemeral key material (refund key of this swap)
        swap_tree: Lockup script tree returned by the service
        claim_public_key: Service's claim key for this swap
        status: Current status, changed only by the session
    """
    id: str
    direction: Direction
    invoice: str
    payment_hash: bytes
    keys: SwapKeyMaterial
    swap_tree: SwapTree
    claim_public_key: bytes
    status: SwapStatus = SwapStatus.CREATED
    bip21: Optional[str] = None
    address: Optional[str] = None
    expected_amount: Optional[int] = None
    timeout_block_height: Optional[int] = None
    history: list[SwapStatus] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Public view of the record; key material is never included."""
        return {
            "id": self.id,
            "direction": self.direction.value,
            "invoice": self.invoice,
            "status": self.status.value,
            "bip21": self.bip21,
            "address": self.address,
            "expected_amount": self.expected_amount,
            "timeout_block_height": self.timeout_block_height,
            "refund_public_key": self.keys.public_key_hex,
        }
