"""Dry-run swap service for simulated swaps.

Plays the service side of a submarine swap in memory: quotes fixed fees,
builds a real swap tree around its own claim key, reveals the preimage it
was told about, and completes the MuSig2 claim signature so a session can
be driven end to end without network access.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from lightswap.channel.memory import QueueEventChannel
from lightswap.client.base import CreatedSwap, SwapServiceClient
from lightswap.errors import ServiceError
from lightswap.fees.base import Direction, MinerFees, SwapQuote
from lightswap.signing.base import ClaimPayload, ClaimTransactionDetails
from lightswap.signing.keys import SwapKeyMaterial
from lightswap.signing.musig import (
    SecretNonce,
    SessionContext,
    apply_tweak,
    key_agg,
    nonce_agg,
    nonce_gen,
    partial_sig_agg,
    partial_sig_verify,
    schnorr_verify,
    sign,
)
from lightswap.signing.preimage import payment_hash_from_invoice
from lightswap.signing.taproot import SwapTree, build_submarine_tree

logger = logging.getLogger(__name__)

SIMULATED_BLOCK_HEIGHT = 850_000
SWAP_TIMEOUT_BLOCKS = 1008


@dataclass
class DryRunSwap:
    """Service-side state of one simulated swap."""

    id: str
    invoice: str
    payment_hash: bytes
    refund_public_key: bytes
    claim_keys: SwapKeyMaterial
    swap_tree: SwapTree
    timeout_block_height: int
    expected_amount: int
    preimage: Optional[bytes] = None
    transaction_hash: Optional[bytes] = None
    pub_nonce: Optional[bytes] = None
    sec_nonce: Optional[SecretNonce] = None
    signature: Optional[bytes] = None
    statuses: list[str] = field(default_factory=list)


class DryRunSwapClient(SwapServiceClient):
    """In-memory swap service."""

    def __init__(
        self,
        submarine_quote: Optional[SwapQuote] = None,
        reverse_quote: Optional[SwapQuote] = None,
        auto_claimed: bool = True,
    ):
        """Initialize dry-run service.

        Args:
            submarine_quote: Submarine fee schedule (defaults to 0.1% + 150 sats)
            reverse_quote: Reverse fee schedule (defaults to 0.5% + 308/222 sats)
            auto_claimed: Emit transaction.claimed once a valid partial signature arrives
        """
        self.quotes = {
            Direction.SUBMARINE: submarine_quote or SwapQuote(
                direction=Direction.SUBMARINE,
                fee_percent=Decimal("0.1"),
                miner_fee=150,
                min_limit=25_000,
                max_limit=25_000_000,
            ),
            Direction.REVERSE: reverse_quote or SwapQuote(
                direction=Direction.REVERSE,
                fee_percent=Decimal("0.5"),
                miner_fee=MinerFees(lockup=308, claim=222),
                min_limit=25_000,
                max_limit=25_000_000,
            ),
        }
        self.auto_claimed = auto_claimed
        self.swaps: dict[str, DryRunSwap] = {}
        self.channels: list[QueueEventChannel] = []
        self.submitted_claims: list[tuple[str, ClaimPayload]] = []
        self._preimages: dict[bytes, bytes] = {}
        self.reject_next: Optional[str] = None

    @property
    def name(self) -> str:
        return "dry_run"

    def register_preimage(self, preimage: bytes) -> bytes:
        """Make the simulated service able to 'pay' invoices for this preimage."""
        payment_hash = hashlib.sha256(preimage).digest()
        self._preimages[payment_hash] = preimage
        return payment_hash

    def channel_factory(self) -> QueueEventChannel:
        """Create an event channel fed by this service."""
        channel = QueueEventChannel()
        self.channels.append(channel)
        return channel

    def emit(self, swap_id: str, status: str, **extra) -> None:
        """Push a status update to every channel subscribed to the swap."""
        swap = self.swaps.get(swap_id)
        if swap is not None:
            swap.statuses.append(status)
        for channel in self.channels:
            if swap_id in channel.subscriptions and not channel.closed:
                channel.push_update(swap_id, status, **extra)
        logger.debug(f"[DRY RUN] {swap_id} -> {status}")

    def simulate_payment(self, swap_id: str, mempool: bool = True) -> None:
        """Emit the events of a user lockup followed by a paid invoice."""
        self.emit(swap_id, "invoice.set")
        if mempool:
            self.emit(swap_id, "transaction.mempool")
        self.emit(swap_id, "transaction.claim.pending")

    async def get_fee_schedule(self, direction: Direction) -> SwapQuote:
        return self.quotes[direction]

    async def create_swap(self, invoice: str, refund_public_key: str) -> CreatedSwap:
        if self.reject_next:
            message, self.reject_next = self.reject_next, None
            raise ServiceError(message, status_code=400)

        payment_hash = payment_hash_from_invoice(invoice)
        claim_keys = SwapKeyMaterial.generate()
        refund_key = bytes.fromhex(refund_public_key)
        timeout = SIMULATED_BLOCK_HEIGHT + SWAP_TIMEOUT_BLOCKS
        tree = build_submarine_tree(payment_hash, claim_keys.public_key, refund_key, timeout)

        swap_id = secrets.token_hex(6)
        expected_amount = 100_000
        address = f"bcrt1p{secrets.token_hex(29)}"
        self.swaps[swap_id] = DryRunSwap(
            id=swap_id,
            invoice=invoice,
            payment_hash=payment_hash,
            refund_public_key=refund_key,
            claim_keys=claim_keys,
            swap_tree=tree,
            timeout_block_height=timeout,
            expected_amount=expected_amount,
            preimage=self._preimages.get(payment_hash),
        )
        logger.info(f"[DRY RUN] Created submarine swap {swap_id}")
        return CreatedSwap(
            id=swap_id,
            swap_tree=tree.to_dict(),
            claim_public_key=claim_keys.public_key_hex,
            bip21=f"bitcoin:{address}?amount={Decimal(expected_amount) / Decimal(10**8)}",
            address=address,
            expected_amount=expected_amount,
            timeout_block_height=timeout,
            accept_zero_conf=False,
        )

    def _get(self, swap_id: str) -> DryRunSwap:
        swap = self.swaps.get(swap_id)
        if swap is None:
            raise ServiceError(f"could not find swap with id: {swap_id}", status_code=404)
        return swap

    def _session_ctx(self, swap: DryRunSwap, user_nonce: bytes) -> SessionContext:
        pubkeys = (swap.claim_keys.public_key, swap.refund_public_key)
        tweak = swap.swap_tree.tweak(key_agg(pubkeys).xonly)
        return SessionContext(
            aggnonce=nonce_agg([swap.pub_nonce, user_nonce]),
            pubkeys=pubkeys,
            tweaks=(tweak,),
            is_xonly=(True,),
            msg=swap.transaction_hash,
        )

    def output_key(self, swap_id: str) -> bytes:
        """x-only key of the simulated lockup output."""
        swap = self._get(swap_id)
        internal = key_agg((swap.claim_keys.public_key, swap.refund_public_key))
        return apply_tweak(internal, swap.swap_tree.tweak(internal.xonly), is_xonly=True).xonly

    async def get_claim_details(self, swap_id: str) -> ClaimTransactionDetails:
        swap = self._get(swap_id)
        if swap.preimage is None:
            raise ServiceError("invoice was not paid", status_code=400)

        if swap.transaction_hash is None:
            swap.transaction_hash = hashlib.sha256(secrets.token_bytes(32)).digest()
            swap.sec_nonce, swap.pub_nonce = nonce_gen(
                swap.claim_keys.secret,
                swap.claim_keys.public_key,
                msg=swap.transaction_hash,
            )
        return ClaimTransactionDetails(
            preimage=swap.preimage,
            pub_nonce=swap.pub_nonce,
            transaction_hash=swap.transaction_hash,
            public_key=swap.claim_keys.public_key,
        )

    async def submit_claim(self, swap_id: str, payload: ClaimPayload) -> dict:
        swap = self._get(swap_id)
        if swap.sec_nonce is None or swap.sec_nonce.used:
            raise ServiceError("no claim in progress", status_code=400)

        session_ctx = self._session_ctx(swap, payload.pub_nonce)
        if not partial_sig_verify(
            payload.partial_signature, payload.pub_nonce, swap.refund_public_key, session_ctx
        ):
            raise ServiceError("invalid partial signature", status_code=400)

        own = sign(swap.sec_nonce, swap.claim_keys.secret, session_ctx)
        signature = partial_sig_agg([own, payload.partial_signature], session_ctx)
        if not schnorr_verify(swap.transaction_hash, self.output_key(swap_id), signature):
            raise ServiceError("aggregated signature is invalid", status_code=400)

        swap.signature = signature
        self.submitted_claims.append((swap_id, payload))
        logger.info(f"[DRY RUN] Claim signature for {swap_id} aggregated")
        if self.auto_claimed:
            self.emit(swap_id, "transaction.claimed")
        return {}

    async def get_swap_status(self, swap_id: str) -> Optional[str]:
        swap = self._get(swap_id)
        return swap.statuses[-1] if swap.statuses else "swap.created"
