"""Cooperative claim signer.

Produces the user's half of a MuSig2 signature that lets the service claim
the user's on-chain lockup after it proved payment of the invoice. Key
order is [service claim key, user refund key]; the aggregate key is tweaked
with the swap tree's Merkle root so the signature is bound to that tree.

All inputs are validated before a nonce exists. Nothing is returned unless
a complete partial signature was produced and verified.
"""

import logging
from typing import Optional, Union

from lightswap.errors import CryptoValidationError
from lightswap.signing.base import ClaimPayload, ClaimTransactionDetails
from lightswap.signing.curve import cpoint
from lightswap.signing.keys import SwapKeyMaterial
from lightswap.signing.musig import (
    SessionContext,
    apply_tweak,
    key_agg,
    nonce_agg,
    nonce_gen,
    parse_pubnonce,
    sign,
)
from lightswap.signing.taproot import SwapTree

logger = logging.getLogger(__name__)


class ClaimSigner:
    """Signs cooperative claims with one swap's key material."""

    def __init__(self, keys: SwapKeyMaterial):
        self.keys = keys

    def sign(
        self,
        details: ClaimTransactionDetails,
        swap_tree: Union[SwapTree, dict, str],
        claim_public_key: bytes,
        payment_hash: Optional[bytes] = None,
        timeout_block_height: Optional[int] = None,
    ) -> ClaimPayload:
        """Create the public nonce and partial signature for a claim.

        Args:
            details: Service nonce and claim sighash
            swap_tree: Serialized or parsed swap tree of the lockup output
            claim_public_key: Service's 33-byte claim key for this swap
            payment_hash: Invoice payment hash; when given the tree must match it exactly
            timeout_block_height: Refund timeout from swap creation, if known

        Returns:
            ClaimPayload for submission to the service

        Raises:
            CryptoValidationError: On any malformed or mismatching input
        """
        if self.keys.wiped:
            raise CryptoValidationError("Swap key material is no longer available")

        # Everything below up to nonce_gen only validates and derives public data
        try:
            cpoint(claim_public_key)
        except ValueError as e:
            raise CryptoValidationError(f"Invalid service claim key: {e}") from e

        tree = swap_tree if isinstance(swap_tree, SwapTree) else SwapTree.from_json(swap_tree)
        if payment_hash is not None:
            tree.check_submarine(
                payment_hash=payment_hash,
                claim_public_key=claim_public_key,
                refund_public_key=self.keys.public_key,
                timeout_block_height=timeout_block_height,
            )

        parse_pubnonce(details.pub_nonce)
        if len(details.transaction_hash) != 32:
            raise CryptoValidationError("Claim transaction hash must be 32 bytes")
        if details.public_key is not None and details.public_key != claim_public_key:
            raise CryptoValidationError("Claim details were issued for a different service key")

        pubkeys = (claim_public_key, self.keys.public_key)
        internal = key_agg(pubkeys)
        tweak = tree.tweak(internal.xonly)

        tweaked = apply_tweak(internal, tweak, is_xonly=True)

        secnonce, pub_nonce = nonce_gen(
            self.keys.secret,
            self.keys.public_key,
            aggpk=tweaked.xonly,
            msg=details.transaction_hash,
        )
        try:
            session_ctx = SessionContext(
                aggnonce=nonce_agg([details.pub_nonce, pub_nonce]),
                pubkeys=pubkeys,
                tweaks=(tweak,),
                is_xonly=(True,),
                msg=details.transaction_hash,
            )
            partial_signature = sign(secnonce, self.keys.secret, session_ctx)
        finally:
            if not secnonce.used:
                secnonce.take()

        logger.info(f"Partial claim signature created for sighash {details.transaction_hash.hex()}")
        return ClaimPayload(pub_nonce=pub_nonce, partial_signature=partial_signature)

