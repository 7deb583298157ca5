"""Cooperative claim signing.

Modules:
- preimage: invoice payment hash check (the gate before any signing)
- taproot: swap script trees and their TapTweak
- musig: BIP-327 MuSig2 over secp256k1
- keys: ephemeral per-swap key material
- claim: ClaimSigner tying the above together
"""

from lightswap.signing.base import ClaimPayload, ClaimTransactionDetails
from lightswap.signing.claim import ClaimSigner
from lightswap.signing.keys import SwapKeyMaterial
from lightswap.signing.preimage import payment_hash_from_invoice, validate_preimage
from lightswap.signing.taproot import SwapTree, build_submarine_tree

__all__ = [
    "ClaimPayload",
    "ClaimTransactionDetails",
    "ClaimSigner",
    "SwapKeyMaterial",
    "SwapTree",
    "build_submarine_tree",
    "payment_hash_from_invoice",
    "validate_preimage",
]
