"""Inputs and outputs of the cooperative claim signature.

Signing flow:
1. Service reveals the preimage, its public nonce and the claim sighash
2. Preimage is checked against the invoice payment hash
3. Swap tree is checked against the swap we asked for
4. A fresh nonce is generated and a partial signature produced
5. Public nonce and partial signature go back to the service, which
   aggregates, finalizes and broadcasts the claim transaction
"""

import logging
from dataclasses import dataclass
from typing import Optional

from lightswap.errors import CryptoValidationError

logger = logging.getLogger(__name__)


def _hex_bytes(name: str, value: str, length: Optional[int] = None) -> bytes:
    try:
        data = bytes.fromhex(value)
    except (TypeError, ValueError) as e:
        raise CryptoValidationError(f"{name} is not valid hex: {e}") from e
    if length is not None and len(data) != length:
        raise CryptoValidationError(f"{name} must be {length} bytes, got {len(data)}")
    return data


@dataclass(frozen=True)
class ClaimTransactionDetails:
    """Claim data revealed by the service once it paid the invoice.

    Attributes:
        preimage: Invoice preimage
        pub_nonce: Service's MuSig2 public nonce (66 bytes)
        transaction_hash: Sighash of the service's claim transaction (32 bytes)
        public_key: Service key echoed by the claim endpoint, if any
    """
    preimage: bytes
    pub_nonce: bytes
    transaction_hash: bytes
    public_key: Optional[bytes] = None

    @classmethod
    def from_hex(
        cls,
        preimage: str,
        pub_nonce: str,
        transaction_hash: str,
        public_key: Optional[str] = None,
    ) -> "ClaimTransactionDetails":
        return cls(
            preimage=_hex_bytes("preimage", preimage),
            pub_nonce=_hex_bytes("pubNonce", pub_nonce, 66),
            transaction_hash=_hex_bytes("transactionHash", transaction_hash, 32),
            public_key=_hex_bytes("publicKey", public_key, 33) if public_key else None,
        )

    def __repr__(self) -> str:
        return (
            f"ClaimTransactionDetails(transaction_hash={self.transaction_hash.hex()}, "
            f"pub_nonce={self.pub_nonce.hex()[:16]}...)"
        )


@dataclass(frozen=True)
class ClaimPayload:
    """This side's contribution to the cooperative claim signature."""
    pub_nonce: bytes
    partial_signature: bytes

    def to_dict(self) -> dict:
        """Wire format for the claim submission."""
        return {
            "pubNonce": self.pub_nonce.hex(),
            "partialSignature": self.partial_signature.hex(),
        }
