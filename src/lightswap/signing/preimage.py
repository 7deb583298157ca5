"""Preimage validation against a Lightning invoice.

The preimage revealed by the service is the only proof that it paid the
user's invoice. It is checked against the invoice's own payment hash before
any key material is touched.
"""

import hashlib
import hmac
import logging
from typing import Union

from bolt11 import decode as decode_bolt11

from lightswap.errors import CryptoValidationError

logger = logging.getLogger(__name__)


def _strip_scheme(invoice: str) -> str:
    invoice = invoice.strip()
    if invoice.lower().startswith("lightning:"):
        invoice = invoice[len("lightning:"):]
    return invoice


def payment_hash_from_invoice(invoice: str) -> bytes:
    """Decode a BOLT11 invoice and return its 32-byte payment hash."""
    try:
        decoded = decode_bolt11(_strip_scheme(invoice))
    except Exception as e:
        raise CryptoValidationError(f"Invoice could not be decoded: {e}") from e

    payment_hash = getattr(decoded, "payment_hash", None)
    if not payment_hash:
        raise CryptoValidationError("Invoice has no payment hash")
    try:
        digest = bytes.fromhex(payment_hash) if isinstance(payment_hash, str) else bytes(payment_hash)
    except ValueError as e:
        raise CryptoValidationError(f"Invoice payment hash is not hex: {e}") from e
    if len(digest) != 32:
        raise CryptoValidationError(f"Invoice payment hash has {len(digest)} bytes, expected 32")
    return digest


def preimage_matches(payment_hash: bytes, preimage: Union[bytes, str]) -> bool:
    """sha256(preimage) == payment_hash, compared in constant time."""
    if isinstance(preimage, str):
        try:
            preimage = bytes.fromhex(preimage)
        except ValueError:
            return False
    return hmac.compare_digest(hashlib.sha256(preimage).digest(), payment_hash)


def validate_preimage(invoice: str, preimage: Union[bytes, str]) -> bool:
    """Return True iff the preimage hashes to the invoice's payment hash."""
    try:
        payment_hash = payment_hash_from_invoice(invoice)
    except CryptoValidationError as e:
        logger.error(f"Preimage check failed: {e}")
        return False

    if not preimage_matches(payment_hash, preimage):
        logger.error(f"Preimage does not match payment hash {payment_hash.hex()}")
        return False
    return True
