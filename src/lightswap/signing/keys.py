"""Ephemeral per-swap key material.

A fresh secp256k1 keypair is generated for every swap attempt. The secret
never appears in repr(), logs or serialized output and is zeroed by wipe()
once the owning session ends.
"""

import logging
from typing import Optional

from ecdsa import SECP256k1, SigningKey

from lightswap.errors import CryptoValidationError
from lightswap.signing.curve import N, cbytes, int_from_bytes, point_mul_g

logger = logging.getLogger(__name__)


class SwapKeyMaterial:
    """Secret key and compressed public key for one swap."""

    __slots__ = ("_secret", "public_key")

    def __init__(self, secret: bytes):
        if len(secret) != 32 or not 0 < int_from_bytes(secret) < N:
            raise CryptoValidationError("Secret key must be a 32-byte scalar below the group order")
        self._secret: Optional[bytearray] = bytearray(secret)
        self.public_key: bytes = cbytes(point_mul_g(int_from_bytes(secret)))

    @classmethod
    def generate(cls) -> "SwapKeyMaterial":
        """Create a keypair from the operating system CSPRNG."""
        sk = SigningKey.generate(curve=SECP256k1)
        return cls(sk.to_string())

    @property
    def secret(self) -> bytes:
        if self._secret is None:
            raise CryptoValidationError("Key material was wiped")
        return bytes(self._secret)

    @property
    def x_only(self) -> bytes:
        return self.public_key[1:]

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    @property
    def wiped(self) -> bool:
        return self._secret is None

    def wipe(self) -> None:
        """Zero and drop the secret key."""
        if self._secret is None:
            return
        for i in range(len(self._secret)):
            self._secret[i] = 0
        self._secret = None
        logger.debug(f"Key material for {self.public_key_hex[:16]}... wiped")

    def __repr__(self) -> str:
        return f"SwapKeyMaterial(public_key={self.public_key_hex}, wiped={self.wiped})"

    def __getstate__(self):
        raise TypeError("SwapKeyMaterial cannot be serialized")
