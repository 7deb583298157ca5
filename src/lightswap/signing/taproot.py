"""Taproot swap script trees.

The service describes the lockup output with a serialized tree of tapscript
leaves:

    {"claimLeaf":  {"version": 192, "output": "<script hex>"},
     "refundLeaf": {"version": 192, "output": "<script hex>"}}

Reverse swaps with covenants add a "covenantClaimLeaf" next to the
claim/refund branch. The Merkle root of the tree is committed into the
aggregate key with a TapTweak, so a signature for the tweaked key only
authorizes spends of this exact tree.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

from Crypto.Hash import RIPEMD160

from lightswap.errors import CryptoValidationError
from lightswap.signing.curve import N, int_from_bytes, tagged_hash

logger = logging.getLogger(__name__)

TAPSCRIPT_LEAF_VERSION = 0xC0

# Script opcodes used by swap leaves
OP_1 = 0x51
OP_16 = 0x60
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC
OP_CHECKSIGVERIFY = 0xAD
OP_CHECKLOCKTIMEVERIFY = 0xB1


def ripemd160(data: bytes) -> bytes:
    return RIPEMD160.new(data).digest()


def compact_size(n: int) -> bytes:
    """Bitcoin CompactSize length prefix."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    elif n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


def script_number(value: int) -> bytes:
    """Minimal little-endian script number encoding."""
    if value == 0:
        return b""
    negative = value < 0
    absolute = abs(value)
    result = bytearray()
    while absolute:
        result.append(absolute & 0xFF)
        absolute >>= 8
    if result[-1] & 0x80:
        result.append(0x80 if negative else 0x00)
    elif negative:
        result[-1] |= 0x80
    return bytes(result)


def push_number(value: int) -> bytes:
    """Push a number the way a minimal script compiler does."""
    if 1 <= value <= 16:
        return bytes([OP_1 + value - 1])
    encoded = script_number(value)
    return bytes([len(encoded)]) + encoded


@dataclass(frozen=True)
class TapLeaf:
    """A single tapscript leaf."""

    version: int
    script: bytes

    @property
    def leaf_hash(self) -> bytes:
        return tagged_hash(
            "TapLeaf", bytes([self.version]) + compact_size(len(self.script)) + self.script
        )

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "TapLeaf":
        if not isinstance(data, dict):
            raise CryptoValidationError(f"{name} must be an object")
        version = data.get("version")
        output = data.get("output")
        if not isinstance(version, int) or not 0 <= version <= 0xFF or version & 1:
            raise CryptoValidationError(f"{name} has an invalid leaf version: {version!r}")
        if not isinstance(output, str) or not output:
            raise CryptoValidationError(f"{name} has no script")
        try:
            script = bytes.fromhex(output)
        except ValueError as e:
            raise CryptoValidationError(f"{name} script is not hex: {e}") from e
        return cls(version=version, script=script)

    def to_dict(self) -> dict:
        return {"version": self.version, "output": self.script.hex()}


def tap_branch(a: bytes, b: bytes) -> bytes:
    if b < a:
        a, b = b, a
    return tagged_hash("TapBranch", a + b)


@dataclass(frozen=True)
class SwapTree:
    """Deserialized swap script tree."""

    claim_leaf: TapLeaf
    refund_leaf: TapLeaf
    covenant_claim_leaf: Optional[TapLeaf] = None

    @classmethod
    def from_json(cls, data: Union[str, dict]) -> "SwapTree":
        """Parse the serialized tree. Raises CryptoValidationError when malformed."""
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise CryptoValidationError(f"Swap tree is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CryptoValidationError("Swap tree must be an object")

        if "claimLeaf" not in data or "refundLeaf" not in data:
            raise CryptoValidationError("Swap tree needs a claimLeaf and a refundLeaf")

        covenant = data.get("covenantClaimLeaf")
        return cls(
            claim_leaf=TapLeaf.from_dict("claimLeaf", data["claimLeaf"]),
            refund_leaf=TapLeaf.from_dict("refundLeaf", data["refundLeaf"]),
            covenant_claim_leaf=(
                TapLeaf.from_dict("covenantClaimLeaf", covenant) if covenant is not None else None
            ),
        )

    def to_dict(self) -> dict:
        data = {
            "claimLeaf": self.claim_leaf.to_dict(),
            "refundLeaf": self.refund_leaf.to_dict(),
        }
        if self.covenant_claim_leaf is not None:
            data["covenantClaimLeaf"] = self.covenant_claim_leaf.to_dict()
        return data

    @property
    def merkle_root(self) -> bytes:
        root = tap_branch(self.claim_leaf.leaf_hash, self.refund_leaf.leaf_hash)
        if self.covenant_claim_leaf is not None:
            root = tap_branch(self.covenant_claim_leaf.leaf_hash, root)
        return root

    def tweak(self, internal_key_xonly: bytes) -> bytes:
        """TapTweak of an internal key with this tree's Merkle root."""
        if len(internal_key_xonly) != 32:
            raise CryptoValidationError("Internal key must be 32 bytes x-only")
        tweak = tagged_hash("TapTweak", internal_key_xonly + self.merkle_root)
        if int_from_bytes(tweak) >= N:
            raise CryptoValidationError("Tap tweak is out of range")
        return tweak

    def check_submarine(
        self,
        payment_hash: bytes,
        claim_public_key: bytes,
        refund_public_key: bytes,
        timeout_block_height: Optional[int] = None,
    ) -> None:
        """Require the tree to be exactly the submarine swap we asked for.

        The claim leaf must lock to the invoice's payment hash and the
        service's claim key; the refund leaf must pay back to our refund key.
        Raises CryptoValidationError on any deviation.
        """
        for name, leaf in (("claim", self.claim_leaf), ("refund", self.refund_leaf)):
            if leaf.version != TAPSCRIPT_LEAF_VERSION:
                raise CryptoValidationError(f"Unexpected {name} leaf version {leaf.version:#x}")

        if self.covenant_claim_leaf is not None:
            raise CryptoValidationError("Submarine swap trees have no covenant leaf")

        expected_claim = build_claim_script(payment_hash, claim_public_key)
        if self.claim_leaf.script != expected_claim:
            raise CryptoValidationError("Claim leaf does not match invoice payment hash and claim key")

        refund_xonly = _x_only(refund_public_key)
        script = self.refund_leaf.script
        if timeout_block_height is not None:
            if script != build_refund_script(refund_public_key, timeout_block_height):
                raise CryptoValidationError("Refund leaf does not match refund key and timeout")
            return

        # Timeout unknown: check everything except the locktime value
        if (
            len(script) < 37
            or script[0] != 0x20
            or script[1:33] != refund_xonly
            or script[33] != OP_CHECKSIGVERIFY
            or script[-1] != OP_CHECKLOCKTIMEVERIFY
        ):
            raise CryptoValidationError("Refund leaf does not pay back to our refund key")
        push_len = script[34]
        if not 1 <= push_len <= 5 or len(script) != 36 + push_len:
            raise CryptoValidationError("Refund leaf has a malformed locktime")


def _x_only(public_key: bytes) -> bytes:
    if len(public_key) == 33:
        return public_key[1:]
    if len(public_key) == 32:
        return public_key
    raise CryptoValidationError(f"Public key must be 32 or 33 bytes, got {len(public_key)}")


def build_claim_script(payment_hash: bytes, claim_public_key: bytes) -> bytes:
    """OP_HASH160 <ripemd160(payment_hash)> OP_EQUALVERIFY <claim key> OP_CHECKSIG"""
    if len(payment_hash) != 32:
        raise CryptoValidationError("Payment hash must be 32 bytes")
    return (
        bytes([OP_HASH160, 0x14])
        + ripemd160(payment_hash)
        + bytes([OP_EQUALVERIFY, 0x20])
        + _x_only(claim_public_key)
        + bytes([OP_CHECKSIG])
    )


def build_refund_script(refund_public_key: bytes, timeout_block_height: int) -> bytes:
    """<refund key> OP_CHECKSIGVERIFY <timeout> OP_CHECKLOCKTIMEVERIFY"""
    return (
        bytes([0x20])
        + _x_only(refund_public_key)
        + bytes([OP_CHECKSIGVERIFY])
        + push_number(timeout_block_height)
        + bytes([OP_CHECKLOCKTIMEVERIFY])
    )


def build_submarine_tree(
    payment_hash: bytes,
    claim_public_key: bytes,
    refund_public_key: bytes,
    timeout_block_height: int,
) -> SwapTree:
    """Build the tree a service creates for a submarine swap."""
    return SwapTree(
        claim_leaf=TapLeaf(TAPSCRIPT_LEAF_VERSION, build_claim_script(payment_hash, claim_public_key)),
        refund_leaf=TapLeaf(
            TAPSCRIPT_LEAF_VERSION, build_refund_script(refund_public_key, timeout_block_height)
        ),
    )
