"""MuSig2 two-round multi-signatures (BIP-327).

Only what a cooperative swap claim needs: key aggregation with x-only
tweaks, nonce generation and aggregation, partial signing and partial
signature verification. Partial signature aggregation is included for the
simulated service, which has to finish the signature on its side.

Secret nonces are single-use. SecretNonce wipes itself when signing reads
it, and a second read raises instead of signing twice with the same nonce.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional, Sequence

from lightswap.errors import CryptoValidationError
from lightswap.signing.curve import (
    INFINITY,
    N,
    P as FIELD_SIZE,
    bytes_from_int,
    cbytes,
    cbytes_ext,
    cpoint,
    cpoint_ext,
    has_even_y,
    int_from_bytes,
    is_infinite,
    lift_x,
    point_add,
    point_mul,
    point_mul_g,
    point_neg,
    tagged_hash,
    xbytes,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyAggContext:
    """Aggregate public key plus accumulated tweak state."""

    Q: object
    gacc: int
    tacc: int

    @property
    def xonly(self) -> bytes:
        return xbytes(self.Q)

    @property
    def compressed(self) -> bytes:
        return cbytes(self.Q)


def _hash_keys(pubkeys: Sequence[bytes]) -> bytes:
    return tagged_hash("KeyAgg list", b"".join(pubkeys))


def _second_key(pubkeys: Sequence[bytes]) -> bytes:
    for pk in pubkeys[1:]:
        if pk != pubkeys[0]:
            return pk
    return b"\x00" * 33


def key_agg_coeff(pubkeys: Sequence[bytes], pk: bytes) -> int:
    if pk == _second_key(pubkeys):
        return 1
    return int_from_bytes(tagged_hash("KeyAgg coefficient", _hash_keys(pubkeys) + pk)) % N


def key_agg(pubkeys: Sequence[bytes]) -> KeyAggContext:
    """Aggregate compressed public keys in the given order."""
    Q = INFINITY
    for pk in pubkeys:
        try:
            P = cpoint(pk)
        except ValueError as e:
            raise CryptoValidationError(f"Invalid public key {pk.hex()}: {e}") from e
        Q = point_add(Q, point_mul(P, key_agg_coeff(pubkeys, pk)))
    if is_infinite(Q):
        raise CryptoValidationError("Aggregate key is the point at infinity")
    return KeyAggContext(Q=Q, gacc=1, tacc=0)


def apply_tweak(ctx: KeyAggContext, tweak: bytes, is_xonly: bool) -> KeyAggContext:
    if len(tweak) != 32:
        raise CryptoValidationError("Tweak must be 32 bytes")
    g = N - 1 if is_xonly and not has_even_y(ctx.Q) else 1
    t = int_from_bytes(tweak)
    if t >= N:
        raise CryptoValidationError("Tweak exceeds the group order")
    Q = point_add(point_mul(ctx.Q, g), point_mul_g(t))
    if is_infinite(Q):
        raise CryptoValidationError("Tweaked key is the point at infinity")
    return KeyAggContext(Q=Q, gacc=g * ctx.gacc % N, tacc=(t + g * ctx.tacc) % N)


def key_agg_and_tweak(
    pubkeys: Sequence[bytes], tweaks: Sequence[bytes], is_xonly: Sequence[bool]
) -> KeyAggContext:
    ctx = key_agg(pubkeys)
    for tweak, xonly in zip(tweaks, is_xonly):
        ctx = apply_tweak(ctx, tweak, xonly)
    return ctx


class SecretNonce:
    """Single-use secret nonce (k1 || k2 || pk)."""

    __slots__ = ("_value",)

    def __init__(self, value: bytes):
        if len(value) != 97:
            raise CryptoValidationError("Secret nonce must be 97 bytes")
        self._value: Optional[bytearray] = bytearray(value)

    @property
    def used(self) -> bool:
        return self._value is None

    def take(self) -> bytes:
        """Return the nonce and wipe it."""
        if self._value is None:
            raise CryptoValidationError("Secret nonce was already used; refusing to sign twice")
        value = bytes(self._value)
        for i in range(len(self._value)):
            self._value[i] = 0
        self._value = None
        return value

    def __repr__(self) -> str:
        return f"SecretNonce(used={self.used})"


def _nonce_hash(
    rand: bytes, pk: bytes, aggpk: bytes, i: int, msg_prefixed: bytes, extra_in: bytes
) -> int:
    buf = b""
    buf += rand
    buf += len(pk).to_bytes(1, "big") + pk
    buf += len(aggpk).to_bytes(1, "big") + aggpk
    buf += msg_prefixed
    buf += len(extra_in).to_bytes(4, "big") + extra_in
    buf += i.to_bytes(1, "big")
    return int_from_bytes(tagged_hash("MuSig/nonce", buf))


def nonce_gen(
    sk: Optional[bytes],
    pk: bytes,
    aggpk: Optional[bytes] = None,
    msg: Optional[bytes] = None,
    extra_in: Optional[bytes] = None,
    rand_: Optional[bytes] = None,
) -> tuple[SecretNonce, bytes]:
    """Generate a fresh (secnonce, pubnonce) pair from a CSPRNG."""
    if len(pk) != 33:
        raise CryptoValidationError("Public key must be 33 bytes")
    if rand_ is None:
        rand_ = secrets.token_bytes(32)
    if sk is not None:
        mask = tagged_hash("MuSig/aux", rand_)
        rand = bytes(a ^ b for a, b in zip(sk, mask))
    else:
        rand = rand_
    aggpk = aggpk or b""
    if msg is None:
        msg_prefixed = b"\x00"
    else:
        msg_prefixed = b"\x01" + len(msg).to_bytes(8, "big") + msg
    extra_in = extra_in or b""

    k_1 = _nonce_hash(rand, pk, aggpk, 0, msg_prefixed, extra_in) % N
    k_2 = _nonce_hash(rand, pk, aggpk, 1, msg_prefixed, extra_in) % N
    if k_1 == 0 or k_2 == 0:
        raise CryptoValidationError("Nonce generation produced zero")

    pubnonce = cbytes(point_mul_g(k_1)) + cbytes(point_mul_g(k_2))
    secnonce = SecretNonce(bytes_from_int(k_1) + bytes_from_int(k_2) + pk)
    return secnonce, pubnonce


def parse_pubnonce(pubnonce: bytes) -> tuple:
    """Decode both nonce points. Raises CryptoValidationError when malformed."""
    if len(pubnonce) != 66:
        raise CryptoValidationError(f"Public nonce must be 66 bytes, got {len(pubnonce)}")
    try:
        return cpoint(pubnonce[0:33]), cpoint(pubnonce[33:66])
    except ValueError as e:
        raise CryptoValidationError(f"Invalid public nonce: {e}") from e


def nonce_agg(pubnonces: Sequence[bytes]) -> bytes:
    aggnonce = b""
    for j in (0, 1):
        R_j = INFINITY
        for pubnonce in pubnonces:
            R_j = point_add(R_j, parse_pubnonce(pubnonce)[j])
        aggnonce += cbytes_ext(R_j)
    return aggnonce


@dataclass(frozen=True)
class SessionContext:
    """Everything both signers must agree on for one signature."""

    aggnonce: bytes
    pubkeys: tuple
    tweaks: tuple
    is_xonly: tuple
    msg: bytes


@dataclass(frozen=True)
class SessionValues:
    Q: object
    gacc: int
    tacc: int
    b: int
    R: object
    e: int


def get_session_values(session_ctx: SessionContext) -> SessionValues:
    keygen_ctx = key_agg_and_tweak(session_ctx.pubkeys, session_ctx.tweaks, session_ctx.is_xonly)
    Q = keygen_ctx.Q
    b = int_from_bytes(
        tagged_hash("MuSig/noncecoef", session_ctx.aggnonce + xbytes(Q) + session_ctx.msg)
    ) % N
    try:
        R_1 = cpoint_ext(session_ctx.aggnonce[0:33])
        R_2 = cpoint_ext(session_ctx.aggnonce[33:66])
    except ValueError as e:
        raise CryptoValidationError(f"Invalid aggregate nonce: {e}") from e
    R_ = point_add(R_1, point_mul(R_2, b))
    R = point_mul_g(1) if is_infinite(R_) else R_
    e = int_from_bytes(tagged_hash("BIP0340/challenge", xbytes(R) + xbytes(Q) + session_ctx.msg)) % N
    return SessionValues(Q=Q, gacc=keygen_ctx.gacc, tacc=keygen_ctx.tacc, b=b, R=R, e=e)


def _session_key_agg_coeff(session_ctx: SessionContext, pk: bytes) -> int:
    if pk not in session_ctx.pubkeys:
        raise CryptoValidationError("Signer public key is not part of the aggregate key")
    return key_agg_coeff(session_ctx.pubkeys, pk)


def sign(secnonce: SecretNonce, sk: bytes, session_ctx: SessionContext) -> bytes:
    """Produce this signer's 32-byte partial signature. Consumes ``secnonce``."""
    values = get_session_values(session_ctx)
    nonce = secnonce.take()

    k_1_ = int_from_bytes(nonce[0:32])
    k_2_ = int_from_bytes(nonce[32:64])
    if not 0 < k_1_ < N or not 0 < k_2_ < N:
        raise CryptoValidationError("Secret nonce out of range")
    k_1 = k_1_ if has_even_y(values.R) else N - k_1_
    k_2 = k_2_ if has_even_y(values.R) else N - k_2_

    d_ = int_from_bytes(sk)
    if not 0 < d_ < N:
        raise CryptoValidationError("Secret key out of range")
    pk = cbytes(point_mul_g(d_))
    if pk != nonce[64:97]:
        raise CryptoValidationError("Secret nonce was generated for a different key")

    a = _session_key_agg_coeff(session_ctx, pk)
    g = 1 if has_even_y(values.Q) else N - 1
    d = g * values.gacc * d_ % N
    s = (k_1 + values.b * k_2 + values.e * a * d) % N
    psig = bytes_from_int(s)

    pubnonce = cbytes(point_mul_g(k_1_)) + cbytes(point_mul_g(k_2_))
    if not partial_sig_verify(psig, pubnonce, pk, session_ctx):
        raise CryptoValidationError("Own partial signature failed verification")
    return psig


def partial_sig_verify(psig: bytes, pubnonce: bytes, pk: bytes, session_ctx: SessionContext) -> bool:
    """Check one signer's partial signature against its public nonce and key."""
    if len(psig) != 32:
        return False
    values = get_session_values(session_ctx)
    s = int_from_bytes(psig)
    if s >= N:
        return False
    R_s1, R_s2 = parse_pubnonce(pubnonce)
    Re_s_ = point_add(R_s1, point_mul(R_s2, values.b))
    Re_s = Re_s_ if has_even_y(values.R) else point_neg(Re_s_)
    try:
        P = cpoint(pk)
    except ValueError:
        return False
    a = _session_key_agg_coeff(session_ctx, pk)
    g = 1 if has_even_y(values.Q) else N - 1
    g_ = g * values.gacc % N
    expected = point_add(Re_s, point_mul(P, values.e * a * g_ % N))
    actual = point_mul_g(s)
    if is_infinite(actual) or is_infinite(expected):
        return is_infinite(actual) and is_infinite(expected)
    return actual.x() == expected.x() and actual.y() == expected.y()


def partial_sig_agg(psigs: Sequence[bytes], session_ctx: SessionContext) -> bytes:
    """Combine partial signatures into a BIP-340 signature."""
    values = get_session_values(session_ctx)
    s = 0
    for psig in psigs:
        s_i = int_from_bytes(psig)
        if s_i >= N:
            raise CryptoValidationError("Partial signature out of range")
        s = (s + s_i) % N
    g = 1 if has_even_y(values.Q) else N - 1
    s = (s + values.e * g * values.tacc) % N
    return xbytes(values.R) + bytes_from_int(s)


def schnorr_verify(msg: bytes, pubkey: bytes, sig: bytes) -> bool:
    """BIP-340 signature verification against a 32-byte x-only key."""
    if len(pubkey) != 32 or len(sig) != 64:
        return False
    P = lift_x(int_from_bytes(pubkey))
    r = int_from_bytes(sig[0:32])
    s = int_from_bytes(sig[32:64])
    if P is None or r >= FIELD_SIZE or s >= N:
        return False
    e = int_from_bytes(tagged_hash("BIP0340/challenge", sig[0:32] + pubkey + msg)) % N
    R = point_add(point_mul_g(s), point_mul(P, N - e))
    if is_infinite(R) or not has_even_y(R) or R.x() != r:
        return False
    return True
