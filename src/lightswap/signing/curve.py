"""secp256k1 point helpers on top of the ecdsa library.

Points are kept in affine form (ecdsa.ellipticcurve.Point); the point at
infinity is ecdsa's INFINITY singleton. Encodings follow BIP-340/BIP-327:
33-byte compressed points, 32-byte x-only keys, big-endian scalars.
"""

import hashlib
from typing import Optional

from ecdsa import SECP256k1
from ecdsa.ellipticcurve import INFINITY, Point, PointJacobi

CURVE = SECP256k1.curve
G = SECP256k1.generator
N = SECP256k1.order
P = CURVE.p()


def tagged_hash(tag: str, msg: bytes) -> bytes:
    """BIP-340 tagged hash: sha256(sha256(tag) || sha256(tag) || msg)."""
    tag_hash = hashlib.sha256(tag.encode()).digest()
    return hashlib.sha256(tag_hash + tag_hash + msg).digest()


def int_from_bytes(b: bytes) -> int:
    return int.from_bytes(b, byteorder="big")


def bytes_from_int(x: int) -> bytes:
    return x.to_bytes(32, byteorder="big")


def is_infinite(point) -> bool:
    return point is INFINITY or point.x() is None


def _affine(point):
    if isinstance(point, PointJacobi):
        point = point.to_affine()
    return point


def point_mul_g(scalar: int):
    """scalar * G."""
    if scalar % N == 0:
        return INFINITY
    return _affine(G * scalar)


def point_mul(point, scalar: int):
    if is_infinite(point) or scalar % N == 0:
        return INFINITY
    return _affine(point * scalar)


def point_add(a, b):
    if is_infinite(a):
        return b
    if is_infinite(b):
        return a
    return _affine(a + b)


def point_neg(point):
    if is_infinite(point):
        return point
    return Point(CURVE, point.x(), P - point.y())


def has_even_y(point) -> bool:
    return point.y() % 2 == 0


def lift_x(x: int) -> Optional[Point]:
    """Point with the given x coordinate and even y, or None."""
    if x >= P:
        return None
    y_sq = (pow(x, 3, P) + 7) % P
    y = pow(y_sq, (P + 1) // 4, P)
    if pow(y, 2, P) != y_sq:
        return None
    return Point(CURVE, x, y if y % 2 == 0 else P - y)


def xbytes(point) -> bytes:
    return bytes_from_int(point.x())


def cbytes(point) -> bytes:
    prefix = b"\x02" if has_even_y(point) else b"\x03"
    return prefix + xbytes(point)


def cbytes_ext(point) -> bytes:
    if is_infinite(point):
        return b"\x00" * 33
    return cbytes(point)


def cpoint(data: bytes) -> Point:
    """Decode a 33-byte compressed point. Raises ValueError when invalid."""
    if len(data) != 33 or data[0] not in (2, 3):
        raise ValueError("Compressed point must be 33 bytes with a 02/03 prefix")
    point = lift_x(int_from_bytes(data[1:33]))
    if point is None:
        raise ValueError("x coordinate is not on the curve")
    if data[0] == 3:
        point = point_neg(point)
    return point


def cpoint_ext(data: bytes):
    if data == b"\x00" * 33:
        return INFINITY
    return cpoint(data)
