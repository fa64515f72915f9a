"""
secp256k1 point arithmetic for the custody protocol.
Utilities for:
    1. EC point addition, negation and scalar multiplication
    2. SEC1 hex encoding and decoding of points
    3. ECDSA over a 32 byte digest with a recovery id
    4. Low-S canonicalization
    5. Ethereum address derivation from a public point

    Point addition is implementing:
    https://en.wikipedia.org/wiki/Elliptic_curve_point_multiplication#Point_addition

    Signature implementation is just implementing:
    https://en.wikipedia.org/wiki/Elliptic_Curve_Digital_Signature_Algorithm
    with the nonce from RFC 6979 (https://tools.ietf.org/html/rfc6979).
"""

import string
from collections import namedtuple
from hashlib import sha256

from ecdsa.rfc6979 import generate_k
from eth_utils import keccak, to_checksum_address

from .errors import MalformedInput

# The point at infinity. generator * order = O
O = None

# SECP256K1 domain params
p = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
a = 0
b = 7
order = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
half_order = order >> 1


class Point(namedtuple("Point", "x y")):
    def __repr__(self):
        """Uncompressed"""
        return f"04{self.x:0>64x}{self.y:0>64x}"


generator = Point(0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
                  0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8)


def valid(P):
    """
    weierstrass curve: y^2 = x^3 + ax + b
    Coordinates are always kept reduced modulo p so two points
    compare equal with a plain ==.
    """
    if P is O:
        return True
    return (
        (P.y**2 - (P.x**3 + a*P.x + b)) % p == 0 and
        0 <= P.x < p and 0 <= P.y < p)


def scalar_inv_mod_p(x):
    if x % p == 0:
        raise ZeroDivisionError("Impossible inverse")
    return pow(x, -1, p)


def scalar_inv_mod_order(x):
    if x % order == 0:
        raise ZeroDivisionError("Impossible inverse")
    return pow(x, -1, order)


def ec_inv(P):
    """
    https://en.wikipedia.org/wiki/Elliptic_curve_point_multiplication#Point_negation
    """
    if P is O:
        return P
    return Point(P.x, (-P.y) % p)


def ec_add(P, Q):
    """
    Sum of the points P and Q on the elliptic curve y^2 = x^3 + ax + b.
    """
    if P is O:
        return Q
    if Q is O:
        return P
    # P + (-P) has no affine representation.
    if Q == ec_inv(P):
        return O
    if P == Q:
        lam = (3 * P.x**2 + a) * scalar_inv_mod_p(2 * P.y)
    else:
        lam = (Q.y - P.y) * scalar_inv_mod_p(Q.x - P.x)
    x = (lam**2 - P.x - Q.x) % p
    y = (lam * (P.x - x) - P.y) % p
    return Point(x, y)


def ec_scalar_mul(P, scalar):
    scalar %= order
    cache = P
    ret = O
    # keep on doubling and only add for binary 1.
    while scalar:
        if scalar & 1:
            ret = ec_add(ret, cache)
        cache = ec_add(cache, cache)
        scalar >>= 1
    return ret


def ec_sum(points):
    total = O
    for P in points:
        total = ec_add(total, P)
    return total


def pub_key_from_priv(private):
    return ec_scalar_mul(generator, private)


def point_to_hex(point) -> str:
    """Compressed SEC1 encoding, 66 hex chars."""
    if point is O:
        raise ValueError("The point at infinity has no SEC1 encoding")
    prefix = "03" if point.y & 1 else "02"
    return f"{prefix}{point.x:0>64x}"


def uncompressed_hex(point) -> str:
    if point is O:
        raise ValueError("The point at infinity has no SEC1 encoding")
    return repr(point)


def point_from_hex(data: str) -> Point:
    """
    Decode a compressed (02/03) or uncompressed (04) SEC1 point.
    Anything that is not a point on the curve is rejected.
    """
    if not isinstance(data, str):
        raise MalformedInput(f"Expected a hex encoded point, got {type(data).__name__}")
    data = data[2:] if data.startswith(("0x", "0X")) else data
    try:
        raw = bytes.fromhex(data)
    except ValueError:
        raise MalformedInput(f"Point is not valid hex: {data!r}") from None

    if len(raw) == 33 and raw[0] in (2, 3):
        x = int.from_bytes(raw[1:], "big")
        if x >= p:
            raise MalformedInput("Point x coordinate out of range")
        alpha = (pow(x, 3, p) + a * x + b) % p
        # p % 4 == 3 so the square root is a single exponentiation.
        beta = pow(alpha, (p + 1) // 4, p)
        if beta * beta % p != alpha:
            raise MalformedInput("Point is not on secp256k1")
        y = beta if beta & 1 == raw[0] & 1 else p - beta
        return Point(x, y)
    if len(raw) == 65 and raw[0] == 4:
        point = Point(int.from_bytes(raw[1:33], "big"), int.from_bytes(raw[33:], "big"))
        if not valid(point):
            raise MalformedInput("Point is not on secp256k1")
        return point
    raise MalformedInput(f"Unsupported point encoding of {len(raw)} bytes")


def scalar_to_hex(value: int) -> str:
    """Shares travel as big-endian hex without padding."""
    return format(value, "x")


def scalar_from_hex(data, what="scalar") -> int:
    if not isinstance(data, str):
        raise MalformedInput(f"Expected a hex encoded {what}, got {type(data).__name__}")
    body = data[2:] if data.startswith(("0x", "0X")) else data
    if not body:
        raise MalformedInput(f"Empty {what}")
    # int() would also take whitespace, signs and underscores.
    if any(c not in string.hexdigits for c in body):
        raise MalformedInput(f"{what} is not valid hex: {data!r}")
    value = int(body, 16)
    if value >= order:
        raise MalformedInput(f"{what} is not reduced modulo the curve order")
    return value


def address_from_point(point) -> str:
    """
    keccak256 of the 64 byte X||Y public key, last 20 bytes, EIP-55 checksummed.
    """
    pub = bytes.fromhex(uncompressed_hex(point))[1:]
    return to_checksum_address("0x" + keccak(pub)[-20:].hex())


RecoverableSignature = namedtuple("RecoverableSignature", "r s recid")


def ecdsa_sign_digest(private, digest: bytes) -> RecoverableSignature:
    """
    Sign an already hashed 32 byte message.
    recid bit 0 is the parity of R.y, bit 1 is set when R.x overflowed the order.
    """
    if len(digest) != 32:
        raise MalformedInput("Digest must be exactly 32 bytes")
    if not 0 < private < order:
        raise ValueError("Private scalar out of range")
    z = int.from_bytes(digest, "big")
    retry = 0
    while True:
        k = generate_k(order, private, sha256, digest, retry_gen=retry)
        retry += 1
        R = ec_scalar_mul(generator, k)
        r = R.x % order
        if r == 0:
            continue
        s = scalar_inv_mod_order(k) * (z + r * private) % order
        if s == 0:
            continue
        recid = (R.y & 1) | (2 if R.x >= order else 0)
        return RecoverableSignature(r, s, recid)


def canonicalize(sig: RecoverableSignature) -> RecoverableSignature:
    """
    Enforce s <= n/2 (EIP-2). Negating s mirrors R, so the y parity flips.
    """
    if sig.s > half_order:
        return RecoverableSignature(sig.r, order - sig.s, sig.recid ^ 1)
    return sig
