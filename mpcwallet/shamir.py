"""
Plain (t, n) Shamir secret sharing over the raw bytes of a secret.

Every byte of the secret is the constant term of its own random polynomial
over GF(256); share i holds the value of every polynomial at x = i.
A share is hex of  id byte || one byte per secret byte.

There are no commitments: nothing tells a holder that a share is genuine,
and combining fewer than threshold shares does not fail, it just returns
bytes that are not the secret. Key generation that never assembles the key
lives in dkg.py; this is only for the legacy wallet flow.

GF(256) uses x^8 + x^4 + x^3 + x^2 + 1 (0x11D) with generator 2.
"""

import secrets
from typing import List

from .errors import MalformedInput

_EXP = [0] * 512
_LOG = [0] * 256


def _init_tables():
    x = 1
    for i in range(255):
        _EXP[i] = x
        _LOG[x] = i
        x <<= 1
        if x & 0x100:
            x ^= 0x11D
    for i in range(255, 512):
        _EXP[i] = _EXP[i - 255]


_init_tables()


def _mul(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    return _EXP[_LOG[a] + _LOG[b]]


def _div(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("Division by zero in GF(256)")
    if a == 0:
        return 0
    return _EXP[_LOG[a] + 255 - _LOG[b]]


def _eval(coefs: List[int], x: int) -> int:
    y = 0
    for c in reversed(coefs):
        y = _mul(y, x) ^ c
    return y


def split_secret(secret: bytes, total_shares: int = 3, threshold: int = 2) -> List[str]:
    if not secret:
        raise ValueError("Cannot split an empty secret")
    if not 2 <= threshold <= total_shares <= 255:
        raise ValueError(f"Need 2 <= threshold <= total_shares <= 255, got {threshold} of {total_shares}")
    polys = [[byte] + list(secrets.token_bytes(threshold - 1)) for byte in secret]
    return [bytes([x] + [_eval(poly, x) for poly in polys]).hex()
            for x in range(1, total_shares + 1)]


def _parse(share: str) -> bytes:
    try:
        raw = bytes.fromhex(share)
    except (TypeError, ValueError):
        raise MalformedInput(f"Share is not valid hex: {share!r}") from None
    if len(raw) < 2 or raw[0] == 0:
        raise MalformedInput("Share is too short or has a zero id")
    return raw


def combine_shares(shares: List[str]) -> bytes:
    """Lagrange interpolation at x = 0, byte by byte."""
    if not shares:
        raise MalformedInput("No shares to combine")
    points = [_parse(s) for s in shares]
    xs = [pt[0] for pt in points]
    if len(set(xs)) != len(xs):
        raise MalformedInput("Duplicate share ids")
    if len({len(pt) for pt in points}) != 1:
        raise MalformedInput("Shares have different lengths")

    basis = []
    for i, xi in enumerate(xs):
        li = 1
        for j, xj in enumerate(xs):
            if i != j:
                # subtraction is xor in GF(256)
                li = _mul(li, _div(xj, xj ^ xi))
        basis.append(li)

    secret = bytearray(len(points[0]) - 1)
    for pt, li in zip(points, basis):
        for k, y in enumerate(pt[1:]):
            secret[k] ^= _mul(y, li)
    return bytes(secret)
