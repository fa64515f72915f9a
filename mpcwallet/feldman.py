"""
Polynomial secret sharing with Feldman commitments over secp256k1.

Each party picks a polynomial of degree t-1 whose constant term is its secret
contribution and publishes the points a_k * G for every coefficient.
A recipient of f(i) can then check

    f(i) * G == sum_k C_k * i^k

without learning anything about the coefficients. Please refer to
https://eprint.iacr.org/2020/540.pdf section 2.8 for the vss equation.
"""

import secrets
from typing import List

from .curve import O, order, ec_add, ec_scalar_mul, pub_key_from_priv, scalar_inv_mod_order


def random_scalar() -> int:
    """Uniform scalar in [1, order)."""
    return secrets.randbelow(order - 1) + 1


def generate_polynomial(secret: int, degree: int) -> List[int]:
    if degree < 0:
        raise ValueError(f"Polynomial degree must be non negative, got {degree}")
    return [secret % order] + [random_scalar() for _ in range(degree)]


def evaluate_polynomial(poly: List[int], x: int) -> int:
    # For example let the polynomial be y = ax^2 + bx + c
    # poly = [c, b, a]
    # step 0: y = a
    # step 1: y = a*x + b
    # step 2: y = (a*x + b)*x + c
    y = 0
    for coef in reversed(poly):
        y = (y * x + coef) % order
    return y


def commitments(poly: List[int]) -> list:
    """Each party publishes the public points for the coefficients of its polynomial."""
    return [pub_key_from_priv(coef) for coef in poly]


def verify_share(share: int, index: int, commitment_set: list) -> bool:
    """
    Right side of the vss equation: sum_k C_k * index^k.
    Consistency only; it says nothing about how the sender picked its randomness.
    """
    if not commitment_set:
        return False
    expected = O
    x_k = 1
    for C in commitment_set:
        expected = ec_add(expected, ec_scalar_mul(C, x_k))
        x_k = x_k * index % order
    return pub_key_from_priv(share) == expected


def lagrange_coefficient(i: int, indices: List[int]) -> int:
    """
    lambda_i = prod_{j != i} j / (j - i) mod order.
    Multiplying f(i) by this for every i in indices and adding up gives f(0).

    For more details refer Page 14 Section 3.2 of GG20 paper.
    """
    if len(set(indices)) != len(indices):
        raise ValueError(f"Duplicate participant index in {indices}")
    if i not in indices:
        raise ValueError(f"Index {i} is not one of the participants {indices}")
    if min(indices) < 1:
        raise ValueError(f"Participant indices must be positive: {indices}")
    num = 1
    denom = 1
    for j in indices:
        if j != i:
            num = num * j % order
            denom = denom * (j - i) % order
    return num * scalar_inv_mod_order(denom) % order


def interpolate_at_zero(points: dict) -> int:
    """points maps party index -> share."""
    indices = sorted(points)
    return sum(lagrange_coefficient(i, indices) * points[i] for i in indices) % order
