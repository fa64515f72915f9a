"""
Tests
"""

import pytest
import random
from itertools import combinations
from mpcwallet.curve import order, pub_key_from_priv
from mpcwallet.feldman import (random_scalar, generate_polynomial, evaluate_polynomial,
                               commitments, verify_share, lagrange_coefficient,
                               interpolate_at_zero)


def test_evaluate_polynomial():
    # y = 3x^2 + 2x + 1
    poly = [1, 2, 3]
    assert evaluate_polynomial(poly, 0) == 1
    assert evaluate_polynomial(poly, 2) == 17
    assert evaluate_polynomial([order - 1, 1], 1) == 0


def test_generate_polynomial():
    secret = random_scalar()
    poly = generate_polynomial(secret, 2)
    assert len(poly) == 3
    assert poly[0] == secret
    assert all(0 < c < order for c in poly[1:])


@pytest.mark.parametrize("threshold", [1, 2, 3])
def test_vss_soundness(threshold):
    poly = generate_polynomial(random_scalar(), threshold - 1)
    comms = commitments(poly)
    assert len(comms) == len(poly)
    for i in range(1, 4):
        share = evaluate_polynomial(poly, i)
        assert verify_share(share, i, comms)
        bit = random.randint(0, 255)
        print(f"\nthreshold={threshold} index={i} flipping bit {bit}")
        assert not verify_share(share ^ (1 << bit), i, comms)


def test_share_checked_against_the_wrong_index():
    poly = generate_polynomial(random_scalar(), 1)
    comms = commitments(poly)
    assert not verify_share(evaluate_polynomial(poly, 1), 2, comms)
    assert not verify_share(evaluate_polynomial(poly, 1), 1, [])


def test_lagrange_coefficient():
    # {1, 2}: L_1 = 2/(2-1) = 2, L_2 = 1/(1-2) = -1
    assert lagrange_coefficient(1, [1, 2]) == 2
    assert lagrange_coefficient(2, [1, 2]) == order - 1
    pytest.raises(ValueError, lagrange_coefficient, 3, [1, 2])
    pytest.raises(ValueError, lagrange_coefficient, 1, [1, 1])
    pytest.raises(ValueError, lagrange_coefficient, 0, [0, 1])


def test_interpolate_any_pair():
    secret = random_scalar()
    poly = generate_polynomial(secret, 1)
    points = {i: evaluate_polynomial(poly, i) for i in range(1, 4)}
    for pair in combinations(points, 2):
        assert interpolate_at_zero({i: points[i] for i in pair}) == secret
    # a single point of a line says nothing about f(0)
    assert interpolate_at_zero({1: points[1]}) != secret


def test_commitment_constant_term_is_public_key():
    secret = random_scalar()
    assert commitments(generate_polynomial(secret, 1))[0] == pub_key_from_priv(secret)
