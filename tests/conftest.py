"""
Shared matrices for the p = 2 fixtures.

All traces below are worked out exactly; TL = -2·min(0, v_2(trace)).
"""

from fractions import Fraction

import numpy as np
import pytest

from sl2_backend import SL2Matrix


def diag(x):
    x = Fraction(x)
    return SL2Matrix([[x, 0], [0, 1 / x]])


# trace 5/2, TL 2
A = diag(Fraction(1, 2))
# eigenvalue 2 on (1, 1); trace 5/2, TL 2; AB and AB⁻¹ have trace 25/8, TL 6
B_SYM = SL2Matrix([["5/4", "3/4"], ["3/4", "5/4"]])
# upper triangular, trace 65/8, TL 6
B_TRI = SL2Matrix([["1/8", 1], [0, 8]])
# ends 4 and -4, trace 5/2
C_FAR = SL2Matrix([["5/4", -3], ["-3/16", "5/4"]])

# Three hyperbolic elements, TL 2 each, whose axes hang off the standard vertex
# in the three directions 0, 1, ∞ (ends {2, 4}, {1, 3}, {1/2, 1/4}).
TRIPOD_X = SL2Matrix([["7/2", -6], ["3/4", -1]])
TRIPOD_Y = SL2Matrix([["11/4", "-9/4"], ["3/4", "-1/4"]])
TRIPOD_Z = SL2Matrix([[-1, "3/4"], [-6, "7/2"]])


@pytest.fixture
def tripod():
    return (TRIPOD_X, TRIPOD_Y, TRIPOD_Z)


def random_sl2(rng, depth=3):
    """Product of elementary unipotents with small dyadic/rational parameters."""
    m = SL2Matrix.identity()
    for _ in range(depth):
        t = Fraction(int(rng.choice([-3, -2, -1, 1, 2, 3])), int(rng.choice([1, 2, 4])))
        if rng.random() < 0.5:
            m = m @ SL2Matrix([[1, t], [0, 1]])
        else:
            m = m @ SL2Matrix([[1, 0], [t, 1]])
    return m


def random_tuple(seed, n, depth=3):
    rng = np.random.default_rng(seed)
    return tuple(random_sl2(rng, depth) for _ in range(n))


def assert_words_track(result, original):
    identity = SL2Matrix.identity()
    for g, w in zip(result.generators, result.words):
        assert w.evaluate(original, identity) == g
