"""
Tests for the exact SL(2, Q) backend
"""

import math
from fractions import Fraction

import pytest

from sl2_backend import (
    InvalidInputError,
    SL2Matrix,
    as_fraction_strict,
    is_prime,
    padic_valuation,
    parse_generators,
    parse_matrix,
    require_prime,
)


class TestValuation:
    def test_integer_and_fraction(self):
        assert padic_valuation(8, 2) == 3
        assert padic_valuation(Fraction(5, 2), 2) == -1
        assert padic_valuation(Fraction(2, 9), 3) == -2
        assert padic_valuation(7, 5) == 0
        assert padic_valuation(-12, 2) == 2

    def test_zero_is_infinite(self):
        assert padic_valuation(0, 3) == math.inf

    def test_rational_string(self):
        assert padic_valuation("257/16", 2) == -4

    def test_float_rejected(self):
        with pytest.raises(InvalidInputError):
            padic_valuation(0.5, 2)


class TestScalars:
    def test_as_fraction_strict(self):
        assert as_fraction_strict("3/2") == Fraction(3, 2)
        assert as_fraction_strict(4) == Fraction(4)
        assert as_fraction_strict(Fraction(1, 3)) == Fraction(1, 3)

    @pytest.mark.parametrize("bad", [1.5, 1j, True, None, "x/y", "1/0"])
    def test_as_fraction_strict_rejects(self, bad):
        with pytest.raises(InvalidInputError):
            as_fraction_strict(bad)

    def test_is_prime(self):
        for q in (2, 3, 5, 41, 43, 97, 7919, 2 ** 61 - 1):
            assert is_prime(q)
        for c in (0, 1, 4, 91, 561, 1105, 2 ** 61 + 1):
            assert not is_prime(c)

    def test_require_prime(self):
        assert require_prime(3) == 3
        with pytest.raises(InvalidInputError):
            require_prime(4)
        with pytest.raises(InvalidInputError):
            require_prime("2")


class TestSL2Matrix:
    def test_determinant_enforced(self):
        with pytest.raises(InvalidInputError):
            SL2Matrix([[1, 1], [1, 1]])

    def test_shape_enforced(self):
        with pytest.raises(InvalidInputError):
            SL2Matrix([[1, 0, 0], [0, 1, 0]])

    def test_product_inverse_trace(self):
        m = SL2Matrix([["5/4", "3/4"], ["3/4", "5/4"]])
        assert m.trace() == Fraction(5, 2)
        assert m @ m.inverse() == SL2Matrix.identity()
        assert (m @ m).entries == (Fraction(17, 8), Fraction(15, 8), Fraction(15, 8), Fraction(17, 8))

    def test_immutable(self):
        m = SL2Matrix.identity()
        with pytest.raises(ValueError):
            m.data[0, 0] = Fraction(2)

    def test_hash_and_equality(self):
        a = SL2Matrix([[2, 1], [1, 1]])
        b = SL2Matrix([["2", "1"], ["1", "1"]])
        assert a == b
        assert len({a, b}) == 1

    def test_to_rows(self):
        m = SL2Matrix([["1/8", 1], [0, 8]])
        assert m.to_rows() == [["1/8", "1"], ["0", "8"]]


class TestParsing:
    def test_forms(self):
        expected = SL2Matrix([["1/2", 0], [0, 2]])
        assert parse_matrix("1/2,0,0,2") == expected
        assert parse_matrix("1/2 0 0 2") == expected
        assert parse_matrix(["1/2", 0, 0, 2]) == expected
        assert parse_matrix([["1/2", 0], [0, 2]]) == expected
        assert parse_matrix(expected) is expected

    def test_wrong_count(self):
        with pytest.raises(InvalidInputError):
            parse_matrix("1,0,0")

    def test_empty_generators(self):
        with pytest.raises(InvalidInputError):
            parse_generators([])
