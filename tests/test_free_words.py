"""
Tests for free-group word tracking
"""

import pytest

from conftest import A, B_SYM
from free_words import Alphabet, Letter, Word, WordError, generator_words, left_multiply, right_divide
from sl2_backend import SL2Matrix


@pytest.fixture
def alphabet():
    return Alphabet.for_generators(2)


class TestAlphabet:
    def test_names_are_one_based(self, alphabet):
        assert alphabet.names == ("g1", "g2")
        assert Word.from_string("g2 g1^", alphabet).letters == (Letter(1), Letter(0, -1))

    def test_duplicate_rejected(self):
        with pytest.raises(WordError):
            Alphabet(["a", "a"])

    def test_unknown_symbol(self, alphabet):
        with pytest.raises(WordError):
            Word.from_string("g3", alphabet)


class TestWord:
    def test_free_reduction(self, alphabet):
        w = Word.from_string("g1 g2 g2^ g1^", alphabet)
        assert w.freely_reduce().is_empty()
        assert repr(w.freely_reduce()) == "ε"

    def test_inverse(self, alphabet):
        w = Word.from_string("g2 g1^", alphabet)
        assert w.inverse() == Word.from_string("g1 g2^", alphabet)
        assert (w + w.inverse()).freely_reduce().is_empty()

    def test_repr_and_string(self, alphabet):
        w = Word.from_string("g2 g1^ g1^", alphabet)
        assert repr(w) == "g2·g1⁻¹·g1⁻¹"
        assert Word.from_string(w.to_string(), alphabet) == w

    def test_different_alphabets(self):
        a = Word.generator(Alphabet(["a"]), 0)
        b = Word.generator(Alphabet(["b"]), 0)
        with pytest.raises(WordError):
            a + b


class TestRewrites:
    def test_generator_words(self, alphabet):
        words = generator_words(alphabet)
        assert [w.to_string() for w in words] == ["g1", "g2"]

    def test_left_then_right(self, alphabet):
        g1, g2 = generator_words(alphabet)
        w = right_divide(left_multiply(g1, g2), g1)
        assert w.to_string() == "g1 g2 g1^"

    def test_cancellation(self, alphabet):
        g1, g2 = generator_words(alphabet)
        w = left_multiply(g1.inverse(), left_multiply(g1, g2))
        assert w == g2

    def test_evaluate(self, alphabet):
        w = Word.from_string("g1 g2 g1^", alphabet)
        identity = SL2Matrix.identity()
        assert w.evaluate((A, B_SYM), identity) == A @ B_SYM @ A.inverse()
        assert Word.empty(alphabet).evaluate((A, B_SYM), identity) == identity

    def test_evaluate_needs_all_images(self, alphabet):
        with pytest.raises(WordError):
            Word.from_string("g1", alphabet).evaluate((A,), SL2Matrix.identity())

    def test_letters_outside_alphabet(self, alphabet):
        with pytest.raises(WordError):
            Word((Letter(2),), alphabet)
        with pytest.raises(WordError):
            Letter(0, 2)

    def test_equal_names_are_still_different_alphabets(self):
        a = Word.generator(Alphabet.for_generators(1), 0)
        b = Word.generator(Alphabet.for_generators(1), 0)
        with pytest.raises(WordError):
            a + b
