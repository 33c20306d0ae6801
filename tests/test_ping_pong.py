"""
Tests for the ping-pong verifier
"""

import pytest

from conftest import A, B_SYM, B_TRI, C_FAR
from ping_pong import PairFailure, TripleFailure, check_pairs, check_triples, verify_ping_pong


class TestPairs:
    def test_separated_pair_passes(self):
        failure, checked = check_pairs((A, B_SYM), 2)
        assert failure is None
        assert checked == 2

    def test_overlapping_axes_fail(self):
        # TL(A)=2, TL(B)=6, TL(AB)=8, TL(AB⁻¹)=4 <= |2-6|
        failure, checked = check_pairs((A, B_TRI), 2)
        assert checked == 1
        assert failure == PairFailure(failing_index=1, sign=-1, partner_index=0, minimum=4, bound=4)

    def test_single_generator(self):
        assert check_pairs((A,), 2) == (None, 0)


class TestTriples:
    def test_elliptic_triple_product(self):
        c = (A @ B_SYM).inverse()
        failure, checked = check_triples((A, B_SYM, c), 2)
        assert checked == 1
        assert failure.elliptic
        assert failure.signs == (1, 1, 1)
        assert failure.minimum == 0

    def test_short_signed_product(self):
        # TL(A⁻¹·B·C) = 2 (trace 5/2) against max(|6-2|, |6-2|, |12-2|) = 10
        failure, _ = check_triples((A, B_SYM, C_FAR), 2)
        assert failure == TripleFailure(
            indices=(0, 1, 2), signs=(-1, 1, 1), minimum=2, bound=10, elliptic=False
        )

    def test_tripod_passes(self, tripod):
        failure, checked = check_triples(tripod, 2)
        assert failure is None
        assert checked == 1

    def test_fewer_than_three(self):
        assert check_triples((A, B_SYM), 2) == (None, 0)


class TestVerify:
    def test_single_generator_passes(self):
        report = verify_ping_pong((A,), 2)
        assert report.passed
        assert report.pairs_checked == 0
        assert report.triples_checked == 0

    def test_tripod(self, tripod):
        report = verify_ping_pong(tripod, 2)
        assert report.passed
        assert report.pairs_checked == 6
        assert report.triples_checked == 1

    def test_failure_is_reported(self):
        report = verify_ping_pong((A, B_TRI), 2)
        assert not report.passed
        assert report.pair_failure.failing_index == 1
        assert report.triple_failure is None
        assert report.to_dict()["pair_failure"]["sign"] == -1

    @pytest.mark.parametrize("gens", [(A,), (A, B_SYM)])
    def test_idempotent(self, gens):
        first = verify_ping_pong(gens, 2)
        second = verify_ping_pong(gens, 2)
        assert first.passed and second.passed
        assert first == second
