"""
Ping-Pong 验证器
================

在局部极小的生成元组上检验一个充分条件：通过则群在树上离散且自由地作用；
不通过只说明当前组尚未见证这一点（结论为 INCONCLUSIVE，而非否定）。

成对检验（有序对 i ≠ j）：
    l_i = TL(g_i), l_j = TL(g_j)
    m = min(TL(g_i·g_j), TL(g_i·g_j⁻¹))
    m ≤ |l_i - l_j|  ⇒  失败

三元检验（无序三元组 a, b, c = g_i, g_j, g_k，i<j<k）：
    m = min over signs TL(a^{e_i}·b^{e_j}·c^{e_k})
    m = 0 ⇒ 失败（有椭圆的带号三元积）
    m ≤ max(|TL(a^e b^e) - TL(c^e)|, |TL(a^e c^e) - TL(b^e)|, |TL(b^e c^e) - TL(a^e)|) ⇒ 失败

枚举顺序：
    成对：i 升序，j 升序；三元：字典序；符号：(+,+,+), (+,+,-), …, (-,-,-)，
    取第一个达到最小值的符号组合。
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from bruhat_tits import translation_length
from sl2_backend import SL2Matrix

_logger = logging.getLogger(__name__)

_SIGNS: Tuple[Tuple[int, int, int], ...] = tuple(itertools.product((1, -1), repeat=3))


@dataclass(frozen=True)
class PairFailure:
    """
    成对检验失败记录。

    failing_index 为平移长度较大的一方（相等时取 i），
    sign = +1 表示 g_i·g_j 达到最小值，-1 表示 g_i·g_j⁻¹。
    """
    failing_index: int
    sign: int
    partner_index: int
    minimum: int
    bound: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "failing_index": int(self.failing_index),
            "sign": int(self.sign),
            "partner_index": int(self.partner_index),
            "minimum": int(self.minimum),
            "bound": int(self.bound),
        }


@dataclass(frozen=True)
class TripleFailure:
    """三元检验失败记录；elliptic 表示最小带号三元积的 TL 为 0。"""
    indices: Tuple[int, int, int]
    signs: Tuple[int, int, int]
    minimum: int
    bound: int
    elliptic: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "indices": [int(i) for i in self.indices],
            "signs": [int(s) for s in self.signs],
            "minimum": int(self.minimum),
            "bound": int(self.bound),
            "elliptic": bool(self.elliptic),
        }


@dataclass(frozen=True)
class PingPongReport:
    passed: bool
    pair_failure: Optional[PairFailure]
    triple_failure: Optional[TripleFailure]
    pairs_checked: int
    triples_checked: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "passed": bool(self.passed),
            "pair_failure": None if self.pair_failure is None else self.pair_failure.to_dict(),
            "triple_failure": None if self.triple_failure is None else self.triple_failure.to_dict(),
            "pairs_checked": int(self.pairs_checked),
            "triples_checked": int(self.triples_checked),
        }


def _signed(m: SL2Matrix, inv: SL2Matrix, sign: int) -> SL2Matrix:
    return m if sign > 0 else inv


def check_pairs(generators: Sequence[SL2Matrix], p: int) -> Tuple[Optional[PairFailure], int]:
    """
    Returns:
        (第一个失败的有序对或 None, 已检验的有序对数)
    """
    n = len(generators)
    lengths = [translation_length(g, p) for g in generators]
    inverses = [g.inverse() for g in generators]
    checked = 0
    for i in range(n):
        for j in range(n):
            if i == j:
                continue
            checked += 1
            plus = translation_length(generators[i] @ generators[j], p)
            minus = translation_length(generators[i] @ inverses[j], p)
            m = min(plus, minus)
            bound = abs(lengths[i] - lengths[j])
            if m <= bound:
                sign = 1 if plus == m else -1
                if lengths[j] > lengths[i]:
                    failing, partner = j, i
                else:
                    failing, partner = i, j
                failure = PairFailure(
                    failing_index=failing,
                    sign=sign,
                    partner_index=partner,
                    minimum=m,
                    bound=bound,
                )
                _logger.debug("pair check failed at (%s, %s): %s", i, j, failure)
                return failure, checked
    return None, checked


def _check_triple(
    generators: Sequence[SL2Matrix],
    inverses: Sequence[SL2Matrix],
    lengths: Sequence[int],
    triple: Tuple[int, int, int],
    p: int,
) -> Optional[TripleFailure]:
    i, j, k = triple
    best: Optional[int] = None
    best_signs = _SIGNS[0]
    for signs in _SIGNS:
        a = _signed(generators[i], inverses[i], signs[0])
        b = _signed(generators[j], inverses[j], signs[1])
        c = _signed(generators[k], inverses[k], signs[2])
        value = translation_length(a @ b @ c, p)
        if best is None or value < best:
            best, best_signs = value, signs

    if best == 0:
        return TripleFailure(indices=triple, signs=best_signs, minimum=0, bound=0, elliptic=True)

    ei, ej, ek = best_signs
    a = _signed(generators[i], inverses[i], ei)
    b = _signed(generators[j], inverses[j], ej)
    c = _signed(generators[k], inverses[k], ek)
    # TL(x⁻¹) = TL(x), so the single factors reuse the cached lengths.
    bound = max(
        abs(translation_length(a @ b, p) - lengths[k]),
        abs(translation_length(a @ c, p) - lengths[j]),
        abs(translation_length(b @ c, p) - lengths[i]),
    )
    if best <= bound:
        return TripleFailure(indices=triple, signs=best_signs, minimum=best, bound=bound, elliptic=False)
    return None


def check_triples(generators: Sequence[SL2Matrix], p: int) -> Tuple[Optional[TripleFailure], int]:
    """
    Returns:
        (第一个失败的三元组或 None, 已检验的三元组数)
    """
    lengths = [translation_length(g, p) for g in generators]
    inverses = [g.inverse() for g in generators]
    checked = 0
    for triple in itertools.combinations(range(len(generators)), 3):
        checked += 1
        failure = _check_triple(generators, inverses, lengths, triple, p)
        if failure is not None:
            _logger.debug("triple check failed at %s: %s", triple, failure)
            return failure, checked
    return None, checked


def verify_ping_pong(generators: Sequence[SL2Matrix], p: int) -> PingPongReport:
    """
    两项检验都运行；任一失败即 passed=False。无内部状态，可重复调用。
    """
    pair_failure, pairs_checked = check_pairs(generators, p)
    triple_failure, triples_checked = check_triples(generators, p)
    return PingPongReport(
        passed=pair_failure is None and triple_failure is None,
        pair_failure=pair_failure,
        triple_failure=triple_failure,
        pairs_checked=pairs_checked,
        triples_checked=triples_checked,
    )


__all__ = [
    "PairFailure",
    "TripleFailure",
    "PingPongReport",
    "check_pairs",
    "check_triples",
    "verify_ping_pong",
]
