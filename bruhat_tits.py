"""
Bruhat-Tits 树上的平移长度与乘积替换搜索
===========================================

数学基础：
    SL(2, Q_p) 作用在 (p+1)-正则的 Bruhat-Tits 树上。对 m ∈ SL(2, Q)：

        TL(m) = -2 · min(0, v_p(tr m))

    TL(m) = 0 当且仅当 v_p(tr m) ≥ 0，此时 m 固定某个顶点（椭圆元）。

    势函数（生成元组 g，长度 n）：

        Sum(g) = Σ_i TL(g_i) + Σ_{i<j} [ TL(g_i·g_j) + TL(g_i⁻¹·g_j) ]

    乘积替换（Nielsen 变换）：固定枢轴 j，对 i ∈ s1 做 g_i ↦ g_j·g_i，
    然后（同一 i）对 i ∈ s2 做 g_i ↦ g_i·g_j⁻¹。生成的子群不变。

搜索顺序（固定，可复现）：
    枢轴 j 升序；剩余索引 r_0 < … < r_{n-2}，掩码第 k 位选中 r_k；
    left 掩码为外层、right 掩码为内层，均按整数值升序；(0, 0) 跳过。

红线：
    - 全程精确有理算术，禁止 float
    - Sum 每次从零重算，不做增量维护
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from free_words import Word, left_multiply, right_divide
from sl2_backend import SL2Matrix, padic_valuation

_logger = logging.getLogger(__name__)


# =============================================================================
# 1) 平移长度
# =============================================================================


def translation_length(m: SL2Matrix, p: int) -> int:
    """TL(m) = -2·min(0, v_p(tr m))，非负偶数。"""
    return -2 * min(0, padic_valuation(m.trace(), p))


def is_elliptic(m: SL2Matrix, p: int) -> bool:
    """m 在 p 处固定树的某个顶点。"""
    return translation_length(m, p) == 0


# =============================================================================
# 2) 势函数
# =============================================================================


def potential(generators: Sequence[SL2Matrix], p: int) -> int:
    """
    Sum(g)：自身平移长度 + 所有 i<j 的交叉项。

    Returns:
        非负整数；归约循环要求它在每次接受的改写后严格下降。
    """
    total = 0
    inverses = [g.inverse() for g in generators]
    n = len(generators)
    for i in range(n):
        total += translation_length(generators[i], p)
        for j in range(i + 1, n):
            total += translation_length(generators[i] @ generators[j], p)
            total += translation_length(inverses[i] @ generators[j], p)
    return total


# =============================================================================
# 3) 改写指令
# =============================================================================


@dataclass(frozen=True)
class RewriteInstruction:
    """
    一次乘积替换：(pivot, left, right)。

    left 中的索引左乘枢轴，right 中的索引右乘枢轴的逆；
    同时属于两者的索引先左乘后右乘。枢轴本身不变。
    """
    pivot: int
    left: FrozenSet[int]
    right: FrozenSet[int]

    def __post_init__(self) -> None:
        if self.pivot in self.left or self.pivot in self.right:
            raise ValueError(f"pivot {self.pivot} cannot rewrite itself")

    def is_noop(self) -> bool:
        return not self.left and not self.right

    def apply(self, generators: Sequence[SL2Matrix]) -> Tuple[SL2Matrix, ...]:
        pivot = generators[self.pivot]
        pivot_inv = pivot.inverse()
        out: List[SL2Matrix] = []
        for i, g in enumerate(generators):
            if i in self.left:
                g = pivot @ g
            if i in self.right:
                g = g @ pivot_inv
            out.append(g)
        return tuple(out)

    def apply_words(self, words: Sequence[Word]) -> Tuple[Word, ...]:
        """与 apply 同步的词改写；未触及的词原样共享。"""
        pivot = words[self.pivot]
        out: List[Word] = []
        for i, w in enumerate(words):
            if i in self.left:
                w = left_multiply(pivot, w)
            if i in self.right:
                w = right_divide(w, pivot)
            out.append(w)
        return tuple(out)

    def to_dict(self) -> Dict[str, object]:
        return {
            "pivot": int(self.pivot),
            "left": sorted(int(i) for i in self.left),
            "right": sorted(int(i) for i in self.right),
        }


def _mask_to_indices(mask: int, remaining: Sequence[int]) -> FrozenSet[int]:
    return frozenset(remaining[k] for k in range(len(remaining)) if (mask >> k) & 1)


def candidates_per_pivot(n: int) -> int:
    """每个枢轴的候选数 4^{n-1} - 1（去掉空改写）。"""
    return 4 ** (n - 1) - 1


def iter_rewrite_candidates(n: int) -> Iterator[RewriteInstruction]:
    """按固定全序枚举所有非空改写（见模块文档）。"""
    for pivot in range(n):
        remaining = [i for i in range(n) if i != pivot]
        size = 1 << len(remaining)
        for left_mask in range(size):
            left = _mask_to_indices(left_mask, remaining)
            for right_mask in range(size):
                if left_mask == 0 and right_mask == 0:
                    continue
                yield RewriteInstruction(
                    pivot=pivot,
                    left=left,
                    right=_mask_to_indices(right_mask, remaining),
                )


# =============================================================================
# 4) 乘积替换搜索
# =============================================================================


@dataclass(frozen=True)
class SearchHit:
    """首个严格改进的候选：指令、改写后的生成元组及其势。"""
    instruction: RewriteInstruction
    generators: Tuple[SL2Matrix, ...]
    potential: int
    candidates_examined: int


def find_improving_rewrite(
    generators: Sequence[SL2Matrix],
    p: int,
    *,
    current: Optional[int] = None,
) -> Optional[SearchHit]:
    """
    返回第一个满足 Sum(h) < Sum(g) 的改写；搜索穷尽则返回 None。

    Args:
        generators: 当前生成元组
        p: 素数
        current: 已知的 Sum(g)（省略时重算）
    """
    baseline = potential(generators, p) if current is None else int(current)
    examined = 0
    for instruction in iter_rewrite_candidates(len(generators)):
        examined += 1
        candidate = instruction.apply(generators)
        score = potential(candidate, p)
        if score < baseline:
            _logger.debug(
                "improving rewrite: pivot=%s left=%s right=%s Sum %s -> %s after %s candidates",
                instruction.pivot,
                sorted(instruction.left),
                sorted(instruction.right),
                baseline,
                score,
                examined,
            )
            return SearchHit(
                instruction=instruction,
                generators=candidate,
                potential=score,
                candidates_examined=examined,
            )
    _logger.debug("search exhausted: %s candidates, Sum=%s is a local minimum", examined, baseline)
    return None


__all__ = [
    "translation_length",
    "is_elliptic",
    "potential",
    "RewriteInstruction",
    "candidates_per_pivot",
    "iter_rewrite_candidates",
    "SearchHit",
    "find_improving_rewrite",
]
