"""
自由群词追踪（Word Tracking）

数学基础：
    记原始生成元为 g₁, …, gₙ。归约过程中每个当前生成元都是
    自由群 F(g₁, …, gₙ) 中的一个词；在原始生成元代入下求值，
    必须逐项复现当前矩阵。

    Nielsen 变换 gᵢ ↦ gⱼ·gᵢ、gᵢ ↦ gᵢ·gⱼ⁻¹ 在词层面就是拼接 + 自由约化。

架构：
    Layer 1: Letter / Alphabet（字母 = 生成元索引 + 指数 ±1；名称只在字母表里）
    Layer 2: Word（不可变字母序列，拼接/求逆/自由约化/求值）
    Layer 3: 词元组构造与求值辅助

铁律：
    - 词不可变；改写产生新词，未改写的词在快照之间共享
    - 禁止静默失败：非法字母/字母表不匹配必须抛异常
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar


# =============================================================================
# 0) 异常
# =============================================================================


class WordError(Exception):
    """词构造或操作错误（非法字母/字母表不匹配等）。"""


# =============================================================================
# 1) 字母与字母表
# =============================================================================


@dataclass(frozen=True)
class Letter:
    """gᵢ^{±1}：index 为 0 起的生成元位置，exponent ∈ {+1, -1}。"""
    index: int
    exponent: int = 1

    def __post_init__(self) -> None:
        if self.index < 0:
            raise WordError(f"generator index must be non-negative, got {self.index}")
        if self.exponent not in (1, -1):
            raise WordError(f"letter exponent must be +1 or -1, got {self.exponent}")

    def inverse(self) -> Letter:
        return Letter(self.index, -self.exponent)


class Alphabet:
    """原始生成元的名称表（名称从 1 起，索引从 0 起）。"""

    def __init__(self, names: Sequence[str]):
        if not names:
            raise WordError("Alphabet cannot be empty")
        self.names: Tuple[str, ...] = tuple(names)
        self._index: Dict[str, int] = {}
        for i, name in enumerate(self.names):
            if not name or name in self._index:
                raise WordError(f"Duplicate or empty generator name: {name!r}")
            self._index[name] = i

    @classmethod
    def for_generators(cls, n: int, prefix: str = "g") -> Alphabet:
        if n < 1:
            raise WordError(f"need at least one generator, got {n}")
        return cls([f"{prefix}{i + 1}" for i in range(n)])

    def __len__(self) -> int:
        return len(self.names)

    def letter(self, token: str) -> Letter:
        """"g2" → g₂，"g2^" → g₂⁻¹。"""
        name, exponent = (token[:-1], -1) if token.endswith("^") else (token, 1)
        if name not in self._index:
            raise WordError(f"Unknown generator name: {token!r}")
        return Letter(self._index[name], exponent)

    def render(self, letter: Letter, *, compact: bool = False) -> str:
        name = self.names[letter.index]
        if letter.exponent == 1:
            return name
        return name + ("^" if compact else "⁻¹")

    def __repr__(self) -> str:
        return f"Alphabet⟨{', '.join(self.names)}⟩"


# =============================================================================
# 2) 词（Word）
# =============================================================================


T = TypeVar("T")


@dataclass(frozen=True, eq=False)
class Word:
    """
    自由群中的词 w = a₁a₂…aₖ；空词记为 ε。

    相等只比较字母序列；拼接要求同一个字母表实例（一次运行只建一个字母表）。
    """
    letters: Tuple[Letter, ...]
    alphabet: Alphabet

    def __post_init__(self) -> None:
        n = len(self.alphabet)
        for a in self.letters:
            if a.index >= n:
                raise WordError(f"letter index {a.index} outside {self.alphabet!r}")

    @classmethod
    def empty(cls, alphabet: Alphabet) -> Word:
        return cls((), alphabet)

    @classmethod
    def generator(cls, alphabet: Alphabet, index: int) -> Word:
        if not 0 <= index < len(alphabet):
            raise WordError(f"generator index {index} out of range [0, {len(alphabet)})")
        return cls((Letter(index),), alphabet)

    @classmethod
    def from_string(cls, s: str, alphabet: Alphabet) -> Word:
        """空格分隔，^ 后缀表示逆元："g2 g1^ g1^" = g₂·g₁⁻¹·g₁⁻¹"""
        return cls(tuple(alphabet.letter(tok) for tok in s.split()), alphabet)

    def __len__(self) -> int:
        return len(self.letters)

    def __add__(self, other: Word) -> Word:
        if self.alphabet is not other.alphabet:
            raise WordError(f"Cannot concatenate words over {self.alphabet!r} and {other.alphabet!r}")
        return Word(self.letters + other.letters, self.alphabet)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Word):
            return NotImplemented
        return self.letters == other.letters

    def __hash__(self) -> int:
        return hash(self.letters)

    def __repr__(self) -> str:
        if not self.letters:
            return "ε"
        return "·".join(self.alphabet.render(a) for a in self.letters)

    def is_empty(self) -> bool:
        return not self.letters

    def inverse(self) -> Word:
        """(a₁…aₖ)⁻¹ = aₖ⁻¹…a₁⁻¹"""
        return Word(tuple(a.inverse() for a in reversed(self.letters)), self.alphabet)

    def freely_reduce(self) -> Word:
        """删去相邻的 gᵢ^e·gᵢ^{-e}（栈，O(k)）。"""
        stack: List[Letter] = []
        for a in self.letters:
            if stack and stack[-1].index == a.index and stack[-1].exponent == -a.exponent:
                stack.pop()
            else:
                stack.append(a)
        if len(stack) == len(self.letters):
            return self
        return Word(tuple(stack), self.alphabet)

    def to_string(self) -> str:
        """与 from_string 互逆的紧凑表示（"g2 g1^"）。"""
        return " ".join(self.alphabet.render(a, compact=True) for a in self.letters)

    def evaluate(self, images: Sequence[T], identity: T, *, inverse: Optional[Callable[[T], T]] = None) -> T:
        """
        在给定生成元像下求值：w(images) = ∏ images[aᵢ]^{±1}（左到右）。

        images 中的元素需支持 ``@``；逆元默认取 ``x.inverse()``。
        """
        if len(images) != len(self.alphabet):
            raise WordError(f"need {len(self.alphabet)} images, got {len(images)}")
        invert = inverse if inverse is not None else (lambda x: x.inverse())
        result = identity
        for a in self.letters:
            image = images[a.index]
            result = result @ (invert(image) if a.exponent < 0 else image)
        return result


# =============================================================================
# 3) 词元组
# =============================================================================


def generator_words(alphabet: Alphabet) -> Tuple[Word, ...]:
    """初始词元组 (g1, …, gn)。"""
    return tuple(Word.generator(alphabet, i) for i in range(len(alphabet)))


def left_multiply(pivot: Word, word: Word) -> Word:
    """gᵢ ↦ gⱼ·gᵢ 的词版本。"""
    return (pivot + word).freely_reduce()


def right_divide(word: Word, pivot: Word) -> Word:
    """gᵢ ↦ gᵢ·gⱼ⁻¹ 的词版本。"""
    return (word + pivot.inverse()).freely_reduce()


__all__ = [
    "WordError",
    "Letter",
    "Alphabet",
    "Word",
    "generator_words",
    "left_multiply",
    "right_divide",
]
