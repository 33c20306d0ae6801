"""Exact SL(2, Q) backend for the Bruhat-Tits decision engine.

The goal of this module is to expose a minimal, deterministic API for the
rational 2x2 matrices used by ``bruhat_tits.py`` and ``ping_pong.py``: exact
``Fraction`` entries held in a read-only ``numpy`` object array, the p-adic
valuation of a rational number, and strict input coercion.

Redlines:
  - float/complex inputs are rejected, never rounded
  - determinant must be exactly 1; anything else is an input error
  - matrices are immutable once built; every product is a new value
"""

from __future__ import annotations

import math
import re
from fractions import Fraction
from typing import Any, Iterable, List, Sequence, Tuple, Union

import numpy as _np


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AlgebraError(Exception):
    """Base class for backend failures."""


class InvalidInputError(AlgebraError):
    """Precondition violation: malformed matrix, det != 1, non-prime p, ..."""


Rational = Union[int, Fraction, str]

# v_p(0) = +inf by convention; every nonzero rational gets an int.
PADIC_INFINITY = math.inf


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def as_fraction_strict(x: Any, *, name: str = "value") -> Fraction:
    """
    Convert a rational-like input to Fraction, rejecting float/complex.

    Accepted:
      - int
      - Fraction
      - str (e.g. "3/2", "-7", " 5/4 ")
    """
    if isinstance(x, bool):
        raise InvalidInputError(f"{name} must be rational, got bool {x!r}")
    if isinstance(x, Fraction):
        return x
    if isinstance(x, int):
        return Fraction(x)
    if isinstance(x, str):
        try:
            return Fraction(x.strip())
        except (ValueError, ZeroDivisionError) as e:
            raise InvalidInputError(f"{name} must be a rational string like '3/2', got {x!r}") from e
    if isinstance(x, float):
        raise InvalidInputError(f"{name} must be rational (int/Fraction/str); float is forbidden: {x!r}")
    if isinstance(x, complex):
        raise InvalidInputError(f"{name} must be rational (int/Fraction/str); complex is forbidden: {x!r}")
    raise InvalidInputError(f"{name} must be int/Fraction/str, got {type(x).__name__}")


def is_prime(n: int) -> bool:
    """Miller-Rabin素性测试（固定见证集，对 n < 3.3e24 确定）"""
    if not isinstance(n, int) or isinstance(n, bool) or n < 2:
        return False
    small = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41)
    for q in small:
        if n == q:
            return True
        if n % q == 0:
            return False

    r, d = 0, n - 1
    while d % 2 == 0:
        r += 1
        d //= 2

    for a in small:
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(r - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


def require_prime(p: Any) -> int:
    if not isinstance(p, int) or isinstance(p, bool) or not is_prime(p):
        raise InvalidInputError(f"p must be a prime integer, got {p!r}")
    return int(p)


def _valuation_int(n: int, p: int) -> int:
    v = 0
    n = abs(n)
    while n % p == 0:
        n //= p
        v += 1
    return v


def padic_valuation(x: Rational, p: int) -> Union[int, float]:
    """
    p进赋值 v_p(x) = v_p(a) - v_p(b)，x = a/b。

    Returns an int for nonzero x and ``PADIC_INFINITY`` for x == 0.
    p is assumed prime; callers validate it once per run with ``require_prime``.
    """
    q = as_fraction_strict(x, name="x")
    if q == 0:
        return PADIC_INFINITY
    return _valuation_int(q.numerator, p) - _valuation_int(q.denominator, p)


def format_fraction(x: Fraction) -> str:
    if x.denominator == 1:
        return str(x.numerator)
    return f"{x.numerator}/{x.denominator}"


# ---------------------------------------------------------------------------
# Matrices
# ---------------------------------------------------------------------------


class SL2Matrix:
    """
    SL(2, Q) 元素：行列式严格为 1 的 2×2 有理矩阵。

    实现细节：
        - 元素为 Fraction，存于只读 numpy object 数组
        - 不可变，可哈希；相等性按元素比较
        - 逆矩阵取伴随矩阵（det = 1 时精确）
    """

    __slots__ = ("data",)

    def __init__(self, data, *, check: bool = True):
        arr = _np.empty((2, 2), dtype=object)
        try:
            rows = [list(r) for r in data]
        except TypeError as e:
            raise InvalidInputError(f"matrix rows must be sequences, got {data!r}") from e
        if len(rows) != 2 or any(len(r) != 2 for r in rows):
            raise InvalidInputError(f"matrix must be 2x2, got shape {[len(r) for r in rows]}")
        for i in range(2):
            for j in range(2):
                arr[i, j] = as_fraction_strict(rows[i][j], name=f"entry[{i}][{j}]")
        arr.setflags(write=False)
        self.data = arr
        if check:
            det = self.determinant()
            if det != 1:
                raise InvalidInputError(f"determinant must be exactly 1, got {format_fraction(det)}")

    @classmethod
    def identity(cls) -> "SL2Matrix":
        return cls([[1, 0], [0, 1]], check=False)

    @classmethod
    def from_entries(cls, a: Rational, b: Rational, c: Rational, d: Rational) -> "SL2Matrix":
        return cls([[a, b], [c, d]])

    @property
    def entries(self) -> Tuple[Fraction, Fraction, Fraction, Fraction]:
        return (self.data[0, 0], self.data[0, 1], self.data[1, 0], self.data[1, 1])

    def trace(self) -> Fraction:
        return self.data[0, 0] + self.data[1, 1]

    def determinant(self) -> Fraction:
        return self.data[0, 0] * self.data[1, 1] - self.data[0, 1] * self.data[1, 0]

    def inverse(self) -> "SL2Matrix":
        a, b, c, d = self.entries
        return SL2Matrix([[d, -b], [-c, a]], check=False)

    def __matmul__(self, other: "SL2Matrix") -> "SL2Matrix":
        if not isinstance(other, SL2Matrix):
            return NotImplemented
        return SL2Matrix(_np.dot(self.data, other.data), check=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SL2Matrix):
            return NotImplemented
        return self.entries == other.entries

    def __hash__(self) -> int:
        return hash(self.entries)

    def to_rows(self) -> List[List[str]]:
        """JSON-safe rows, entries as 'a/b' strings."""
        return [[format_fraction(self.data[i, j]) for j in range(2)] for i in range(2)]

    def __repr__(self):  # pragma: no cover - debug
        return f"SL2Matrix({self.to_rows()})"


_SPLIT = re.compile(r"[,\s;]+")


def parse_matrix(obj: Any) -> SL2Matrix:
    """
    Coerce user input into an SL2Matrix.

    Accepted:
      - SL2Matrix (returned as is)
      - [[a, b], [c, d]]
      - flat 4-sequence (a, b, c, d)
      - string "a,b,c,d" (comma/space/semicolon separated rationals)
    """
    if isinstance(obj, SL2Matrix):
        return obj
    if isinstance(obj, str):
        tokens = [t for t in _SPLIT.split(obj.strip()) if t]
        if len(tokens) != 4:
            raise InvalidInputError(f"matrix string needs 4 entries, got {len(tokens)}: {obj!r}")
        return SL2Matrix.from_entries(*tokens)
    if isinstance(obj, Sequence) and len(obj) == 4 and not any(isinstance(x, (list, tuple)) for x in obj):
        return SL2Matrix.from_entries(*obj)
    return SL2Matrix(obj)


def parse_generators(generators: Iterable[Any]) -> Tuple[SL2Matrix, ...]:
    gens = tuple(parse_matrix(g) for g in generators)
    if not gens:
        raise InvalidInputError("at least one generator is required")
    return gens


__all__ = [
    "AlgebraError",
    "InvalidInputError",
    "PADIC_INFINITY",
    "as_fraction_strict",
    "is_prime",
    "require_prime",
    "padic_valuation",
    "format_fraction",
    "SL2Matrix",
    "parse_matrix",
    "parse_generators",
]
