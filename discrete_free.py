#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
================================================================================
p进离散自由性判定 (Discrete & Free on the Bruhat-Tits tree)

核心理念:
  给定 SL(2, Q) 中的有限生成元组与素数 p，判定其生成的子群在 SL(2, Q_p)
  中是否离散且自由。全部判据来自迹的 p 进赋值，禁止浮点几何。

状态机:
  RUNNING ──► ELLIPTIC        某个当前生成元 TL = 0（见证非离散自由）
          ──► CAP_EXCEEDED    仍有改进但改写次数已用满上限（资源信号，不是数学否定）
          ──► REDUCED ──► DISCRETE_FREE   Ping-Pong 通过
                      ──► INCONCLUSIVE    Ping-Pong 未通过（充分条件失效）

  每轮：椭圆扫描 → 乘积替换搜索 → 上限检查 → 原子替换 (生成元组, 词元组)

红线 (Critical Constraints):
  - 势函数是非负整数且每次接受的改写严格下降，故改写次数 ≤ 初始 Sum
  - 生成元组与词元组整体快照替换，禁止出现混合代际
  - 非法输入必须抛异常；CAP_EXCEEDED / INCONCLUSIVE 是结果而非异常
  - 日志健康输出 (Healthy Logging - No Spam, No Silence)
================================================================================
"""

from __future__ import annotations

import argparse
import dataclasses
import hashlib
import json
import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum, auto
from fractions import Fraction
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from bruhat_tits import RewriteInstruction, SearchHit, find_improving_rewrite, potential, translation_length
from free_words import Alphabet, Word, generator_words
from ping_pong import PingPongReport, verify_ping_pong
from sl2_backend import InvalidInputError, SL2Matrix, parse_generators, require_prime

_logger = logging.getLogger(__name__)


# =============================================================================
# 0) 异常
# =============================================================================


class DiscreteFreeError(Exception):
    """判定引擎总异常基类。"""


class ReductionConfigError(DiscreteFreeError):
    """配置错误（非正上限/非法环境变量等）。"""


class WordTrackingError(DiscreteFreeError):
    """词追踪与矩阵改写失去同步。"""


# =============================================================================
# 1) 配置
# =============================================================================


DEFAULT_MAX_ITERATIONS = 1000


def _env_int(name: str, *, default: Optional[int]) -> Optional[int]:
    """
    Read an env var as int (base-10), strict.
    """
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip(), 10)
    except ValueError as e:
        raise ReductionConfigError(f"{name} must be an integer (base-10), got {raw!r}") from e


def _env_bool(name: str, *, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return bool(default)
    val = str(raw).strip().lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    raise ReductionConfigError(f"{name} must be a boolean flag (1/0/true/false), got {raw!r}")


@dataclass(frozen=True)
class ReductionConfig:
    """
    归约循环配置。

    max_iterations: 改写次数上限（协作式取消点，每轮检查一次）
    max_generators: 搜索规模保护；候选数随 n 以 4^{n-1} 增长，None 表示不限制
    audit_words:    每次改写后在原始生成元上重算全部词并核对
    """
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_generators: Optional[int] = None
    audit_words: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int) or self.max_iterations <= 0:
            raise ReductionConfigError(f"max_iterations must be a positive int, got {self.max_iterations!r}")
        if self.max_generators is not None and (
            isinstance(self.max_generators, bool) or not isinstance(self.max_generators, int) or self.max_generators <= 0
        ):
            raise ReductionConfigError(f"max_generators must be a positive int or None, got {self.max_generators!r}")

    @classmethod
    def from_env(cls) -> ReductionConfig:
        """DISCRETE_FREE_MAX_ITERATIONS / DISCRETE_FREE_MAX_GENERATORS / DISCRETE_FREE_AUDIT_WORDS"""
        return cls(
            max_iterations=_env_int("DISCRETE_FREE_MAX_ITERATIONS", default=DEFAULT_MAX_ITERATIONS),
            max_generators=_env_int("DISCRETE_FREE_MAX_GENERATORS", default=None),
            audit_words=_env_bool("DISCRETE_FREE_AUDIT_WORDS", default=False),
        )


# =============================================================================
# 2) 状态与结果
# =============================================================================


class ReductionStatus(Enum):
    """判定的终止状态。"""
    DISCRETE_FREE = auto()    # Ping-Pong 通过
    ELLIPTIC = auto()         # 出现 TL = 0 的生成元
    CAP_EXCEEDED = auto()     # 改写次数达到上限
    INCONCLUSIVE = auto()     # 局部极小但 Ping-Pong 未通过


@dataclass(frozen=True)
class LoopState:
    """
    一次运行独占的循环状态快照；每次成功改写产生新快照。
    """
    generators: Tuple[SL2Matrix, ...]
    words: Tuple[Word, ...]
    iterations: int
    potential: int

    def advance(self, hit: SearchHit) -> LoopState:
        return LoopState(
            generators=hit.generators,
            words=hit.instruction.apply_words(self.words),
            iterations=self.iterations + 1,
            potential=hit.potential,
        )


def _sha256_hex_of_dict(d: Dict[str, Any]) -> str:
    """
    计算字典的 SHA-256 哈希 (确定性序列化).
    禁止 float/complex/set 以保证确定性.
    """
    def _serialize(obj: Any) -> str:
        if obj is None:
            return "null"
        if isinstance(obj, bool):
            return "true" if obj else "false"
        if isinstance(obj, int):
            return f"int:{obj}"
        if isinstance(obj, str):
            return f"str:{obj}"
        if isinstance(obj, Fraction):
            return f"frac:{obj.numerator}/{obj.denominator}"
        if isinstance(obj, (list, tuple)):
            parts = [_serialize(x) for x in obj]
            return f"list:[{','.join(parts)}]"
        if isinstance(obj, dict):
            items = sorted(obj.items(), key=lambda kv: str(kv[0]))
            parts = [f"{_serialize(k)}:{_serialize(v)}" for k, v in items]
            return f"dict:{{{','.join(parts)}}}"
        raise TypeError(f"{type(obj).__name__} forbidden in certificate: {obj!r}")

    serialized = _serialize(d)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ReductionResult:
    """
    判定结果。generators/words 总是最终快照（INCONCLUSIVE 时即交给调用方的局部极小组）；
    witness_* 仅在 ELLIPTIC 时给出；ping_pong 仅在到达 REDUCED 后给出。
    """
    status: ReductionStatus
    prime: int
    iterations: int
    generators: Tuple[SL2Matrix, ...]
    words: Tuple[Word, ...]
    potential_history: Tuple[int, ...]
    rewrites: Tuple[RewriteInstruction, ...] = ()
    witness_index: Optional[int] = None
    witness_matrix: Optional[SL2Matrix] = None
    witness_word: Optional[Word] = None
    ping_pong: Optional[PingPongReport] = None
    message: str = ""

    @property
    def is_discrete_free(self) -> bool:
        return self.status is ReductionStatus.DISCRETE_FREE

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe 证书（有理数为 'a/b' 字符串，无 float）。"""
        return {
            "status": self.status.name,
            "prime": int(self.prime),
            "iterations": int(self.iterations),
            "generators": [g.to_rows() for g in self.generators],
            "words": [w.to_string() for w in self.words],
            "potential_history": [int(s) for s in self.potential_history],
            "rewrites": [r.to_dict() for r in self.rewrites],
            "witness": None if self.witness_index is None else {
                "index": int(self.witness_index),
                "matrix": self.witness_matrix.to_rows(),
                "word": self.witness_word.to_string(),
            },
            "ping_pong": None if self.ping_pong is None else self.ping_pong.to_dict(),
            "message": self.message,
        }

    @property
    def commitment(self) -> str:
        return _sha256_hex_of_dict(self.to_dict())


# =============================================================================
# 3) 归约循环
# =============================================================================


class ReductionLoop:
    """
    控制状态机：反复做乘积替换直到势函数局部极小，再交给 Ping-Pong 验证。

    终止性：
        Sum 是非负整数，每次接受的改写严格下降，所以改写次数 ≤ 初始 Sum；
        max_iterations 只是额外的资源上限。
    """

    def __init__(self, config: Optional[ReductionConfig] = None):
        self.config = config or ReductionConfig()

    def run(self, generators: Iterable[Any], prime: int) -> ReductionResult:
        p = require_prime(prime)
        original = parse_generators(generators)
        n = len(original)
        if self.config.max_generators is not None and n > self.config.max_generators:
            raise InvalidInputError(
                f"{n} generators exceed the search-size guard max_generators={self.config.max_generators}"
            )

        alphabet = Alphabet.for_generators(n)
        state = LoopState(
            generators=original,
            words=generator_words(alphabet),
            iterations=0,
            potential=potential(original, p),
        )
        history: List[int] = [state.potential]
        rewrites: List[RewriteInstruction] = []
        _logger.info("reduction start: n=%s p=%s Sum=%s cap=%s", n, p, state.potential, self.config.max_iterations)

        while True:
            witness = self._first_elliptic(state.generators, p)
            if witness is not None:
                return self._finish(
                    ReductionStatus.ELLIPTIC,
                    p,
                    state,
                    history,
                    rewrites,
                    witness_index=witness,
                    message=f"generator {witness} is elliptic at p={p}: {state.words[witness]!r}",
                )

            hit = find_improving_rewrite(state.generators, p, current=state.potential)
            if hit is None:
                break

            # 只有还需要第 max_iterations+1 次改写时才算超限
            if state.iterations >= self.config.max_iterations:
                return self._finish(
                    ReductionStatus.CAP_EXCEEDED,
                    p,
                    state,
                    history,
                    rewrites,
                    message=f"iteration cap exceeded: rewrite {state.iterations + 1} needed, cap={self.config.max_iterations}",
                )

            state = state.advance(hit)
            if self.config.audit_words:
                self._audit_words(original, state)
            history.append(state.potential)
            rewrites.append(hit.instruction)
            _logger.debug(
                "iteration %s: pivot=%s Sum=%s",
                state.iterations,
                hit.instruction.pivot,
                state.potential,
            )

        _logger.info("reduced: local minimum Sum=%s after %s rewrites", state.potential, state.iterations)
        report = verify_ping_pong(state.generators, p)
        if report.passed:
            return self._finish(
                ReductionStatus.DISCRETE_FREE,
                p,
                state,
                history,
                rewrites,
                ping_pong=report,
                message="ping-pong certified: discrete and free",
            )
        return self._finish(
            ReductionStatus.INCONCLUSIVE,
            p,
            state,
            history,
            rewrites,
            ping_pong=report,
            message="local minimum does not satisfy the ping-pong condition",
        )

    @staticmethod
    def _first_elliptic(generators: Sequence[SL2Matrix], p: int) -> Optional[int]:
        for i, g in enumerate(generators):
            if translation_length(g, p) == 0:
                return i
        return None

    @staticmethod
    def _audit_words(original: Tuple[SL2Matrix, ...], state: LoopState) -> None:
        identity = SL2Matrix.identity()
        for i, (g, w) in enumerate(zip(state.generators, state.words)):
            if w.evaluate(original, identity) != g:
                raise WordTrackingError(f"word {w!r} does not evaluate to generator {i} at iteration {state.iterations}")

    @staticmethod
    def _finish(
        status: ReductionStatus,
        p: int,
        state: LoopState,
        history: List[int],
        rewrites: List[RewriteInstruction],
        *,
        witness_index: Optional[int] = None,
        ping_pong: Optional[PingPongReport] = None,
        message: str = "",
    ) -> ReductionResult:
        _logger.info("reduction finished: status=%s iterations=%s Sum=%s", status.name, state.iterations, state.potential)
        return ReductionResult(
            status=status,
            prime=p,
            iterations=state.iterations,
            generators=state.generators,
            words=state.words,
            potential_history=tuple(history),
            rewrites=tuple(rewrites),
            witness_index=witness_index,
            witness_matrix=None if witness_index is None else state.generators[witness_index],
            witness_word=None if witness_index is None else state.words[witness_index],
            ping_pong=ping_pong,
            message=message,
        )


def decide_discrete_free(
    generators: Iterable[Any],
    prime: int,
    *,
    max_iterations: Optional[int] = None,
    config: Optional[ReductionConfig] = None,
) -> ReductionResult:
    """
    (生成元组, 素数, 上限) → 四种结果之一。

    Args:
        generators: SL2Matrix / [[a,b],[c,d]] / "a,b,c,d" 的序列
        prime: 素数 p
        max_iterations: 覆盖配置中的改写上限
        config: 完整配置（默认 ReductionConfig()）
    """
    cfg = config or ReductionConfig()
    if max_iterations is not None:
        cfg = dataclasses.replace(cfg, max_iterations=max_iterations)
    return ReductionLoop(cfg).run(generators, prime)


# =============================================================================
# 4) CLI
# =============================================================================


def _configure_logging(quiet: bool) -> None:
    """只在未配置 handler 时注入默认配置，避免污染宿主应用。"""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="[%(levelname)s] %(name)s: %(message)s",
        )
    root.setLevel(logging.WARNING if quiet else logging.INFO)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Decide whether <generators> is discrete and free in SL(2, Q_p)",
        epilog='a generator starting with a minus sign needs "--gen=-1,0,0,-1" or a preceding "--"',
    )
    parser.add_argument("generators", nargs="*", help='generator matrix as "a,b,c,d" (rationals like 3/2)')
    parser.add_argument("--gen", "-g", action="append", default=[], metavar="A,B,C,D", help="generator matrix (repeatable)")
    parser.add_argument("--prime", "-p", type=int, required=True, help="prime p of the Bruhat-Tits tree")
    parser.add_argument("--max-iterations", type=int, help="rewrite cap (default: env or 1000)")
    parser.add_argument("--max-generators", type=int, help="search-size guard on the number of generators")
    parser.add_argument("--audit-words", action="store_true", help="re-evaluate tracked words after every rewrite")
    parser.add_argument("--json", action="store_true", help="print the JSON certificate")
    parser.add_argument("--quiet", action="store_true", help="suppress logs")
    args = parser.parse_args(argv)
    generators = list(args.gen) + list(args.generators)
    if not generators:
        parser.error("at least one generator is required")

    _configure_logging(args.quiet)
    try:
        cfg = ReductionConfig.from_env()
        overrides: Dict[str, Any] = {}
        if args.max_iterations is not None:
            overrides["max_iterations"] = args.max_iterations
        if args.max_generators is not None:
            overrides["max_generators"] = args.max_generators
        if args.audit_words:
            overrides["audit_words"] = True
        if overrides:
            cfg = dataclasses.replace(cfg, **overrides)
        result = ReductionLoop(cfg).run(generators, args.prime)
    except (InvalidInputError, DiscreteFreeError) as ex:
        print(f"[FATAL] {ex}")
        return 1

    if args.json:
        body = result.to_dict()
        body["commitment"] = result.commitment
        print(json.dumps(body, ensure_ascii=False, indent=2))
    else:
        print(f"[RESULT] status={result.status.name} p={result.prime} iterations={result.iterations}")
        if result.witness_index is not None:
            print(f"[WITNESS] g[{result.witness_index}]={result.witness_matrix.to_rows()} word={result.witness_word!r}")
        if result.status is ReductionStatus.INCONCLUSIVE:
            for g, w in zip(result.generators, result.words):
                print(f"[GENERATOR] {g.to_rows()} = {w!r}")
    return 0 if result.is_discrete_free else 2


__all__ = [
    "DiscreteFreeError",
    "ReductionConfigError",
    "WordTrackingError",
    "DEFAULT_MAX_ITERATIONS",
    "ReductionConfig",
    "ReductionStatus",
    "LoopState",
    "ReductionResult",
    "ReductionLoop",
    "decide_discrete_free",
    "main",
]


if __name__ == "__main__":
    raise SystemExit(main())
