"""方程式の基底定義

線形方程式は (変数, オフセット) ごとの係数で表す:

    Σ coef[(v, o)] · v_{t+o} + constant = 0
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from elb_simulator.core.registry import Read


@dataclass(frozen=True)
class EquationCoefficients:
    """線形方程式の係数"""

    terms: Mapping[Read, float] = field(default_factory=dict)
    constant: float = 0.0

    @property
    def reads(self) -> frozenset[Read]:
        return frozenset(read for read, coef in self.terms.items() if coef != 0.0)

    def residual(self, values: Mapping[Read, np.ndarray]) -> np.ndarray | float:
        out: np.ndarray | float = self.constant
        for read in sorted(self.reads):
            out = out + self.terms[read] * values[read]
        return out

    def gradient(self, values: Mapping[Read, np.ndarray]) -> dict[Read, float]:
        # 線形なので勾配は定数
        return {read: self.terms[read] for read in self.reads}


class Equation(Protocol):
    """構造方程式のプロトコル"""

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    def coefficients(self) -> EquationCoefficients: ...
