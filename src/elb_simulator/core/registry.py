"""方程式レジストリ

変数・パラメータ・方程式の宣言を保持する。
方程式の宣言順が積み上げシステムの行インデックスを決める。

各方程式は (変数名, 時点オフセット) の組を読み、
オフセットは -1（前期）, 0（当期）, +1（次期）を取る。
"""

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from elb_simulator.core.exceptions import (
    DuplicateNameError,
    ModelDefinitionError,
    UnknownEquationError,
)

Read = tuple[str, int]
# 各読み込みに対応する内部期間ベクトルを受け取り、残差ベクトルを返す
ResidualFn = Callable[[Mapping[Read, np.ndarray]], np.ndarray | float]
# 各読み込みに対する偏微分（スカラーまたは内部期間ベクトル）を返す
GradientFn = Callable[[Mapping[Read, np.ndarray]], Mapping[Read, np.ndarray | float]]


class VariableRole(Enum):
    """変数の役割"""

    ENDOGENOUS = "endogenous"
    EXOGENOUS = "exogenous"


@dataclass(frozen=True)
class Variable:
    """モデル変数"""

    name: str
    role: VariableRole = VariableRole.ENDOGENOUS
    long_name: str = ""

    @property
    def is_endogenous(self) -> bool:
        return self.role is VariableRole.ENDOGENOUS


@dataclass(frozen=True)
class Parameter:
    """モデルパラメータ（シミュレーション中は固定）"""

    name: str
    value: float


@dataclass(frozen=True)
class Equation:
    """残差形式の方程式 F(x_{t-1}, x_t, x_{t+1}) = 0"""

    name: str
    residual_fn: ResidualFn
    reads: frozenset[Read]
    gradient_fn: GradientFn | None = None
    description: str = ""

    @property
    def max_lag(self) -> int:
        return max((-offset for _, offset in self.reads), default=0)

    @property
    def max_lead(self) -> int:
        return max((offset for _, offset in self.reads), default=0)

    def variables(self) -> frozenset[str]:
        return frozenset(name for name, _ in self.reads)


@dataclass
class EquationRegistry:
    """方程式の登録簿

    一度凍結（freeze）された後は追加できない。
    """

    _equations: dict[str, Equation] = field(default_factory=dict)
    _frozen: bool = False

    def add_equation(
        self,
        name: str,
        residual_fn: ResidualFn,
        reads: Iterable[Read],
        gradient_fn: GradientFn | None = None,
        description: str = "",
    ) -> Equation:
        """方程式を登録する"""
        if self._frozen:
            raise ModelDefinitionError(f"凍結済みのモデルに方程式 '{name}' は追加できません")
        if name in self._equations:
            raise DuplicateNameError(f"方程式名が重複しています: '{name}'")

        normalized = frozenset((str(var), int(offset)) for var, offset in reads)
        if not normalized:
            raise ModelDefinitionError(f"方程式 '{name}' が変数を一つも参照していません")

        equation = Equation(
            name=name,
            residual_fn=residual_fn,
            reads=normalized,
            gradient_fn=gradient_fn,
            description=description,
        )
        self._equations[name] = equation
        return equation

    def get(self, name: str) -> Equation:
        try:
            return self._equations[name]
        except KeyError:
            raise UnknownEquationError(f"未登録の方程式です: '{name}'") from None

    def index(self, name: str) -> int:
        """方程式の行インデックス（宣言順）"""
        self.get(name)
        return list(self._equations).index(name)

    def get_dependency_graph(self) -> dict[str, frozenset[Read]]:
        """方程式ごとの (変数, オフセット) 依存集合を宣言順に返す"""
        return {name: eq.reads for name, eq in self._equations.items()}

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._equations)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def __contains__(self, name: object) -> bool:
        return name in self._equations

    def __iter__(self) -> Iterator[Equation]:
        return iter(self._equations.values())

    def __len__(self) -> int:
        return len(self._equations)
