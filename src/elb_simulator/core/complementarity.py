"""相補性制約の指定

方程式に (変数, 下限, 上限) を付与する。付与の仕方は2通り:

- MCPタグ: 方程式を等式ではなく相補性条件として扱う
    x = lb          → F(x) >= 0
    lb < x < ub     → F(x) = 0
    x = ub          → F(x) <= 0
- max再定式化: 同じ条件を min(x - lb, max(x - ub, F)) = 0 という
  非平滑方程式に書き換え、Newton法で解く
"""

import math
from dataclasses import dataclass, field
from enum import Enum

from elb_simulator.core.exceptions import (
    ConflictingConstraintError,
    ModelDefinitionError,
    ValidationError,
)
from elb_simulator.core.registry import EquationRegistry


class ConstraintFormulation(Enum):
    """境界制約の定式化"""

    MCP = "mcp"
    MAX = "max"


@dataclass(frozen=True)
class BoundConstraint:
    """方程式に付与された境界制約"""

    equation: str
    variable: str
    lower_bound: float = -math.inf
    upper_bound: float = math.inf
    formulation: ConstraintFormulation = ConstraintFormulation.MCP

    @property
    def has_lower(self) -> bool:
        return math.isfinite(self.lower_bound)

    @property
    def has_upper(self) -> bool:
        return math.isfinite(self.upper_bound)


@dataclass
class ComplementaritySpec:
    """方程式ごとの境界制約の登録簿"""

    registry: EquationRegistry
    _constraints: dict[str, BoundConstraint] = field(default_factory=dict)

    def mark_complementary(
        self,
        equation_name: str,
        variable: str,
        lower_bound: float | None = None,
        upper_bound: float | None = None,
    ) -> BoundConstraint:
        """方程式をMCP制約としてタグ付けする"""
        return self._mark(
            equation_name, variable, lower_bound, upper_bound, ConstraintFormulation.MCP
        )

    def mark_max_reformulation(
        self,
        equation_name: str,
        variable: str,
        lower_bound: float | None = None,
        upper_bound: float | None = None,
    ) -> BoundConstraint:
        """方程式をmax/min再定式化（Newton法用）として宣言する"""
        return self._mark(
            equation_name, variable, lower_bound, upper_bound, ConstraintFormulation.MAX
        )

    def _mark(
        self,
        equation_name: str,
        variable: str,
        lower_bound: float | None,
        upper_bound: float | None,
        formulation: ConstraintFormulation,
    ) -> BoundConstraint:
        # 未登録ならUnknownEquationError
        self.registry.get(equation_name)
        if self.registry.frozen:
            raise ModelDefinitionError(f"凍結済みのモデルに制約 '{equation_name}' は追加できません")

        if lower_bound is None and upper_bound is None:
            raise ValidationError(f"方程式 '{equation_name}' に境界が指定されていません")
        lb = -math.inf if lower_bound is None else float(lower_bound)
        ub = math.inf if upper_bound is None else float(upper_bound)
        if not lb < ub:
            raise ValidationError(f"下限({lb})は上限({ub})より小さい必要があります")

        for existing in self._constraints.values():
            if existing.variable != variable:
                continue
            if existing.formulation is not formulation:
                raise ConflictingConstraintError(
                    f"変数 '{variable}' にMCPタグとmax再定式化が同時に指定されています"
                )
            raise ConflictingConstraintError(
                f"変数 '{variable}' は既に方程式 '{existing.equation}' で制約されています"
            )
        if equation_name in self._constraints:
            raise ConflictingConstraintError(
                f"方程式 '{equation_name}' には既に境界が指定されています"
            )

        constraint = BoundConstraint(
            equation=equation_name,
            variable=variable,
            lower_bound=lb,
            upper_bound=ub,
            formulation=formulation,
        )
        self._constraints[equation_name] = constraint
        return constraint

    def get(self, equation_name: str) -> BoundConstraint | None:
        return self._constraints.get(equation_name)

    def constraints(
        self, formulation: ConstraintFormulation | None = None
    ) -> tuple[BoundConstraint, ...]:
        """制約を方程式の宣言順で返す"""
        ordered = [
            self._constraints[name] for name in self.registry.names if name in self._constraints
        ]
        if formulation is None:
            return tuple(ordered)
        return tuple(c for c in ordered if c.formulation is formulation)

    @property
    def has_mcp(self) -> bool:
        return any(c.formulation is ConstraintFormulation.MCP for c in self._constraints.values())

    def __len__(self) -> int:
        return len(self._constraints)
