"""残差・ヤコビアン評価器

積み上げシステム F(X) = 0 とその疎ヤコビアン J(X) を構築する。

行の並び: 内部期間 t = 1..H-2 ごとに方程式を宣言順に並べる（期間優先）
    row = (t - 1) * n_eq + i
列の並び: 内部期間の内生変数を期間優先に並べる
    col = (t - 1) * n_endo + j

方程式 i が (v, o) を読むとき、期間 t の行は期間 t + o の値を参照する。
境界期（0 と H-1）の値は固定で、ヤコビアンの列には現れない。
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp

from elb_simulator.core.exceptions import (
    BoundaryReferenceError,
    ModelDefinitionError,
    UnknownVariableError,
)
from elb_simulator.core.path import Path
from elb_simulator.core.registry import Equation, EquationRegistry, Read, Variable
from elb_simulator.parameters.constants import SIMULATION_LIMITS, SOLVER_CONSTANTS


@dataclass(frozen=True)
class _ReadPattern:
    """1つの読み込み (v, o) が占めるヤコビアン要素の位置"""

    read: Read
    rows: np.ndarray  # 内部期間インデックス（0始まり）のうち列が自由なもの
    cols: np.ndarray  # 対応する列番号


class ResidualJacobianEvaluator:
    """方程式レジストリから積み上げ残差とヤコビアンを計算する"""

    def __init__(
        self,
        variables: Sequence[Variable],
        registry: EquationRegistry,
        horizon: int,
    ) -> None:
        self.variables = tuple(variables)
        self.registry = registry
        self.horizon = horizon
        self.var_index = {v.name: j for j, v in enumerate(self.variables)}
        self.endogenous = tuple(v.name for v in self.variables if v.is_endogenous)
        self.endo_index = {name: j for j, name in enumerate(self.endogenous)}

        if len(registry) != len(self.endogenous):
            raise ModelDefinitionError(
                f"方程式数({len(registry)})と内生変数数({len(self.endogenous)})が一致しません"
            )
        if horizon < SIMULATION_LIMITS.min_horizon:
            raise BoundaryReferenceError(f"内部期間が存在しません: horizon={horizon}")

        self._validate_reads()
        registry.freeze()

        self.equations: tuple[Equation, ...] = tuple(registry)
        self._interior = np.arange(1, horizon - 1)
        self._patterns = [self._build_patterns(eq) for eq in self.equations]

    @property
    def n_equations(self) -> int:
        return len(self.equations)

    @property
    def n_free_periods(self) -> int:
        return self.horizon - 2

    @property
    def n_unknowns(self) -> int:
        return self.n_free_periods * len(self.endogenous)

    def row_index(self, equation_name: str, period: int) -> int:
        """(方程式, 期間) の行番号"""
        return (period - 1) * self.n_equations + self.registry.index(equation_name)

    def column_index(self, variable: str, period: int) -> int:
        """(内生変数, 期間) の列番号"""
        return (period - 1) * len(self.endogenous) + self.endo_index[variable]

    def _validate_reads(self) -> None:
        lower, upper = -SIMULATION_LIMITS.max_lag, SIMULATION_LIMITS.max_lead
        for eq in self.registry:
            for var, offset in sorted(eq.reads):
                if var not in self.var_index:
                    raise UnknownVariableError(
                        f"方程式 '{eq.name}' が未宣言の変数 '{var}' を参照しています"
                    )
                # 内部期間 1..H-2 の行が期間 0..H-1 の外を読まないこと
                if not lower <= offset <= upper:
                    raise BoundaryReferenceError(
                        f"方程式 '{eq.name}' の {var}({offset:+d}) は"
                        f"期間 [0, {self.horizon - 1}] の外を参照します"
                    )

    def _build_patterns(self, eq: Equation) -> list[_ReadPattern]:
        patterns: list[_ReadPattern] = []
        n_endo = len(self.endogenous)
        for var, offset in sorted(eq.reads):
            if var not in self.endo_index:
                continue
            target = self._interior + offset
            free = (target >= 1) & (target <= self.horizon - 2)
            rows = np.nonzero(free)[0]
            cols = (target[free] - 1) * n_endo + self.endo_index[var]
            patterns.append(_ReadPattern(read=(var, offset), rows=rows, cols=cols))
        return patterns

    def _read_values(self, matrix: np.ndarray, eq: Equation) -> dict[Read, np.ndarray]:
        return {
            (var, offset): matrix[self._interior + offset, self.var_index[var]]
            for var, offset in eq.reads
        }

    def _residual(self, eq: Equation, values: Mapping[Read, np.ndarray]) -> np.ndarray:
        out = np.asarray(eq.residual_fn(values), dtype=float)
        return np.broadcast_to(out, (self.n_free_periods,))

    def _gradient(self, eq: Equation, values: dict[Read, np.ndarray]) -> dict[Read, np.ndarray]:
        n = self.n_free_periods
        if eq.gradient_fn is not None:
            raw = eq.gradient_fn(values)
            return {
                read: np.broadcast_to(np.asarray(raw.get(read, 0.0), dtype=float), (n,))
                for read in eq.reads
            }

        # 解析的勾配がない方程式は中心差分で近似する
        step = SOLVER_CONSTANTS.finite_difference_step
        grads: dict[Read, np.ndarray] = {}
        for read in eq.reads:
            base = values[read]
            h = step * np.maximum(1.0, np.abs(base))
            up = dict(values)
            down = dict(values)
            up[read] = base + h
            down[read] = base - h
            grads[read] = (self._residual(eq, up) - self._residual(eq, down)) / (2.0 * h)
        return grads

    def residuals(self, path: Path) -> np.ndarray:
        """積み上げ残差ベクトル F"""
        matrix = self._checked_matrix(path)
        F = np.empty((self.n_free_periods, self.n_equations))
        for i, eq in enumerate(self.equations):
            F[:, i] = self._residual(eq, self._read_values(matrix, eq))
        return F.reshape(-1)

    def evaluate(self, path: Path) -> tuple[np.ndarray, sp.csc_matrix]:
        """(F, J) を返す"""
        matrix = self._checked_matrix(path)
        n_eq = self.n_equations
        F = np.empty((self.n_free_periods, n_eq))

        rows: list[np.ndarray] = []
        cols: list[np.ndarray] = []
        data: list[np.ndarray] = []
        for i, eq in enumerate(self.equations):
            values = self._read_values(matrix, eq)
            F[:, i] = self._residual(eq, values)
            grads = self._gradient(eq, values)
            for pattern in self._patterns[i]:
                rows.append(pattern.rows * n_eq + i)
                cols.append(pattern.cols)
                data.append(grads[pattern.read][pattern.rows])

        n = self.n_unknowns
        J = sp.coo_matrix(
            (
                np.concatenate(data) if data else np.empty(0),
                (
                    np.concatenate(rows) if rows else np.empty(0, dtype=int),
                    np.concatenate(cols) if cols else np.empty(0, dtype=int),
                ),
            ),
            shape=(n, n),
        ).tocsc()
        return F.reshape(-1), J

    def finite_difference_jacobian(
        self, path: Path, step: float = SOLVER_CONSTANTS.finite_difference_step
    ) -> np.ndarray:
        """自由要素ごとの中心差分による密ヤコビアン（検証用）"""
        work = path.copy()
        x0 = work.free_vector()
        J = np.zeros((self.n_unknowns, x0.size))
        for k in range(x0.size):
            h = step * max(1.0, abs(x0[k]))
            x = x0.copy()
            x[k] = x0[k] + h
            work.set_free_vector(x)
            f_up = self.residuals(work)
            x[k] = x0[k] - h
            work.set_free_vector(x)
            f_down = self.residuals(work)
            J[:, k] = (f_up - f_down) / (2.0 * h)
        return J

    def jacobian_error(
        self, path: Path, step: float = SOLVER_CONSTANTS.finite_difference_step
    ) -> float:
        """||J_numeric - J_analytic||_max"""
        _, J = self.evaluate(path)
        numeric = self.finite_difference_jacobian(path, step)
        return float(np.max(np.abs(numeric - J.toarray()), initial=0.0))

    def _checked_matrix(self, path: Path) -> np.ndarray:
        if path.horizon != self.horizon:
            raise BoundaryReferenceError(
                f"パスの期間数({path.horizon})が評価器の期間数({self.horizon})と一致しません"
            )
        if path.variable_names != tuple(v.name for v in self.variables):
            raise UnknownVariableError("パスの変数並びがモデルと一致しません")
        return path.as_matrix()
