"""完全予見パス

期間 × 変数 の密行列で全変数の時間経路を保持する。

    期間 0            : 初期条件（ショック前）
    期間 1..H-2       : 内部期間（内生変数はソルバーが解く）
    期間 H-1          : 終端条件（定常状態）

内部期間は終端状態で初期化する（完全予見問題の標準的な初期値）。
"""

from collections.abc import Mapping, Sequence

import numpy as np

from elb_simulator.core.exceptions import (
    BoundaryReferenceError,
    ShockValidationError,
    ValidationError,
)
from elb_simulator.core.registry import Variable
from elb_simulator.parameters.constants import SIMULATION_LIMITS, SOLVER_CONSTANTS


def _state_vector(
    variables: Sequence[Variable], state: Mapping[str, float], label: str
) -> np.ndarray:
    names = {v.name for v in variables}
    unknown = sorted(set(state) - names)
    if unknown:
        raise ValidationError(f"{label}に未宣言の変数があります: {unknown}")
    return np.array([float(state.get(v.name, 0.0)) for v in variables])


class Path:
    """全期間の変数経路"""

    def __init__(
        self,
        variables: Sequence[Variable],
        values: np.ndarray,
        terminal_state: np.ndarray,
    ) -> None:
        self.variables = tuple(variables)
        self.var_index = {v.name: j for j, v in enumerate(self.variables)}
        self._values = np.array(values, dtype=float)
        self._terminal = np.array(terminal_state, dtype=float)

        if self._values.ndim != 2 or self._values.shape[1] != len(self.variables):
            raise ValidationError("パス行列の形状が変数数と一致しません")
        self._endogenous_cols = np.array(
            [j for j, v in enumerate(self.variables) if v.is_endogenous], dtype=int
        )

    @classmethod
    def create(
        cls,
        variables: Sequence[Variable],
        horizon: int,
        initial_state: Mapping[str, float],
        terminal_state: Mapping[str, float],
    ) -> "Path":
        """初期・終端条件からパスを構築

        宣言されていない変数名はエラー、省略された変数は 0.0（定常状態からの乖離）。
        """
        limits = SIMULATION_LIMITS
        if not limits.min_horizon <= horizon <= limits.max_horizon:
            raise ValidationError(
                f"horizon は {limits.min_horizon} 以上 {limits.max_horizon} 以下: {horizon}"
            )

        initial = _state_vector(variables, initial_state, "初期状態")
        terminal = _state_vector(variables, terminal_state, "終端状態")

        values = np.tile(terminal, (horizon, 1))
        values[0] = initial
        return cls(variables, values, terminal)

    @property
    def horizon(self) -> int:
        return self._values.shape[0]

    @property
    def n_free_periods(self) -> int:
        return self.horizon - 2

    @property
    def variable_names(self) -> tuple[str, ...]:
        return tuple(v.name for v in self.variables)

    def apply_shock(self, variable: str, period: int, value: float) -> None:
        """外生変数の値を特定期間で上書きする

        同じ (変数, 期間) への再指定は後勝ち。
        """
        if variable not in self.var_index:
            raise ShockValidationError(f"未宣言のショック変数です: '{variable}'")
        if self.variables[self.var_index[variable]].is_endogenous:
            raise ShockValidationError(f"'{variable}' は内生変数のためショックを与えられません")
        if not 0 <= period <= self.horizon - 1:
            raise BoundaryReferenceError(
                f"ショック期間 {period} が範囲 [0, {self.horizon - 1}] の外です"
            )
        self._values[period, self.var_index[variable]] = float(value)

    def as_matrix(self) -> np.ndarray:
        """(期間 × 変数) の読み取り専用ビュー"""
        view = self._values.view()
        view.flags.writeable = False
        return view

    def series(self, variable: str) -> np.ndarray:
        """1変数の時系列（コピー）"""
        return self._values[:, self.var_index[variable]].copy()

    def is_terminal_anchored(self, atol: float = SOLVER_CONSTANTS.terminal_anchor_tolerance) -> bool:
        """最終期が終端状態に一致しているか"""
        return bool(np.allclose(self._values[-1], self._terminal, rtol=0.0, atol=atol))

    def free_vector(self) -> np.ndarray:
        """内部期間の内生変数を期間優先で並べたベクトル"""
        return self._values[1:-1][:, self._endogenous_cols].reshape(-1).copy()

    def set_free_vector(self, x: np.ndarray) -> None:
        block = np.asarray(x, dtype=float).reshape(self.n_free_periods, len(self._endogenous_cols))
        self._values[1:-1, self._endogenous_cols] = block

    def copy(self) -> "Path":
        return Path(self.variables, self._values, self._terminal)

    def to_records(self) -> list[dict[str, float]]:
        """期間ごとの {変数: 値} のリスト"""
        names = self.variable_names
        return [
            {"period": float(t), **dict(zip(names, row, strict=True))}
            for t, row in enumerate(self._values.tolist())
        ]

    def __repr__(self) -> str:
        return f"Path(horizon={self.horizon}, variables={list(self.variable_names)})"
