"""完全予見ソルバー

積み上げシステム F(X) = 0 を全期間同時に解く。

モード:
    NEWTON: Newton-Raphson法。境界制約つき方程式は
            min(x - lb, max(x - ub, F)) = 0 に再定式化し、
            一般化ヤコビアンで半平滑Newton法として解く
    MCP:    能動集合法。制約を全て非能動で開始し、各能動集合のもとで
            Newton法を収束させた後、境界違反の変数を固定（能動化）し、
            符号条件に反する能動変数を解放する。能動集合が変化しなくなれば終了
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from elb_simulator.core.complementarity import (
    BoundConstraint,
    ComplementaritySpec,
    ConstraintFormulation,
)
from elb_simulator.core.evaluator import ResidualJacobianEvaluator
from elb_simulator.core.exceptions import SolverDivergedError, ValidationError
from elb_simulator.core.path import Path
from elb_simulator.parameters.constants import SOLVER_CONSTANTS

__all__ = [
    "ActiveBound",
    "PerfectForesightSolver",
    "SolveMode",
    "SolverConfig",
    "SolverDiagnostics",
    "complementarity_gap",
]

logger = logging.getLogger(__name__)


class SolveMode(Enum):
    """ソルバーモード（モデル構築時に一度だけ選択する）"""

    NEWTON = "newton"
    MCP = "mcp"


@dataclass(frozen=True)
class SolverConfig:
    """ソルバー設定"""

    tol: float = SOLVER_CONSTANTS.default_tolerance
    max_iter: int = SOLVER_CONSTANTS.default_max_iterations
    cycle_limit: int = SOLVER_CONSTANTS.default_cycle_limit

    def __post_init__(self) -> None:
        if not self.tol > 0.0:
            raise ValidationError(f"tol は正である必要があります: {self.tol}")
        if self.max_iter < 1:
            raise ValidationError(f"max_iter は1以上である必要があります: {self.max_iter}")
        if self.cycle_limit < 1:
            raise ValidationError(f"cycle_limit は1以上である必要があります: {self.cycle_limit}")


@dataclass(frozen=True)
class ActiveBound:
    """境界に張り付いた (変数, 期間)"""

    variable: str
    period: int
    side: str  # "lower" or "upper"


@dataclass
class SolverDiagnostics:
    """収束時の診断情報"""

    mode: SolveMode
    iterations: int
    residual_norm: float
    active_set: tuple[ActiveBound, ...] = ()
    active_set_changes: int = 0
    message: str = ""

    def active_periods(self) -> dict[str, list[int]]:
        """変数ごとの境界に張り付いた期間"""
        out: dict[str, list[int]] = {}
        for bound in self.active_set:
            out.setdefault(bound.variable, []).append(bound.period)
        return out


@dataclass
class _BoundEntries:
    """制約を内部期間ごとに展開した行・列・境界の配列"""

    rows: np.ndarray
    cols: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    variables: list[str] = field(default_factory=list)
    periods: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=int))

    @property
    def size(self) -> int:
        return int(self.rows.size)


def _expand(
    evaluator: ResidualJacobianEvaluator, constraints: tuple[BoundConstraint, ...]
) -> _BoundEntries:
    periods = np.arange(1, evaluator.horizon - 1)
    rows, cols, lower, upper, names, per = [], [], [], [], [], []
    for c in constraints:
        rows.append(np.array([evaluator.row_index(c.equation, t) for t in periods], dtype=int))
        cols.append(np.array([evaluator.column_index(c.variable, t) for t in periods], dtype=int))
        lower.append(np.full(periods.size, c.lower_bound))
        upper.append(np.full(periods.size, c.upper_bound))
        names.extend([c.variable] * periods.size)
        per.append(periods)
    if not constraints:
        empty_i = np.empty(0, dtype=int)
        return _BoundEntries(empty_i, empty_i, np.empty(0), np.empty(0))
    return _BoundEntries(
        rows=np.concatenate(rows),
        cols=np.concatenate(cols),
        lower=np.concatenate(lower),
        upper=np.concatenate(upper),
        variables=names,
        periods=np.concatenate(per),
    )


def _replace_rows(J: sp.spmatrix, rows: np.ndarray, cols: np.ndarray) -> sp.csc_matrix:
    """指定行を単位行 e_col に置き換える（x - bound = 0 の行）"""
    if rows.size == 0:
        return sp.csc_matrix(J)
    n = J.shape[0]
    keep = np.ones(n)
    keep[rows] = 0.0
    unit = sp.coo_matrix((np.ones(rows.size), (rows, cols)), shape=J.shape)
    return (sp.diags(keep) @ J + unit).tocsc()


def _reformulate(
    F: np.ndarray, J: sp.spmatrix, x: np.ndarray, entries: _BoundEntries
) -> tuple[np.ndarray, sp.csc_matrix]:
    """min(x - lb, max(x - ub, F)) による再定式化と一般化ヤコビアン"""
    if entries.size == 0:
        return F, sp.csc_matrix(J)
    xv = x[entries.cols]
    f = F[entries.rows]
    upper_branch = np.maximum(xv - entries.upper, f)
    clamp_low = (xv - entries.lower) < upper_branch
    clamp_up = ~clamp_low & ((xv - entries.upper) > f)

    out = F.copy()
    out[entries.rows] = np.where(clamp_low, xv - entries.lower, upper_branch)
    clamped = clamp_low | clamp_up
    return out, _replace_rows(J, entries.rows[clamped], entries.cols[clamped])


def complementarity_gap(
    evaluator: ResidualJacobianEvaluator,
    constraints: ComplementaritySpec,
    path: Path,
    tol: float = SOLVER_CONSTANTS.default_tolerance,
) -> float:
    """境界・相補スラック条件の最大違反量

    下限に張り付いた要素は F >= 0、上限は F <= 0、内部は F = 0 を要求する。
    """
    entries = _expand(evaluator, constraints.constraints())
    if entries.size == 0:
        return 0.0
    F = evaluator.residuals(path)
    x = path.free_vector()
    xv = x[entries.cols]
    f = F[entries.rows]

    bound_violation = np.maximum.reduce(
        [entries.lower - xv, xv - entries.upper, np.zeros_like(xv)]
    )
    at_lower = np.abs(xv - entries.lower) <= tol
    at_upper = np.abs(xv - entries.upper) <= tol
    sign_violation = np.where(
        at_lower,
        np.maximum(-f, 0.0),
        np.where(at_upper, np.maximum(f, 0.0), np.abs(f)),
    )
    return float(np.max(np.maximum(bound_violation, sign_violation)))


class PerfectForesightSolver:
    """積み上げシステムの完全予見ソルバー

    パスはその場で更新される。発散時はソルブ前の値に戻してから例外を送出する。
    """

    def __init__(
        self,
        evaluator: ResidualJacobianEvaluator,
        constraints: ComplementaritySpec,
        config: SolverConfig | None = None,
        mode: SolveMode = SolveMode.NEWTON,
    ) -> None:
        self.evaluator = evaluator
        self.constraints = constraints
        self.config = config or SolverConfig()
        self.mode = mode

    def solve(self, path: Path) -> SolverDiagnostics:
        """パスを収束させ、診断情報を返す"""
        snapshot = path.free_vector()
        try:
            if self.mode is SolveMode.MCP:
                diagnostics = self._solve_mcp(path)
            else:
                diagnostics = self._solve_newton(path)
        except SolverDivergedError as e:
            path.set_free_vector(snapshot)
            logger.warning("完全予見ソルバーが発散しました: %s", e)
            raise

        logger.info(
            "%sモードで収束: 反復 %d, ||F||_inf=%.3e, 能動境界 %d",
            self.mode.value,
            diagnostics.iterations,
            diagnostics.residual_norm,
            len(diagnostics.active_set),
        )
        return diagnostics

    def _solve_newton(self, path: Path) -> SolverDiagnostics:
        # NEWTONモードではMCPタグもmax再定式化として扱う
        entries = _expand(self.evaluator, self.constraints.constraints())
        x = path.free_vector()
        norm = np.inf

        for k in range(self.config.max_iter + 1):
            F, J = self.evaluator.evaluate(path)
            F, J = _reformulate(F, J, x, entries)
            norm = self._norm(F, k)
            logger.debug("Newton 反復 %d: ||F||_inf=%.3e", k, norm)

            if norm < self.config.tol:
                return SolverDiagnostics(
                    mode=SolveMode.NEWTON,
                    iterations=k,
                    residual_norm=norm,
                    active_set=self._bounds_hit(entries, x),
                    message="Newton法が収束しました",
                )
            if k == self.config.max_iter:
                break

            x = x + self._linear_solve(J, F, norm, k)
            path.set_free_vector(x)

        raise SolverDivergedError("Newton法が反復上限内に収束しません", norm, self.config.max_iter)

    def _solve_mcp(self, path: Path) -> SolverDiagnostics:
        tagged = _expand(self.evaluator, self.constraints.constraints(ConstraintFormulation.MCP))
        smooth = _expand(self.evaluator, self.constraints.constraints(ConstraintFormulation.MAX))
        tol = self.config.tol

        # 0: 非能動, -1: 下限で固定, +1: 上限で固定
        state = np.zeros(tagged.size, dtype=np.int8)
        visits: Counter[bytes] = Counter({state.tobytes(): 1})
        changes = 0
        x = path.free_vector()
        norm = np.inf

        for k in range(self.config.max_iter + 1):
            F, J = self.evaluator.evaluate(path)
            F, J = _reformulate(F, J, x, smooth)
            f_tagged = F[tagged.rows]

            active = state != 0
            bound = np.where(state < 0, tagged.lower, tagged.upper)
            F_sys = F.copy()
            F_sys[tagged.rows[active]] = x[tagged.cols[active]] - bound[active]
            J_sys = _replace_rows(J, tagged.rows[active], tagged.cols[active])

            norm = self._norm(F_sys, k)
            logger.debug("MCP 反復 %d: ||F||_inf=%.3e, 能動 %d", k, norm, int(active.sum()))

            if norm < tol:
                xv = x[tagged.cols]
                activate_low = (state == 0) & (xv < tagged.lower - tol)
                activate_up = (state == 0) & (xv > tagged.upper + tol)
                release = ((state < 0) & (f_tagged < -tol)) | ((state > 0) & (f_tagged > tol))

                n_flips = int(activate_low.sum() + activate_up.sum() + release.sum())
                if n_flips == 0:
                    return SolverDiagnostics(
                        mode=SolveMode.MCP,
                        iterations=k,
                        residual_norm=norm,
                        active_set=self._active_bounds(tagged, state)
                        + self._bounds_hit(smooth, x),
                        active_set_changes=changes,
                        message="能動集合法が収束しました",
                    )

                state[release] = 0
                state[activate_low] = -1
                state[activate_up] = 1
                x[tagged.cols[activate_low]] = tagged.lower[activate_low]
                x[tagged.cols[activate_up]] = tagged.upper[activate_up]
                path.set_free_vector(x)
                changes += n_flips

                signature = state.tobytes()
                visits[signature] += 1
                if visits[signature] > self.config.cycle_limit:
                    raise SolverDivergedError(
                        "能動集合が循環しています（同じ能動集合へ再突入）", norm, k
                    )
                continue

            if k == self.config.max_iter:
                break

            x = x + self._linear_solve(J_sys, F_sys, norm, k)
            path.set_free_vector(x)

        raise SolverDivergedError("能動集合法が反復上限内に収束しません", norm, self.config.max_iter)

    @staticmethod
    def _norm(F: np.ndarray, iteration: int) -> float:
        if not np.all(np.isfinite(F)):
            raise SolverDivergedError("残差が有限値ではありません", np.inf, iteration)
        return float(np.max(np.abs(F), initial=0.0))

    @staticmethod
    def _linear_solve(J: sp.csc_matrix, F: np.ndarray, norm: float, iteration: int) -> np.ndarray:
        """J·Δ = -F を疎LU分解で解く"""
        try:
            lu = spla.splu(sp.csc_matrix(J))
        except RuntimeError as e:
            raise SolverDivergedError(f"ヤコビアンが特異です: {e}", norm, iteration) from e
        dx = lu.solve(-F)
        if not np.all(np.isfinite(dx)):
            raise SolverDivergedError("Newtonステップが有限値ではありません", norm, iteration)
        return dx

    def _bounds_hit(self, entries: _BoundEntries, x: np.ndarray) -> tuple[ActiveBound, ...]:
        if entries.size == 0:
            return ()
        xv = x[entries.cols]
        tol = self.config.tol
        state = np.where(
            np.abs(xv - entries.lower) <= tol,
            -1,
            np.where(np.abs(xv - entries.upper) <= tol, 1, 0),
        ).astype(np.int8)
        return self._active_bounds(entries, state)

    @staticmethod
    def _active_bounds(entries: _BoundEntries, state: np.ndarray) -> tuple[ActiveBound, ...]:
        return tuple(
            ActiveBound(
                variable=entries.variables[k],
                period=int(entries.periods[k]),
                side="lower" if state[k] < 0 else "upper",
            )
            for k in np.nonzero(state)[0]
        )
