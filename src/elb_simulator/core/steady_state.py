"""定常状態ソルバー

全ての時点オフセットを同一時点に畳み込んだ静学体系を Newton 法で解く。
境界制約つき方程式は min(x - lb, max(x - ub, F)) に再定式化する。
（記号的な定常状態導出は行わない）
"""

import logging
from collections.abc import Mapping

import numpy as np

from elb_simulator.core.complementarity import ComplementaritySpec
from elb_simulator.core.exceptions import (
    ModelDefinitionError,
    SolverDivergedError,
    ValidationError,
)
from elb_simulator.core.registry import Equation, EquationRegistry, Read, Variable
from elb_simulator.core.solver import SolverConfig
from elb_simulator.parameters.constants import SOLVER_CONSTANTS

logger = logging.getLogger(__name__)


class SteadyStateSolver:
    """F(x̄, x̄, x̄; ē) = 0 を解く"""

    def __init__(
        self,
        variables: tuple[Variable, ...],
        registry: EquationRegistry,
        constraints: ComplementaritySpec,
        config: SolverConfig | None = None,
    ) -> None:
        self.variables = variables
        self.registry = registry
        self.constraints = constraints
        self.config = config or SolverConfig()
        self.endogenous = [v.name for v in variables if v.is_endogenous]
        self.endo_index = {name: j for j, name in enumerate(self.endogenous)}
        if len(registry) != len(self.endogenous):
            raise ModelDefinitionError(
                f"方程式数({len(registry)})と内生変数数({len(self.endogenous)})が一致しません"
            )

    def solve(
        self,
        guess: Mapping[str, float] | None = None,
        exogenous: Mapping[str, float] | None = None,
    ) -> dict[str, float]:
        """定常状態 {変数: 値} を返す（外生変数は指定値、既定 0.0）"""
        names = {v.name for v in self.variables}
        for label, mapping in (("初期値", guess or {}), ("外生値", exogenous or {})):
            unknown = sorted(set(mapping) - names)
            if unknown:
                raise ValidationError(f"{label}に未宣言の変数があります: {unknown}")

        exo = {
            v.name: float((exogenous or {}).get(v.name, 0.0))
            for v in self.variables
            if not v.is_endogenous
        }
        x = np.array([float((guess or {}).get(name, 0.0)) for name in self.endogenous])
        norm = np.inf

        for k in range(self.config.max_iter + 1):
            F, J = self._evaluate(x, exo)
            F, J = self._reformulate(F, J, x)
            if not np.all(np.isfinite(F)):
                raise SolverDivergedError("定常状態の残差が有限値ではありません", np.inf, k)
            norm = float(np.max(np.abs(F), initial=0.0))
            logger.debug("定常状態 反復 %d: ||F||_inf=%.3e", k, norm)
            if norm < self.config.tol:
                state = {name: float(x[j]) for j, name in enumerate(self.endogenous)}
                state.update(exo)
                return {v.name: state[v.name] for v in self.variables}
            if k == self.config.max_iter:
                break
            try:
                dx = np.linalg.solve(J, -F)
            except np.linalg.LinAlgError as e:
                raise SolverDivergedError(f"定常状態のヤコビアンが特異です: {e}", norm, k) from e
            x = x + dx

        raise SolverDivergedError("定常状態が反復上限内に収束しません", norm, self.config.max_iter)

    def _evaluate(self, x: np.ndarray, exo: Mapping[str, float]) -> tuple[np.ndarray, np.ndarray]:
        n = x.size
        F = np.zeros(len(self.registry))
        J = np.zeros((len(self.registry), n))
        level = {name: x[j] for j, name in enumerate(self.endogenous)} | exo

        for i, eq in enumerate(self.registry):
            values: dict[Read, np.ndarray] = {
                (var, offset): np.array([level[var]]) for var, offset in eq.reads
            }
            F[i] = float(np.asarray(eq.residual_fn(values), dtype=float).reshape(-1)[0])
            for (var, offset), deriv in self._gradient(eq, values).items():
                if var in self.endo_index:
                    J[i, self.endo_index[var]] += deriv
        return F, J

    @staticmethod
    def _gradient(eq: Equation, values: dict[Read, np.ndarray]) -> dict[Read, float]:
        if eq.gradient_fn is not None:
            raw = eq.gradient_fn(values)
            return {
                read: float(np.asarray(raw.get(read, 0.0), dtype=float).reshape(-1)[0])
                for read in eq.reads
            }
        grads: dict[Read, float] = {}
        for read in eq.reads:
            base = values[read]
            h = SOLVER_CONSTANTS.finite_difference_step * max(1.0, abs(float(base[0])))
            up = dict(values)
            down = dict(values)
            up[read] = base + h
            down[read] = base - h
            f_up = float(np.asarray(eq.residual_fn(up), dtype=float).reshape(-1)[0])
            f_down = float(np.asarray(eq.residual_fn(down), dtype=float).reshape(-1)[0])
            grads[read] = (f_up - f_down) / (2.0 * h)
        return grads

    def _reformulate(
        self, F: np.ndarray, J: np.ndarray, x: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        F = F.copy()
        J = J.copy()
        for c in self.constraints.constraints():
            row = self.registry.index(c.equation)
            col = self.endo_index[c.variable]
            xv, f = x[col], F[row]
            upper_branch = max(xv - c.upper_bound, f)
            if xv - c.lower_bound < upper_branch:
                F[row] = xv - c.lower_bound
            elif xv - c.upper_bound > f:
                F[row] = xv - c.upper_bound
            else:
                continue
            J[row] = 0.0
            J[row, col] = 1.0
        return F, J
