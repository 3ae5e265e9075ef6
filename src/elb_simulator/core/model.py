"""完全予見モデル本体

変数・パラメータ・方程式・境界制約を束ね、
完全予見パスを解くための入口を提供する。
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from elb_simulator.core.complementarity import BoundConstraint, ComplementaritySpec
from elb_simulator.core.evaluator import ResidualJacobianEvaluator
from elb_simulator.core.exceptions import (
    DuplicateNameError,
    ModelDefinitionError,
    UnknownVariableError,
)
from elb_simulator.core.path import Path
from elb_simulator.core.registry import (
    Equation,
    EquationRegistry,
    GradientFn,
    Parameter,
    Read,
    ResidualFn,
    Variable,
)
from elb_simulator.core.solver import (
    PerfectForesightSolver,
    SolveMode,
    SolverConfig,
    SolverDiagnostics,
)
from elb_simulator.core.steady_state import SteadyStateSolver

Shock = tuple[str, int, float]


@dataclass
class PerfectForesightResult:
    """収束したパスと診断情報"""

    path: Path
    diagnostics: SolverDiagnostics


class PerfectForesightModel:
    """完全予見モデル

    モードはモデル構築時に一度だけ選ぶ。solve(mode=...) による上書きは
    同一モデルでNEWTON/MCPを比較するためのもの。
    """

    def __init__(
        self,
        name: str,
        variables: Sequence[Variable],
        parameters: Iterable[Parameter] = (),
        mode: SolveMode = SolveMode.NEWTON,
    ) -> None:
        self.name = name
        self.mode = mode

        seen: set[str] = set()
        for var in variables:
            if var.name in seen:
                raise DuplicateNameError(f"変数名が重複しています: '{var.name}'")
            seen.add(var.name)
        self.variables = tuple(variables)

        self.parameters: dict[str, Parameter] = {}
        for param in parameters:
            if param.name in self.parameters or param.name in seen:
                raise DuplicateNameError(f"パラメータ名が重複しています: '{param.name}'")
            self.parameters[param.name] = param

        self.equations = EquationRegistry()
        self.constraints = ComplementaritySpec(self.equations)
        self._evaluators: dict[int, ResidualJacobianEvaluator] = {}

    @property
    def variable_names(self) -> tuple[str, ...]:
        return tuple(v.name for v in self.variables)

    @property
    def endogenous(self) -> tuple[str, ...]:
        return tuple(v.name for v in self.variables if v.is_endogenous)

    @property
    def exogenous(self) -> tuple[str, ...]:
        return tuple(v.name for v in self.variables if not v.is_endogenous)

    def parameter(self, name: str) -> float:
        return self.parameters[name].value

    def add_equation(
        self,
        name: str,
        residual_fn: ResidualFn,
        reads: Iterable[Read],
        gradient_fn: GradientFn | None = None,
        description: str = "",
    ) -> Equation:
        return self.equations.add_equation(name, residual_fn, reads, gradient_fn, description)

    def mark_complementary(
        self,
        equation_name: str,
        variable: str,
        lower_bound: float | None = None,
        upper_bound: float | None = None,
    ) -> BoundConstraint:
        self._require_endogenous(variable)
        return self.constraints.mark_complementary(
            equation_name, variable, lower_bound, upper_bound
        )

    def mark_max_reformulation(
        self,
        equation_name: str,
        variable: str,
        lower_bound: float | None = None,
        upper_bound: float | None = None,
    ) -> BoundConstraint:
        self._require_endogenous(variable)
        return self.constraints.mark_max_reformulation(
            equation_name, variable, lower_bound, upper_bound
        )

    def _require_endogenous(self, variable: str) -> None:
        for var in self.variables:
            if var.name == variable:
                if not var.is_endogenous:
                    raise ModelDefinitionError(f"境界制約は内生変数のみ: '{variable}'")
                return
        raise UnknownVariableError(f"未宣言の変数です: '{variable}'")

    def evaluator(self, horizon: int) -> ResidualJacobianEvaluator:
        """期間数ごとの評価器（初回構築時にモデルを凍結）"""
        if horizon not in self._evaluators:
            self._evaluators[horizon] = ResidualJacobianEvaluator(
                self.variables, self.equations, horizon
            )
        return self._evaluators[horizon]

    def create_path(
        self,
        horizon: int,
        initial_state: Mapping[str, float],
        terminal_state: Mapping[str, float],
        shocks: Iterable[Shock] = (),
    ) -> Path:
        path = Path.create(self.variables, horizon, initial_state, terminal_state)
        for variable, period, value in shocks:
            path.apply_shock(variable, period, value)
        return path

    def simulate(
        self,
        horizon: int,
        initial_state: Mapping[str, float],
        terminal_state: Mapping[str, float],
        shocks: Iterable[Shock] = (),
        mode: SolveMode | None = None,
        tol: float | None = None,
        max_iter: int | None = None,
    ) -> PerfectForesightResult:
        """完全予見パスを解き、パスと診断情報を返す

        Raises:
            SolverDivergedError: 収束しない場合（部分的な結果は返さない）
        """
        defaults = SolverConfig()
        config = SolverConfig(
            tol=defaults.tol if tol is None else tol,
            max_iter=defaults.max_iter if max_iter is None else max_iter,
        )
        path = self.create_path(horizon, initial_state, terminal_state, shocks)
        solver = PerfectForesightSolver(
            self.evaluator(horizon),
            self.constraints,
            config=config,
            mode=mode or self.mode,
        )
        diagnostics = solver.solve(path)
        return PerfectForesightResult(path=path, diagnostics=diagnostics)

    def solve(
        self,
        horizon: int,
        initial_state: Mapping[str, float],
        terminal_state: Mapping[str, float],
        shocks: Iterable[Shock] = (),
        mode: SolveMode | None = None,
        tol: float | None = None,
        max_iter: int | None = None,
    ) -> Path:
        """完全予見パスを解き、収束したパスを返す"""
        return self.simulate(
            horizon, initial_state, terminal_state, shocks, mode, tol, max_iter
        ).path

    def steady_state(
        self,
        guess: Mapping[str, float] | None = None,
        exogenous: Mapping[str, float] | None = None,
    ) -> dict[str, float]:
        """数値的に求めた定常状態"""
        solver = SteadyStateSolver(self.variables, self.equations, self.constraints)
        return solver.solve(guess, exogenous)
