"""出力スキーマ定義"""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from elb_simulator.core.model import PerfectForesightResult


class VariableTimeSeries(BaseModel):
    """変数の時系列"""

    name: str
    long_name: str = ""
    values: list[float]
    lower_bound: float | None = None
    upper_bound: float | None = None

    @property
    def minimum(self) -> float:
        return min(self.values)

    @property
    def maximum(self) -> float:
        return max(self.values)


class ShockRecord(BaseModel):
    """適用したショック"""

    variable: str
    period: int
    value: float


class SolverSummary(BaseModel):
    """ソルバー診断情報の要約"""

    mode: str
    iterations: int
    residual_norm: float
    active_set_changes: int = 0
    active_periods: dict[str, list[int]] = Field(default_factory=dict)


class SimulationResult(BaseModel):
    """完全予見シミュレーション結果"""

    model_name: str
    horizon: int
    shocks: list[ShockRecord] = Field(default_factory=list)
    variables: dict[str, VariableTimeSeries]
    solver: SolverSummary
    parameters: dict[str, float] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_result(
        cls,
        model_name: str,
        result: PerfectForesightResult,
        shocks: list[tuple[str, int, float]] | None = None,
        long_names: dict[str, str] | None = None,
        bounds: dict[str, tuple[float | None, float | None]] | None = None,
        parameters: dict[str, float] | None = None,
    ) -> "SimulationResult":
        long_names = long_names or {}
        bounds = bounds or {}
        path = result.path
        variables = {}
        for name in path.variable_names:
            lower, upper = bounds.get(name, (None, None))
            variables[name] = VariableTimeSeries(
                name=name,
                long_name=long_names.get(name, ""),
                values=path.series(name).tolist(),
                lower_bound=lower,
                upper_bound=upper,
            )

        diag = result.diagnostics
        return cls(
            model_name=model_name,
            horizon=path.horizon,
            shocks=[ShockRecord(variable=v, period=t, value=x) for v, t, x in shocks or []],
            variables=variables,
            solver=SolverSummary(
                mode=diag.mode.value,
                iterations=diag.iterations,
                residual_norm=diag.residual_norm,
                active_set_changes=diag.active_set_changes,
                active_periods=diag.active_periods(),
            ),
            parameters=parameters or {},
        )

    def save_json(self, path: Path) -> Path:
        """JSONとして保存"""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path


class ModeComparison(BaseModel):
    """NEWTON/MCPモードの比較結果"""

    newton: SimulationResult
    mcp: SimulationResult
    max_abs_difference: dict[str, float]

    @property
    def overall_difference(self) -> float:
        return max(self.max_abs_difference.values(), default=0.0)
