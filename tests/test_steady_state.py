"""定常状態ソルバーのテスト"""

import math

import numpy as np
import pytest

from elb_simulator.core.exceptions import (
    ModelDefinitionError,
    SolverDivergedError,
    ValidationError,
)
from elb_simulator.core.model import PerfectForesightModel
from elb_simulator.core.registry import Parameter, Variable, VariableRole


def _ar_model() -> PerfectForesightModel:
    """x_t = 0.5·x_{t-1} + 0.2·x_{t+1} + e_t + 0.3"""
    model = PerfectForesightModel(
        "ar",
        [Variable("x"), Variable("e", VariableRole.EXOGENOUS)],
        parameters=[Parameter("c", 0.3)],
    )
    model.add_equation(
        "ar",
        lambda v: v[("x", 0)] - 0.5 * v[("x", -1)] - 0.2 * v[("x", 1)] - v[("e", 0)] - 0.3,
        [("x", 0), ("x", -1), ("x", 1), ("e", 0)],
    )
    return model


class TestSteadyState:
    """SteadyStateSolverのテスト"""

    def test_offsets_collapse_to_same_period(self) -> None:
        """x̄ = 0.5x̄ + 0.2x̄ + 0.3 → x̄ = 1

        停止条件 |F| < 1e-10 と傾き 0.3 から、誤差は 1e-9 以内
        """
        steady = _ar_model().steady_state()
        assert steady["x"] == pytest.approx(1.0, abs=1e-9)
        assert steady["e"] == 0.0

    def test_exogenous_level(self) -> None:
        steady = _ar_model().steady_state(exogenous={"e": 0.3})
        assert steady["x"] == pytest.approx(2.0, abs=1e-9)

    def test_nonlinear_with_guess(self) -> None:
        model = PerfectForesightModel("log", [Variable("x")])
        model.add_equation("log", lambda v: np.log(v[("x", 0)]) - 1.0, [("x", 0)])
        steady = model.steady_state(guess={"x": 1.0})
        assert steady["x"] == pytest.approx(math.e, rel=1e-10)

    def test_bound_is_respected(self) -> None:
        """x̄ = -1 は下限0で打ち切られる"""
        model = PerfectForesightModel("bounded", [Variable("x")])
        model.add_equation("eq", lambda v: v[("x", 0)] + 1.0, [("x", 0)])
        model.mark_complementary("eq", "x", lower_bound=0.0)
        assert model.steady_state()["x"] == pytest.approx(0.0, abs=1e-12)

    def test_unknown_guess_variable(self) -> None:
        with pytest.raises(ValidationError):
            _ar_model().steady_state(guess={"z": 1.0})

    def test_singular_system(self) -> None:
        model = PerfectForesightModel("flat", [Variable("x")])
        model.add_equation(
            "flat",
            lambda v: v[("x", 0)] - v[("x", -1)] + 1.0,
            [("x", 0), ("x", -1)],
        )
        with pytest.raises(SolverDivergedError):
            model.steady_state()

    def test_equation_count_mismatch(self) -> None:
        """方程式が内生変数より少ないモデルは定義エラー"""
        model = PerfectForesightModel("short", [Variable("x"), Variable("y")])
        model.add_equation("only", lambda v: v[("x", 0)] - 1.0, [("x", 0)])
        with pytest.raises(ModelDefinitionError, match="一致しません"):
            model.steady_state()
