"""残差・ヤコビアン評価器のテスト"""

from collections.abc import Mapping

import numpy as np
import pytest

from elb_simulator.core.evaluator import ResidualJacobianEvaluator
from elb_simulator.core.exceptions import (
    BoundaryReferenceError,
    ModelDefinitionError,
    UnknownVariableError,
)
from elb_simulator.core.nk_elb_model import build_nk_elb_model
from elb_simulator.core.path import Path
from elb_simulator.core.registry import EquationRegistry, Read, Variable, VariableRole
from elb_simulator.core.solver import SolveMode
from elb_simulator.parameters.constants import SOLVER_CONSTANTS

AR_VARIABLES = (Variable("x"), Variable("e", VariableRole.EXOGENOUS))


def _ar_registry() -> EquationRegistry:
    """x_t - 0.5·x_{t-1} - 0.2·x_{t+1} - e_t = 0"""
    registry = EquationRegistry()
    registry.add_equation(
        "ar",
        lambda v: v[("x", 0)] - 0.5 * v[("x", -1)] - 0.2 * v[("x", 1)] - v[("e", 0)],
        [("x", 0), ("x", -1), ("x", 1), ("e", 0)],
        gradient_fn=lambda v: {("x", 0): 1.0, ("x", -1): -0.5, ("x", 1): -0.2, ("e", 0): -1.0},
    )
    return registry


def _nonlinear_residual(v: Mapping[Read, np.ndarray]) -> np.ndarray:
    return v[("x", 0)] - 0.5 * v[("x", -1)] ** 2 - np.exp(v[("x", 1)]) + 1.0


def _nonlinear_gradient(v: Mapping[Read, np.ndarray]) -> dict[Read, np.ndarray]:
    return {
        ("x", 0): np.ones_like(v[("x", 0)]),
        ("x", -1): -v[("x", -1)],
        ("x", 1): -np.exp(v[("x", 1)]),
    }


def _nonlinear_registry(with_gradient: bool) -> EquationRegistry:
    registry = EquationRegistry()
    registry.add_equation(
        "nonlinear",
        _nonlinear_residual,
        [("x", 0), ("x", -1), ("x", 1)],
        gradient_fn=_nonlinear_gradient if with_gradient else None,
    )
    return registry


class TestStackedLayout:
    """積み上げシステムの並びのテスト"""

    def test_tridiagonal_jacobian(self) -> None:
        """境界期は列に現れず、内部期間は三重対角になる"""
        evaluator = ResidualJacobianEvaluator(AR_VARIABLES, _ar_registry(), 5)
        path = Path.create(AR_VARIABLES, 5, {}, {})
        F, J = evaluator.evaluate(path)

        expected = np.array(
            [
                [1.0, -0.2, 0.0],
                [-0.5, 1.0, -0.2],
                [0.0, -0.5, 1.0],
            ]
        )
        np.testing.assert_allclose(J.toarray(), expected)
        np.testing.assert_allclose(F, np.zeros(3))

    def test_boundary_values_enter_residual(self) -> None:
        evaluator = ResidualJacobianEvaluator(AR_VARIABLES, _ar_registry(), 4)
        path = Path.create(AR_VARIABLES, 4, {"x": 1.0}, {"x": 2.0})
        path.set_free_vector(np.zeros(2))
        path.apply_shock("e", 2, 0.3)

        F = evaluator.residuals(path)
        # t=1: 0 - 0.5·1 - 0.2·0 - 0,  t=2: 0 - 0 - 0.2·2 - 0.3
        np.testing.assert_allclose(F, [-0.5, -0.7])

    def test_row_and_column_index(self) -> None:
        model = build_nk_elb_model(mode=SolveMode.MCP)
        evaluator = model.evaluator(10)

        assert evaluator.n_unknowns == 8 * 4
        assert evaluator.row_index("phillips", 1) == 0
        assert evaluator.row_index("taylor", 1) == 2
        assert evaluator.row_index("taylor", 3) == 2 * 4 + 2
        assert evaluator.column_index("i", 2) == 4 + 2

    def test_nonzero_columns_follow_declared_reads(self) -> None:
        """各行の非ゼロ列は宣言した (変数, オフセット) に一致する"""
        model = build_nk_elb_model(mode=SolveMode.MCP)
        evaluator = model.evaluator(10)
        path = model.create_path(10, {}, {})
        _, J = evaluator.evaluate(path)
        dense = J.toarray()

        row = evaluator.row_index("phillips", 4)
        expected = {
            evaluator.column_index("pi", 4),
            evaluator.column_index("pi", 5),
            evaluator.column_index("y", 4),
        }
        assert set(np.nonzero(dense[row])[0]) == expected

        row = evaluator.row_index("demand", 1)
        # d_{0} は境界期なので列に現れない
        assert set(np.nonzero(dense[row])[0]) == {evaluator.column_index("d", 1)}


class TestJacobianConsistency:
    """差分ヤコビアンとの整合性"""

    def test_nk_model(self) -> None:
        model = build_nk_elb_model(mode=SolveMode.MCP)
        evaluator = model.evaluator(12)
        path = model.create_path(12, {"d": -0.01}, {})
        rng = np.random.default_rng(0)
        path.set_free_vector(rng.normal(scale=0.01, size=evaluator.n_unknowns))

        assert evaluator.jacobian_error(path) < SOLVER_CONSTANTS.jacobian_check_tolerance

    @pytest.mark.parametrize("with_gradient", [True, False])
    def test_nonlinear_equation(self, with_gradient: bool) -> None:
        """解析的勾配・数値微分のどちらでも整合する"""
        variables = (Variable("x"),)
        evaluator = ResidualJacobianEvaluator(variables, _nonlinear_registry(with_gradient), 8)
        path = Path.create(variables, 8, {"x": 0.3}, {"x": 0.1})
        rng = np.random.default_rng(1)
        path.set_free_vector(rng.uniform(-0.5, 0.5, size=6))

        assert evaluator.jacobian_error(path) < SOLVER_CONSTANTS.jacobian_check_tolerance


class TestConstructionErrors:
    """構築時のエラー"""

    def test_offset_beyond_horizon(self) -> None:
        """±1を超えるオフセットは期間外参照"""
        registry = EquationRegistry()
        registry.add_equation("lead2", lambda v: v[("x", 2)], [("x", 2)])
        with pytest.raises(BoundaryReferenceError):
            ResidualJacobianEvaluator((Variable("x"),), registry, 10)

    def test_unknown_variable(self) -> None:
        registry = EquationRegistry()
        registry.add_equation("bad", lambda v: v[("z", 0)], [("z", 0)])
        with pytest.raises(UnknownVariableError):
            ResidualJacobianEvaluator((Variable("x"),), registry, 10)

    def test_equation_count_mismatch(self) -> None:
        registry = EquationRegistry()
        registry.add_equation("only", lambda v: v[("x", 0)], [("x", 0)])
        with pytest.raises(ModelDefinitionError):
            ResidualJacobianEvaluator((Variable("x"), Variable("y")), registry, 10)

    def test_horizon_without_interior(self) -> None:
        with pytest.raises(BoundaryReferenceError):
            ResidualJacobianEvaluator(AR_VARIABLES, _ar_registry(), 2)

    def test_registry_frozen_after_construction(self) -> None:
        registry = _ar_registry()
        ResidualJacobianEvaluator(AR_VARIABLES, registry, 5)
        assert registry.frozen

    def test_path_horizon_mismatch(self) -> None:
        evaluator = ResidualJacobianEvaluator(AR_VARIABLES, _ar_registry(), 5)
        path = Path.create(AR_VARIABLES, 6, {}, {})
        with pytest.raises(BoundaryReferenceError):
            evaluator.evaluate(path)
