"""完全予見パスのテスト"""

import numpy as np
import pytest

from elb_simulator.core.exceptions import (
    BoundaryReferenceError,
    ShockValidationError,
    ValidationError,
)
from elb_simulator.core.path import Path
from elb_simulator.core.registry import Variable, VariableRole

VARIABLES = (
    Variable("x"),
    Variable("y"),
    Variable("e", VariableRole.EXOGENOUS),
)


class TestPathCreate:
    """Path.createのテスト"""

    def test_interior_initialized_to_terminal_state(self) -> None:
        path = Path.create(VARIABLES, 5, {"x": 1.0, "y": 2.0}, {"x": 3.0, "y": 4.0})
        matrix = path.as_matrix()

        assert matrix.shape == (5, 3)
        np.testing.assert_array_equal(matrix[0], [1.0, 2.0, 0.0])
        for t in range(1, 5):
            np.testing.assert_array_equal(matrix[t], [3.0, 4.0, 0.0])
        assert path.is_terminal_anchored()

    def test_omitted_variables_default_to_zero(self) -> None:
        path = Path.create(VARIABLES, 4, {}, {"x": 1.0})
        assert path.series("y").tolist() == [0.0] * 4
        assert path.series("x").tolist() == [0.0, 1.0, 1.0, 1.0]

    def test_unknown_state_variable_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Path.create(VARIABLES, 4, {"z": 1.0}, {})

    @pytest.mark.parametrize("horizon", [0, 2])
    def test_horizon_too_short(self, horizon: int) -> None:
        with pytest.raises(ValidationError):
            Path.create(VARIABLES, horizon, {}, {})

    def test_matrix_view_is_read_only(self) -> None:
        path = Path.create(VARIABLES, 4, {}, {})
        with pytest.raises(ValueError):
            path.as_matrix()[1, 0] = 1.0


class TestApplyShock:
    """apply_shockのテスト"""

    @pytest.fixture
    def path(self) -> Path:
        return Path.create(VARIABLES, 6, {}, {})

    def test_shock_sets_single_entry(self, path: Path) -> None:
        path.apply_shock("e", 2, -0.01)
        assert path.series("e").tolist() == [0.0, 0.0, -0.01, 0.0, 0.0, 0.0]

    def test_later_shock_overrides_earlier(self, path: Path) -> None:
        """同じ (変数, 期間) への再指定は後勝ち"""
        path.apply_shock("e", 1, 0.5)
        path.apply_shock("e", 3, 0.2)
        path.apply_shock("e", 1, -0.1)
        assert path.series("e")[1] == -0.1
        assert path.series("e")[3] == 0.2

    @pytest.mark.parametrize("period", [-1, 6, 100])
    def test_out_of_range_period(self, path: Path, period: int) -> None:
        with pytest.raises(BoundaryReferenceError):
            path.apply_shock("e", period, 0.01)

    def test_boundary_periods_allowed(self, path: Path) -> None:
        path.apply_shock("e", 0, 0.1)
        path.apply_shock("e", 5, 0.2)
        assert path.series("e")[0] == 0.1
        assert path.series("e")[5] == 0.2

    def test_endogenous_variable_rejected(self, path: Path) -> None:
        with pytest.raises(ShockValidationError):
            path.apply_shock("x", 1, 0.01)

    def test_unknown_variable_rejected(self, path: Path) -> None:
        with pytest.raises(ShockValidationError):
            path.apply_shock("z", 1, 0.01)


class TestFreeVector:
    """自由要素ベクトルのテスト"""

    def test_period_major_layout(self) -> None:
        """内部期間の内生変数が期間優先で並ぶ"""
        path = Path.create(VARIABLES, 4, {}, {})
        path.set_free_vector(np.array([1.0, 2.0, 3.0, 4.0]))

        assert path.series("x").tolist() == [0.0, 1.0, 3.0, 0.0]
        assert path.series("y").tolist() == [0.0, 2.0, 4.0, 0.0]
        np.testing.assert_array_equal(path.free_vector(), [1.0, 2.0, 3.0, 4.0])

    def test_copy_is_independent(self) -> None:
        path = Path.create(VARIABLES, 4, {}, {})
        clone = path.copy()
        clone.set_free_vector(np.ones(4))
        assert path.free_vector().tolist() == [0.0] * 4

    def test_terminal_anchor_detects_drift(self) -> None:
        path = Path.create(VARIABLES, 4, {}, {"x": 1.0})
        values = np.array(path.as_matrix())
        values[-1, 0] = 1.5
        drifted = Path(VARIABLES, values, np.array([1.0, 0.0, 0.0]))
        assert not drifted.is_terminal_anchored()

    def test_records(self) -> None:
        path = Path.create(VARIABLES, 3, {"x": 1.0}, {})
        records = path.to_records()
        assert len(records) == 3
        assert records[0] == {"period": 0.0, "x": 1.0, "y": 0.0, "e": 0.0}
