"""CLIコマンドのテスト"""

import json
from pathlib import Path

from typer.testing import CliRunner

from elb_simulator.cli.main import app

runner = CliRunner()

EXAMPLE = Path(__file__).resolve().parents[1] / "examples" / "nk_elb.yaml"


class TestSimulateCommand:
    """simulateコマンドのテスト"""

    def test_simulate_default(self) -> None:
        result = runner.invoke(app, ["simulate"])
        assert result.exit_code == 0
        assert "境界に張り付いた期間" in result.output

    def test_simulate_newton_mode(self) -> None:
        result = runner.invoke(app, ["simulate", "--mode", "newton", "--horizon", "40"])
        assert result.exit_code == 0

    def test_simulate_without_floor(self) -> None:
        result = runner.invoke(app, ["simulate", "--no-elb", "--horizon", "40"])
        assert result.exit_code == 0
        assert "境界に張り付いた期間" not in result.output

    def test_simulate_writes_output(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["simulate", "--horizon", "30", "-o", str(tmp_path)])
        assert result.exit_code == 0

        data = json.loads((tmp_path / "nk_elb.json").read_text(encoding="utf-8"))
        assert data["horizon"] == 30
        assert (tmp_path / "nk_elb.csv").exists()

    def test_invalid_mode(self) -> None:
        """入力エラーは終了コード1"""
        result = runner.invoke(app, ["simulate", "--mode", "bisection"])
        assert result.exit_code == 1

    def test_shock_outside_horizon(self) -> None:
        result = runner.invoke(app, ["simulate", "--horizon", "20", "--period", "25"])
        assert result.exit_code == 3

    def test_iteration_cap(self) -> None:
        """計算エラーは終了コード2"""
        result = runner.invoke(app, ["simulate", "--max-iter", "1"])
        assert result.exit_code == 2


class TestCompareCommand:
    """compareコマンドのテスト"""

    def test_compare(self) -> None:
        result = runner.invoke(app, ["compare", "--horizon", "40"])
        assert result.exit_code == 0
        assert "最大差" in result.output


class TestRunCommand:
    """runコマンドのテスト"""

    def test_run_example(self) -> None:
        result = runner.invoke(app, ["run", str(EXAMPLE)])
        assert result.exit_code == 0

    def test_run_with_overrides(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app,
            ["run", str(EXAMPLE), "--horizon", "30", "--mode", "newton", "-o", str(tmp_path)],
        )
        assert result.exit_code == 0
        assert (tmp_path / "nk_elb.csv").exists()

    def test_run_missing_horizon(self, tmp_path: Path) -> None:
        path = tmp_path / "toy.yaml"
        path.write_text(
            "name: toy\n"
            "variables: {endogenous: {x: null}}\n"
            "equations: [{name: law, expr: x = 0.5*x(-1)}]\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["run", str(path)])
        assert result.exit_code == 1

    def test_run_invalid_definition(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("name: broken\n", encoding="utf-8")
        result = runner.invoke(app, ["run", str(path)])
        assert result.exit_code == 3


class TestOtherCommands:
    """その他のコマンドのテスト"""

    def test_steady_state(self) -> None:
        result = runner.invoke(app, ["steady-state"])
        assert result.exit_code == 0

    def test_steady_state_from_file(self) -> None:
        result = runner.invoke(app, ["steady-state", str(EXAMPLE)])
        assert result.exit_code == 0

    def test_parameters(self) -> None:
        result = runner.invoke(app, ["parameters"])
        assert result.exit_code == 0
        assert "kappa" in result.output

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "version" in result.output.lower()

    def test_help(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
