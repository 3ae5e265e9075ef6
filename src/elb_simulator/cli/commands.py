"""CLIコマンド実装"""

from collections.abc import Callable
from dataclasses import replace
from functools import wraps
from pathlib import Path
from typing import TypeVar

import numpy as np
import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from elb_simulator.core.exceptions import ELBSimError, SolverError, ValidationError
from elb_simulator.core.model import PerfectForesightModel, PerfectForesightResult
from elb_simulator.core.nk_elb_model import build_nk_elb_model, simulate_demand_shock
from elb_simulator.core.solver import SolveMode
from elb_simulator.definition.loader import load_model
from elb_simulator.output.schemas import ModeComparison, SimulationResult
from elb_simulator.output.table import write_csv
from elb_simulator.parameters.defaults import DefaultParameters

console = Console()

F = TypeVar("F", bound=Callable[..., None])


def handle_elbsim_error(func: F) -> F:
    """CLI用エラーハンドリングデコレータ

    ELBSimの例外を捕捉し、終了コードつきのエラーメッセージを表示する。
    """

    @wraps(func)
    def wrapper(*args: object, **kwargs: object) -> None:
        try:
            func(*args, **kwargs)
        except ValidationError as e:
            console.print(f"[red]入力エラー: {e}[/red]")
            raise typer.Exit(1) from e
        except SolverError as e:
            console.print(f"[red]計算エラー: {e}[/red]")
            raise typer.Exit(2) from e
        except ELBSimError as e:
            console.print(f"[red]エラー: {e}[/red]")
            raise typer.Exit(3) from e

    return wrapper  # type: ignore[return-value]


def parse_mode(value: str | None) -> SolveMode | None:
    if value is None:
        return None
    try:
        return SolveMode(value.lower())
    except ValueError as e:
        raise ValidationError(f"不明なモード '{value}'（newton または mcp）") from e


def _nk_parameters(floor: float | None) -> DefaultParameters:
    params = DefaultParameters()
    if floor is None:
        return params
    return params.with_updates(central_bank=replace(params.central_bank, elb=floor))


def _bounds(model: PerfectForesightModel) -> dict[str, tuple[float, float]]:
    return {c.variable: (c.lower_bound, c.upper_bound) for c in model.constraints.constraints()}


def _to_output(
    model: PerfectForesightModel,
    result: PerfectForesightResult,
    shocks: list[tuple[str, int, float]],
) -> SimulationResult:
    bounds = {
        name: (None if np.isinf(lo) else lo, None if np.isinf(hi) else hi)
        for name, (lo, hi) in _bounds(model).items()
    }
    return SimulationResult.from_result(
        model.name,
        result,
        shocks=shocks,
        long_names={v.name: v.long_name for v in model.variables},
        bounds=bounds,
        parameters={name: p.value for name, p in model.parameters.items()},
    )


def _print_result(output: SimulationResult, title: str) -> None:
    solver = output.solver
    console.print()
    console.print(
        Panel(
            f"[bold]シミュレーション結果[/bold]\n"
            f"モデル: {output.model_name}\n"
            f"モード: {solver.mode}\n"
            f"期間: {output.horizon}\n"
            f"反復回数: {solver.iterations}\n"
            f"残差ノルム: {solver.residual_norm:.3e}",
            title=title,
        )
    )

    table = Table(title="変数の推移")
    table.add_column("変数", style="cyan")
    table.add_column("最小値", style="green")
    table.add_column("最大値", style="green")
    table.add_column("第1期", style="yellow")
    table.add_column("終端", style="yellow")
    for name, series in output.variables.items():
        label = f"{series.long_name}（{name}）" if series.long_name else name
        table.add_row(
            label,
            f"{series.minimum:+.6f}",
            f"{series.maximum:+.6f}",
            f"{series.values[1]:+.6f}",
            f"{series.values[-1]:+.6f}",
        )
    console.print(table)

    for name, periods in solver.active_periods.items():
        console.print(f"[bold]{name}[/bold] が境界に張り付いた期間: {periods}")


def _save(output: SimulationResult, output_dir: Path | None) -> None:
    if output_dir is None:
        return
    json_path = output.save_json(output_dir / f"{output.model_name}.json")
    csv_path = write_csv(output, output_dir / f"{output.model_name}.csv")
    console.print(f"\n[green]結果を保存しました: {json_path}, {csv_path}[/green]")


@handle_elbsim_error
def simulate_command(
    shock: float = -0.01,
    period: int = 1,
    horizon: int = 100,
    floor: float | None = None,
    mode: str | None = "mcp",
    elb: bool = True,
    tol: float | None = None,
    max_iter: int | None = None,
    output_dir: Path | None = None,
) -> None:
    """NK ELBモデルの需要ショックシミュレーション"""
    solve_mode = parse_mode(mode) or SolveMode.MCP

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("モデルを構築中...", total=None)
        model = build_nk_elb_model(_nk_parameters(floor), mode=solve_mode, elb=elb)

        progress.add_task("完全予見パスを計算中...", total=None)
        result = simulate_demand_shock(
            model, size=shock, horizon=horizon, period=period, tol=tol, max_iter=max_iter
        )

    output = _to_output(model, result, [("e_d", period, shock)])
    _print_result(output, "NK ELB Simulator")
    _save(output, output_dir)


@handle_elbsim_error
def compare_command(
    shock: float = -0.01,
    period: int = 1,
    horizon: int = 100,
    floor: float | None = None,
    tol: float | None = None,
) -> None:
    """同一シナリオをNEWTON/MCP両モードで解き、差を表示"""
    params = _nk_parameters(floor)
    shocks = [("e_d", period, shock)]

    outputs: dict[SolveMode, SimulationResult] = {}
    for solve_mode in (SolveMode.NEWTON, SolveMode.MCP):
        model = build_nk_elb_model(params, mode=solve_mode)
        result = simulate_demand_shock(model, size=shock, horizon=horizon, period=period, tol=tol)
        outputs[solve_mode] = _to_output(model, result, shocks)

    newton, mcp = outputs[SolveMode.NEWTON], outputs[SolveMode.MCP]
    comparison = ModeComparison(
        newton=newton,
        mcp=mcp,
        max_abs_difference={
            name: float(
                np.max(np.abs(np.subtract(series.values, mcp.variables[name].values)))
            )
            for name, series in newton.variables.items()
        },
    )

    table = Table(title="NEWTON / MCP の比較")
    table.add_column("変数", style="cyan")
    table.add_column("最大絶対差", style="green")
    for name, diff in comparison.max_abs_difference.items():
        table.add_row(name, f"{diff:.3e}")
    table.add_row("反復回数", f"{newton.solver.iterations} / {mcp.solver.iterations}")

    console.print()
    console.print(table)
    console.print(f"最大差: {comparison.overall_difference:.3e}")


@handle_elbsim_error
def run_command(
    model_file: Path,
    horizon: int | None = None,
    mode: str | None = None,
    tol: float | None = None,
    max_iter: int | None = None,
    output_dir: Path | None = None,
) -> None:
    """YAMLモデル定義のシナリオを実行"""
    model, definition = load_model(model_file)
    solve_mode = parse_mode(mode)

    steady: dict[str, float] | None = None
    if definition.initial_state is None or definition.terminal_state is None:
        steady = model.steady_state()
    initial = definition.initial_state if definition.initial_state is not None else steady
    terminal = definition.terminal_state if definition.terminal_state is not None else steady
    shocks = [(s.variable, s.period, s.value) for s in definition.shocks]
    n_periods = horizon or definition.horizon
    if n_periods is None:
        raise ValidationError("期間数が指定されていません（--horizon またはファイルの horizon）")

    result = model.simulate(
        n_periods,
        initial_state=initial or {},
        terminal_state=terminal or {},
        shocks=shocks,
        mode=solve_mode,
        tol=tol,
        max_iter=max_iter,
    )

    output = _to_output(model, result, shocks)
    _print_result(output, definition.description or definition.name)
    _save(output, output_dir)


@handle_elbsim_error
def steady_state_command(model_file: Path | None = None) -> None:
    """定常状態を表示"""
    if model_file is None:
        model = build_nk_elb_model()
    else:
        model, _ = load_model(model_file)
    steady = model.steady_state()

    table = Table(title=f"定常状態（{model.name}）")
    table.add_column("変数", style="cyan")
    table.add_column("値", style="green")
    for var in model.variables:
        label = f"{var.long_name}（{var.name}）" if var.long_name else var.name
        table.add_row(label, f"{steady[var.name]:+.6f}")

    console.print()
    console.print(table)


@handle_elbsim_error
def parameters_command() -> None:
    """NK ELBモデルのパラメータを表示"""
    model = build_nk_elb_model()
    descriptions = {
        "beta": "割引率",
        "sigma": "異時点間代替弾力性の逆数",
        "kappa": "Phillips曲線の傾き",
        "phi_pi": "インフレ反応",
        "phi_y": "産出ギャップ反応",
        "i_elb": "名目金利の実効下限",
        "rho_d": "需要ショックの持続性",
    }

    table = Table(title="NK ELBモデル")
    table.add_column("パラメータ", style="cyan")
    table.add_column("値", style="green")
    table.add_column("説明", style="yellow")
    for name, param in model.parameters.items():
        table.add_row(name, f"{param.value:.4f}", descriptions.get(name, ""))

    console.print()
    console.print(table)
