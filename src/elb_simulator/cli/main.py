"""CLIメインエントリーポイント"""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from elb_simulator import __version__
from elb_simulator.cli.commands import (
    compare_command,
    parameters_command,
    run_command,
    simulate_command,
    steady_state_command,
)

app = typer.Typer(
    name="elb-sim",
    help="完全予見・実効下限（ELB）シミュレーター",
    no_args_is_help=True,
)
console = Console()


@app.command("simulate")
def simulate(
    shock: Annotated[
        float,
        typer.Option("--shock", "-s", help="需要ショックの大きさ（例: -0.01）"),
    ] = -0.01,
    period: Annotated[
        int,
        typer.Option("--period", help="ショックを与える期間"),
    ] = 1,
    horizon: Annotated[
        int,
        typer.Option("--horizon", "-h", help="期間数（初期期・終端期を含む）"),
    ] = 100,
    floor: Annotated[
        float | None,
        typer.Option("--floor", help="名目金利の下限（省略時はデフォルト値）"),
    ] = None,
    mode: Annotated[
        str,
        typer.Option("--mode", "-m", help="ソルバーモード: newton, mcp"),
    ] = "mcp",
    elb: Annotated[
        bool,
        typer.Option("--elb/--no-elb", help="金利下限を課すか"),
    ] = True,
    tol: Annotated[
        float | None,
        typer.Option("--tol", help="収束判定の許容誤差"),
    ] = None,
    max_iter: Annotated[
        int | None,
        typer.Option("--max-iter", help="最大反復回数"),
    ] = None,
    output_dir: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="出力ディレクトリ（JSON/CSV）"),
    ] = None,
) -> None:
    """NK ELBモデルの需要ショックを完全予見で解く

    例:
        elb-sim simulate --shock -0.01 --horizon 100
        elb-sim simulate --mode newton --floor -0.0025 -o results/
    """
    simulate_command(shock, period, horizon, floor, mode, elb, tol, max_iter, output_dir)


@app.command("compare")
def compare(
    shock: Annotated[
        float,
        typer.Option("--shock", "-s", help="需要ショックの大きさ"),
    ] = -0.01,
    period: Annotated[
        int,
        typer.Option("--period", help="ショックを与える期間"),
    ] = 1,
    horizon: Annotated[
        int,
        typer.Option("--horizon", "-h", help="期間数"),
    ] = 100,
    floor: Annotated[
        float | None,
        typer.Option("--floor", help="名目金利の下限"),
    ] = None,
    tol: Annotated[
        float | None,
        typer.Option("--tol", help="収束判定の許容誤差"),
    ] = None,
) -> None:
    """NEWTON/MCP両モードの解を比較"""
    compare_command(shock, period, horizon, floor, tol)


@app.command("run")
def run(
    model_file: Annotated[
        Path,
        typer.Argument(help="モデル定義YAMLファイル"),
    ],
    horizon: Annotated[
        int | None,
        typer.Option("--horizon", "-h", help="期間数（ファイルの値を上書き）"),
    ] = None,
    mode: Annotated[
        str | None,
        typer.Option("--mode", "-m", help="ソルバーモード: newton, mcp"),
    ] = None,
    tol: Annotated[
        float | None,
        typer.Option("--tol", help="収束判定の許容誤差"),
    ] = None,
    max_iter: Annotated[
        int | None,
        typer.Option("--max-iter", help="最大反復回数"),
    ] = None,
    output_dir: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="出力ディレクトリ（JSON/CSV）"),
    ] = None,
) -> None:
    """YAMLで定義したモデルのシナリオを実行

    例:
        elb-sim run examples/nk_elb.yaml
        elb-sim run model.yaml --horizon 60 --mode newton
    """
    run_command(model_file, horizon, mode, tol, max_iter, output_dir)


@app.command("steady-state")
def steady_state(
    model_file: Annotated[
        Path | None,
        typer.Argument(help="モデル定義YAMLファイル（省略時はNK ELBモデル）"),
    ] = None,
) -> None:
    """定常状態を表示"""
    steady_state_command(model_file)


@app.command("parameters")
def parameters() -> None:
    """NK ELBモデルのパラメータを表示"""
    parameters_command()


@app.command("version")
def version() -> None:
    """バージョン情報を表示"""
    console.print(f"elb-sim version {__version__}")


if __name__ == "__main__":
    app()
