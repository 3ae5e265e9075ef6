"""CSV出力"""

import csv
from pathlib import Path

from elb_simulator.output.schemas import SimulationResult


def write_csv(result: SimulationResult, path: Path) -> Path:
    """期間 × 変数の表をCSVで書き出す"""
    names = list(result.variables)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["period", *names])
        for t in range(result.horizon):
            writer.writerow([t, *(result.variables[n].values[t] for n in names)])
    return path


def read_csv(path: Path) -> dict[str, list[float]]:
    """write_csv の出力を変数ごとの列として読み込む"""
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        columns: dict[str, list[float]] = {}
        for row in reader:
            for key, value in row.items():
                if key == "period":
                    continue
                columns.setdefault(key, []).append(float(value))
    return columns
