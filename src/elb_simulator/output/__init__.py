"""出力生成"""

from elb_simulator.output.schemas import (
    ModeComparison,
    ShockRecord,
    SimulationResult,
    SolverSummary,
    VariableTimeSeries,
)
from elb_simulator.output.table import read_csv, write_csv

__all__ = [
    "ModeComparison",
    "ShockRecord",
    "SimulationResult",
    "SolverSummary",
    "VariableTimeSeries",
    "read_csv",
    "write_csv",
]
