"""ELB Simulator - 完全予見・実効下限シミュレーター"""

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION_NAME = "elbsim"


def _resolve_version() -> str:
    """インストール済み配布物 elbsim のバージョン"""
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        # ソースツリーから直接 import した場合
        return "0+unknown"


__version__ = _resolve_version()

from elb_simulator.core.model import PerfectForesightModel, PerfectForesightResult
from elb_simulator.core.nk_elb_model import build_nk_elb_model, simulate_demand_shock
from elb_simulator.core.path import Path
from elb_simulator.core.solver import SolveMode, SolverConfig, SolverDiagnostics
from elb_simulator.definition.loader import load_model
from elb_simulator.parameters.defaults import DefaultParameters

__all__ = [
    "DefaultParameters",
    "Path",
    "PerfectForesightModel",
    "PerfectForesightResult",
    "SolveMode",
    "SolverConfig",
    "SolverDiagnostics",
    "build_nk_elb_model",
    "load_model",
    "simulate_demand_shock",
]
