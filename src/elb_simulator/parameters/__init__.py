"""パラメータ管理"""

from elb_simulator.parameters.constants import (
    SIMULATION_LIMITS,
    SOLVER_CONSTANTS,
    SimulationLimits,
    SolverConstants,
)
from elb_simulator.parameters.defaults import (
    CentralBankParameters,
    DefaultParameters,
    FirmParameters,
    HouseholdParameters,
    ShockParameters,
)

__all__ = [
    "CentralBankParameters",
    "DefaultParameters",
    "FirmParameters",
    "HouseholdParameters",
    "SIMULATION_LIMITS",
    "SOLVER_CONSTANTS",
    "ShockParameters",
    "SimulationLimits",
    "SolverConstants",
]
