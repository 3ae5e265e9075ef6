"""方程式モジュール

3方程式NKモデルの構造方程式を提供する。
"""

from elb_simulator.core.equations.base import Equation, EquationCoefficients
from elb_simulator.core.equations.demand_process import (
    DemandProcessParameters,
    DemandShockProcess,
)
from elb_simulator.core.equations.is_curve import ISCurve, ISCurveParameters
from elb_simulator.core.equations.phillips_curve import (
    PhillipsCurve,
    PhillipsCurveParameters,
    compute_phillips_slope,
)
from elb_simulator.core.equations.taylor_rule import (
    TaylorRule,
    TaylorRuleParameters,
    check_taylor_principle,
)

__all__ = [
    "DemandProcessParameters",
    "DemandShockProcess",
    "Equation",
    "EquationCoefficients",
    "ISCurve",
    "ISCurveParameters",
    "PhillipsCurve",
    "PhillipsCurveParameters",
    "TaylorRule",
    "TaylorRuleParameters",
    "check_taylor_principle",
    "compute_phillips_slope",
]
