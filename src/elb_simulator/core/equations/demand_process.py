"""需要ショック過程

d_t = ρ_d·d_{t-1} + e_d,t
"""

from dataclasses import dataclass

from elb_simulator.core.equations.base import EquationCoefficients


@dataclass(frozen=True)
class DemandProcessParameters:
    """需要ショック過程のパラメータ"""

    rho_d: float  # 持続性


class DemandShockProcess:
    """AR(1)需要シフター"""

    def __init__(self, params: DemandProcessParameters) -> None:
        self.params = params

    @property
    def name(self) -> str:
        return "Demand Process"

    @property
    def description(self) -> str:
        return "d_t = ρ_d·d_{t-1} + e_d,t"

    def coefficients(self) -> EquationCoefficients:
        return EquationCoefficients(
            terms={
                ("d", 0): 1.0,
                ("d", -1): -self.params.rho_d,
                ("e_d", 0): -1.0,
            }
        )
