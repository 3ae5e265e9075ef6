"""Taylor則（金融政策ルール）

i_t = φ_π·π_t + φ_y·y_t

標準化形式（=0）:
i_t - φ_π·π_t - φ_y·y_t = 0

実効下限 i_t >= i_elb は方程式の外側で境界制約として付与する:
    i_t = i_elb        → i_t - (φ_π·π_t + φ_y·y_t) >= 0
    i_t > i_elb        → i_t - (φ_π·π_t + φ_y·y_t) = 0
"""

from dataclasses import dataclass

from elb_simulator.core.equations.base import EquationCoefficients


@dataclass(frozen=True)
class TaylorRuleParameters:
    """Taylor則のパラメータ"""

    phi_pi: float  # インフレ反応係数
    phi_y: float  # 産出ギャップ反応係数


def check_taylor_principle(phi_pi: float, phi_y: float, beta: float, kappa: float) -> bool:
    """決定性条件（Taylor原理）を確認

    κ(φ_π - 1) + (1 - β)φ_y > 0
    """
    return kappa * (phi_pi - 1.0) + (1.0 - beta) * phi_y > 0.0


class TaylorRule:
    """Taylor則"""

    def __init__(self, params: TaylorRuleParameters) -> None:
        self.params = params

    @property
    def name(self) -> str:
        return "Taylor Rule"

    @property
    def description(self) -> str:
        return "i_t = φ_π·π_t + φ_y·y_t"

    def coefficients(self) -> EquationCoefficients:
        return EquationCoefficients(
            terms={
                ("i", 0): 1.0,
                ("pi", 0): -self.params.phi_pi,
                ("y", 0): -self.params.phi_y,
            }
        )
