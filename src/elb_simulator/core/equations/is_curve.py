"""IS曲線（動学的IS方程式）

y_t = E[y_{t+1}] - σ^{-1}(i_t - E[π_{t+1}]) + d_t

標準化形式（=0）:
y_t - y_{t+1} + σ^{-1}·i_t - σ^{-1}·π_{t+1} - d_t = 0
"""

from dataclasses import dataclass

from elb_simulator.core.equations.base import EquationCoefficients


@dataclass(frozen=True)
class ISCurveParameters:
    """IS曲線のパラメータ"""

    sigma: float  # 異時点間代替弾力性の逆数


class ISCurve:
    """IS曲線

    消費のオイラー方程式から導出される動学的IS曲線。
    産出ギャップが実質金利・期待産出・需要シフターに依存する。
    """

    def __init__(self, params: ISCurveParameters) -> None:
        self.params = params

    @property
    def name(self) -> str:
        return "IS Curve"

    @property
    def description(self) -> str:
        return "y_t = E[y_{t+1}] - σ^{-1}(i_t - E[π_{t+1}]) + d_t"

    def coefficients(self) -> EquationCoefficients:
        sigma_inv = 1.0 / self.params.sigma
        return EquationCoefficients(
            terms={
                # 当期（t期）
                ("y", 0): 1.0,
                ("i", 0): sigma_inv,
                ("d", 0): -1.0,
                # 期待値（t+1期）
                ("y", 1): -1.0,
                ("pi", 1): -sigma_inv,
            }
        )
