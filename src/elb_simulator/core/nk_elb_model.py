"""New Keynesian ELBモデル

標準的な3方程式NKモデル + 需要ショック過程 + 名目金利の実効下限

    Phillips曲線:  π_t = β·π_{t+1} + κ·y_t
    IS曲線:        y_t = y_{t+1} - σ^{-1}(i_t - π_{t+1}) + d_t
    需要過程:      d_t = ρ_d·d_{t-1} + e_d,t
    Taylor則:      i_t = max(i_elb, φ_π·π_t + φ_y·y_t)

Taylor則の下限はモード選択に応じて
MCPタグ（MCPモード）またはmax再定式化（NEWTONモード）で付与する。
"""

import logging

from elb_simulator.core.equations import (
    DemandProcessParameters,
    DemandShockProcess,
    Equation,
    ISCurve,
    ISCurveParameters,
    PhillipsCurve,
    PhillipsCurveParameters,
    TaylorRule,
    TaylorRuleParameters,
    check_taylor_principle,
)
from elb_simulator.core.exceptions import ShockValidationError
from elb_simulator.core.model import PerfectForesightModel, PerfectForesightResult
from elb_simulator.core.registry import Parameter, Variable, VariableRole
from elb_simulator.core.solver import SolveMode
from elb_simulator.parameters.defaults import DefaultParameters

logger = logging.getLogger(__name__)

NK_VARIABLES: tuple[Variable, ...] = (
    Variable("y", VariableRole.ENDOGENOUS, "Output gap"),
    Variable("pi", VariableRole.ENDOGENOUS, "Inflation"),
    Variable("i", VariableRole.ENDOGENOUS, "Nominal interest rate"),
    Variable("d", VariableRole.ENDOGENOUS, "Demand shifter"),
    Variable("e_d", VariableRole.EXOGENOUS, "Demand shock"),
)

# 方程式の登録名
PHILLIPS = "phillips"
IS_CURVE = "is_curve"
TAYLOR = "taylor"
DEMAND = "demand"


def _register(model: PerfectForesightModel, name: str, equation: Equation) -> None:
    coefs = equation.coefficients()
    model.add_equation(
        name,
        coefs.residual,
        coefs.reads,
        gradient_fn=coefs.gradient,
        description=equation.description,
    )


def build_nk_elb_model(
    params: DefaultParameters | None = None,
    mode: SolveMode = SolveMode.MCP,
    elb: bool = True,
) -> PerfectForesightModel:
    """NK ELBモデルを構築

    Args:
        params: パラメータ（省略時はデフォルト）
        mode: ソルバーモード。ELBの定式化もこれで決まる
        elb: False なら下限なしの線形モデル
    """
    params = params or DefaultParameters()
    hh = params.household
    cb = params.central_bank

    phillips = PhillipsCurve(PhillipsCurveParameters(beta=hh.beta, theta=params.firm.theta))
    if not check_taylor_principle(cb.phi_pi, cb.phi_y, hh.beta, phillips.kappa):
        logger.warning("Taylor原理が満たされていません (phi_pi=%.3f)", cb.phi_pi)

    model = PerfectForesightModel(
        name="nk_elb",
        variables=NK_VARIABLES,
        parameters=(
            Parameter("beta", hh.beta),
            Parameter("sigma", hh.sigma),
            Parameter("kappa", phillips.kappa),
            Parameter("phi_pi", cb.phi_pi),
            Parameter("phi_y", cb.phi_y),
            Parameter("i_elb", cb.elb),
            Parameter("rho_d", params.shocks.rho_d),
        ),
        mode=mode,
    )

    _register(model, PHILLIPS, phillips)
    _register(model, IS_CURVE, ISCurve(ISCurveParameters(sigma=hh.sigma)))
    _register(model, TAYLOR, TaylorRule(TaylorRuleParameters(phi_pi=cb.phi_pi, phi_y=cb.phi_y)))
    _register(model, DEMAND, DemandShockProcess(DemandProcessParameters(rho_d=params.shocks.rho_d)))

    if elb:
        if mode is SolveMode.MCP:
            model.mark_complementary(TAYLOR, "i", lower_bound=cb.elb)
        else:
            model.mark_max_reformulation(TAYLOR, "i", lower_bound=cb.elb)

    return model


def simulate_demand_shock(
    model: PerfectForesightModel,
    size: float = -0.01,
    horizon: int = 100,
    period: int = 1,
    mode: SolveMode | None = None,
    tol: float | None = None,
    max_iter: int | None = None,
) -> PerfectForesightResult:
    """定常状態から出発し、1期限りの需要ショックを与えたパスを解く"""
    if "e_d" not in model.exogenous:
        raise ShockValidationError("モデルに需要ショック e_d がありません")
    steady = model.steady_state()
    return model.simulate(
        horizon,
        initial_state=steady,
        terminal_state=steady,
        shocks=[("e_d", period, size)],
        mode=mode,
        tol=tol,
        max_iter=max_iter,
    )
