"""モデル定数の定義

マジックナンバーを排除し、意味のある名前を付ける
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SolverConstants:
    """ソルバーの定数"""

    default_tolerance: float = 1e-10
    default_max_iterations: int = 100
    # 同一の能動集合へ再突入できる回数（これを超えると循環とみなす）
    default_cycle_limit: int = 2

    # 数値微分の相対ステップ
    finite_difference_step: float = 1e-6
    # ヤコビアン整合性チェックの許容誤差
    jacobian_check_tolerance: float = 1e-6
    # 終端アンカー判定の許容誤差
    terminal_anchor_tolerance: float = 1e-8


@dataclass(frozen=True)
class SimulationLimits:
    """シミュレーションの入力制限"""

    min_horizon: int = 3  # 初期期・終端期 + 内部1期
    max_horizon: int = 2000
    max_lag: int = 1
    max_lead: int = 1


# デフォルトインスタンス
SOLVER_CONSTANTS = SolverConstants()
SIMULATION_LIMITS = SimulationLimits()
