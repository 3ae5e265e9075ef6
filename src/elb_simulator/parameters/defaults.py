"""デフォルトパラメータ

3方程式New KeynesianモデルとELB（実効下限）の四半期キャリブレーション。
金利・インフレ・産出ギャップは定常状態からの乖離で表す。
"""

from dataclasses import dataclass, field, replace

from elb_simulator.core.exceptions import ParameterValidationError


@dataclass(frozen=True)
class HouseholdParameters:
    """家計部門"""

    beta: float = 0.99  # 割引率
    sigma: float = 1.0  # 異時点間代替弾力性の逆数

    def __post_init__(self) -> None:
        if not 0.0 < self.beta < 1.0:
            raise ParameterValidationError(f"beta は (0, 1) の範囲: {self.beta}")
        if self.sigma <= 0.0:
            raise ParameterValidationError(f"sigma は正: {self.sigma}")


@dataclass(frozen=True)
class FirmParameters:
    """企業部門"""

    theta: float = 0.75  # Calvo価格硬直性（価格を変更しない確率）

    def __post_init__(self) -> None:
        if not 0.0 < self.theta < 1.0:
            raise ParameterValidationError(f"theta は (0, 1) の範囲: {self.theta}")


@dataclass(frozen=True)
class CentralBankParameters:
    """中央銀行"""

    phi_pi: float = 1.5  # インフレ反応係数
    phi_y: float = 0.5  # 産出ギャップ反応係数
    elb: float = -0.0055  # 名目金利の実効下限（定常状態からの乖離、四半期）


@dataclass(frozen=True)
class ShockParameters:
    """ショック過程"""

    rho_d: float = 0.5  # 需要ショックの持続性

    def __post_init__(self) -> None:
        if not -1.0 < self.rho_d < 1.0:
            raise ParameterValidationError(f"rho_d は (-1, 1) の範囲: {self.rho_d}")


@dataclass(frozen=True)
class DefaultParameters:
    """モデル全体のパラメータ"""

    household: HouseholdParameters = field(default_factory=HouseholdParameters)
    firm: FirmParameters = field(default_factory=FirmParameters)
    central_bank: CentralBankParameters = field(default_factory=CentralBankParameters)
    shocks: ShockParameters = field(default_factory=ShockParameters)

    def with_updates(self, **kwargs: object) -> "DefaultParameters":
        """一部のブロックを差し替えた新しいパラメータを返す"""
        return replace(self, **kwargs)  # type: ignore[arg-type]
