"""モデル定義ファイルのスキーマ

YAML で記述されたモデル定義を pydantic で検証する。

例:
    name: nk_elb
    mode: mcp
    variables:
      endogenous: {y: Output gap, pi: Inflation, i: Nominal rate}
      exogenous: {e_d: Demand shock}
    parameters:
      beta: 0.99
      kappa: (1 - theta)*(1 - beta*theta)/theta
    equations:
      - name: taylor
        expr: i = phi_pi*pi + phi_y*y
        complementarity: {variable: i, lower_bound: i_elb}
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VariablesSection(BaseModel):
    """変数宣言（名前 → 長い名前）"""

    model_config = ConfigDict(extra="forbid")

    endogenous: dict[str, str | None] = Field(default_factory=dict)
    exogenous: dict[str, str | None] = Field(default_factory=dict)


class ComplementarityDecl(BaseModel):
    """方程式に付与する境界制約"""

    model_config = ConfigDict(extra="forbid")

    variable: str
    lower_bound: float | str | None = None
    upper_bound: float | str | None = None
    formulation: Literal["mcp", "max"] = "mcp"


class EquationDecl(BaseModel):
    """方程式宣言（'lhs = rhs' または残差式）"""

    model_config = ConfigDict(extra="forbid")

    name: str
    expr: str
    description: str = ""
    complementarity: ComplementarityDecl | None = None

    @field_validator("expr")
    @classmethod
    def _single_equals(cls, value: str) -> str:
        if value.count("=") > 1:
            raise ValueError(f"'=' は高々1つ: {value}")
        return value


class ShockDecl(BaseModel):
    """シナリオのショック (変数, 期間, 値)"""

    model_config = ConfigDict(extra="forbid")

    variable: str
    period: int
    value: float


class ModelDefinition(BaseModel):
    """モデル定義ファイル全体"""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    mode: Literal["newton", "mcp"] = "newton"
    variables: VariablesSection
    parameters: dict[str, float | str] = Field(default_factory=dict)
    equations: list[EquationDecl]
    shocks: list[ShockDecl] = Field(default_factory=list)
    horizon: int | None = None
    # 省略時は定常状態
    initial_state: dict[str, float] | None = None
    terminal_state: dict[str, float] | None = None
