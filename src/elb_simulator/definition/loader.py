"""モデル定義ローダー

YAML のモデル定義を読み込み、sympy で方程式を解析・微分して
PerfectForesightModel を構築する。

時点表記:
    x       当期
    x(-1)   前期
    x(+1)   次期
"""

import re
from collections.abc import Callable, Mapping
from pathlib import Path
from tokenize import TokenError

import numpy as np
import pydantic
import sympy
import yaml

from elb_simulator.core.exceptions import ModelDefinitionError
from elb_simulator.core.model import PerfectForesightModel
from elb_simulator.core.registry import (
    GradientFn,
    Parameter,
    Read,
    ResidualFn,
    Variable,
    VariableRole,
)
from elb_simulator.core.solver import SolveMode
from elb_simulator.definition.schema import ComplementarityDecl, ModelDefinition

_TIME_REF = re.compile(r"\b([A-Za-z_]\w*)\(\s*([+-]?\d+)\s*\)")

# 勾配が不連続な関数を含む式は数値微分に任せる
_NONSMOOTH = (sympy.Max, sympy.Min, sympy.Abs, sympy.Heaviside, sympy.Piecewise)


def load_model_definition(source: str | Path) -> ModelDefinition:
    """YAML ファイルを読み込みスキーマ検証する"""
    path = Path(source)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ModelDefinitionError(f"YAML の解析に失敗しました: {path}: {e}") from e
    return parse_model_definition(data)


def parse_model_definition(data: object) -> ModelDefinition:
    try:
        return ModelDefinition.model_validate(data)
    except pydantic.ValidationError as e:
        raise ModelDefinitionError(f"モデル定義が不正です: {e}") from e


def _symbol_name(name: str, offset: int) -> str:
    if offset == 0:
        return name
    return f"{name}__lag{-offset}" if offset < 0 else f"{name}__lead{offset}"


class _ExpressionCompiler:
    """時点表記つきの式を sympy で解析し、数値関数へ変換する"""

    def __init__(self, variables: list[str], parameters: Mapping[str, float]) -> None:
        self.variables = set(variables)
        self.parameters = dict(parameters)
        self.param_symbols = {name: sympy.Symbol(name) for name in self.parameters}
        self.read_of: dict[sympy.Symbol, Read] = {}

    def _substitute_time(self, text: str) -> str:
        def repl(match: re.Match[str]) -> str:
            name, offset = match.group(1), int(match.group(2))
            if name not in self.variables:
                return match.group(0)
            # 範囲外の時点も記号化し、評価器の構築時に期間外参照として検出する
            symbol = sympy.Symbol(_symbol_name(name, offset))
            self.read_of[symbol] = (name, offset)
            return symbol.name

        return _TIME_REF.sub(repl, text)

    def parse(self, equation: str, text: str) -> sympy.Expr:
        processed = self._substitute_time(text)
        local: dict[str, sympy.Symbol] = dict(self.param_symbols)
        for name in self.variables:
            for offset in (-1, 0, 1):
                self.read_of[sympy.Symbol(_symbol_name(name, offset))] = (name, offset)
        local.update({s.name: s for s in self.read_of})

        try:
            if "=" in processed:
                lhs, rhs = processed.split("=")
                expr = sympy.parse_expr(lhs, local_dict=local) - sympy.parse_expr(
                    rhs, local_dict=local
                )
            else:
                expr = sympy.parse_expr(processed, local_dict=local)
        except (SyntaxError, TokenError, TypeError, sympy.SympifyError) as e:
            raise ModelDefinitionError(f"方程式 '{equation}' を解析できません: {text}: {e}") from e

        expr = expr.subs({self.param_symbols[k]: v for k, v in self.parameters.items()})
        unknown = sorted(str(s) for s in expr.free_symbols if s not in self.read_of)
        if unknown:
            raise ModelDefinitionError(f"方程式 '{equation}' に未宣言の記号があります: {unknown}")
        return expr

    def compile(self, expr: sympy.Expr) -> tuple[list[Read], ResidualFn, GradientFn | None]:
        symbols = sorted(expr.free_symbols, key=lambda s: self.read_of[s])
        reads = [self.read_of[s] for s in symbols]
        residual = sympy.lambdify(symbols, expr, modules="numpy")
        residual_fn = _bind_residual(residual, reads)

        if expr.has(*_NONSMOOTH):
            return reads, residual_fn, None

        # 記号微分による解析的勾配
        partials = {
            read: sympy.lambdify(symbols, sympy.diff(expr, s), modules="numpy")
            for read, s in zip(reads, symbols, strict=True)
        }
        return reads, residual_fn, _bind_gradient(partials, reads)


def _bind_residual(fn: Callable[..., object], reads: list[Read]) -> ResidualFn:
    def residual_fn(values: Mapping[Read, np.ndarray]) -> np.ndarray:
        return np.asarray(fn(*(values[r] for r in reads)), dtype=float)

    return residual_fn


def _bind_gradient(partials: Mapping[Read, Callable[..., object]], reads: list[Read]) -> GradientFn:
    def gradient_fn(values: Mapping[Read, np.ndarray]) -> dict[Read, np.ndarray]:
        args = [values[r] for r in reads]
        return {read: np.asarray(fn(*args), dtype=float) for read, fn in partials.items()}

    return gradient_fn


def evaluate_parameters(raw: Mapping[str, float | str]) -> dict[str, float]:
    """パラメータを宣言順に評価する（式は先行パラメータを参照できる）"""
    values: dict[str, float] = {}
    for name, value in raw.items():
        if isinstance(value, int | float):
            values[name] = float(value)
            continue
        local = {k: sympy.Float(v) for k, v in values.items()}
        try:
            expr = sympy.parse_expr(value, local_dict=local)
            values[name] = float(expr.evalf())
        except (SyntaxError, TokenError, TypeError, ValueError, sympy.SympifyError) as e:
            raise ModelDefinitionError(f"パラメータ '{name}' を評価できません: {value}: {e}") from e
    return values


def _resolve_bound(value: float | str | None, parameters: Mapping[str, float]) -> float | None:
    if value is None or isinstance(value, int | float):
        return value
    if value not in parameters:
        raise ModelDefinitionError(f"境界に未宣言のパラメータが指定されています: '{value}'")
    return parameters[value]


def _apply_constraint(
    model: PerfectForesightModel,
    equation: str,
    decl: ComplementarityDecl,
    parameters: Mapping[str, float],
) -> None:
    lower = _resolve_bound(decl.lower_bound, parameters)
    upper = _resolve_bound(decl.upper_bound, parameters)
    if decl.formulation == "mcp":
        model.mark_complementary(equation, decl.variable, lower, upper)
    else:
        model.mark_max_reformulation(equation, decl.variable, lower, upper)


def build_model(definition: ModelDefinition) -> PerfectForesightModel:
    """モデル定義から PerfectForesightModel を構築"""
    variables = [
        Variable(name, VariableRole.ENDOGENOUS, long_name or "")
        for name, long_name in definition.variables.endogenous.items()
    ] + [
        Variable(name, VariableRole.EXOGENOUS, long_name or "")
        for name, long_name in definition.variables.exogenous.items()
    ]
    parameters = evaluate_parameters(definition.parameters)

    model = PerfectForesightModel(
        name=definition.name,
        variables=variables,
        parameters=[Parameter(k, v) for k, v in parameters.items()],
        mode=SolveMode(definition.mode),
    )

    compiler = _ExpressionCompiler([v.name for v in variables], parameters)
    for decl in definition.equations:
        expr = compiler.parse(decl.name, decl.expr)
        reads, residual_fn, gradient_fn = compiler.compile(expr)
        model.add_equation(
            decl.name,
            residual_fn,
            reads,
            gradient_fn=gradient_fn,
            description=decl.description or decl.expr,
        )

    for decl in definition.equations:
        if decl.complementarity is not None:
            _apply_constraint(model, decl.name, decl.complementarity, parameters)

    return model


def load_model(source: str | Path) -> tuple[PerfectForesightModel, ModelDefinition]:
    """YAML ファイルからモデルを構築し、定義とともに返す"""
    definition = load_model_definition(source)
    return build_model(definition), definition
