"""モデル定義ファイル（YAML）"""

from elb_simulator.definition.loader import (
    build_model,
    evaluate_parameters,
    load_model,
    load_model_definition,
    parse_model_definition,
)
from elb_simulator.definition.schema import (
    ComplementarityDecl,
    EquationDecl,
    ModelDefinition,
    ShockDecl,
    VariablesSection,
)

__all__ = [
    "ComplementarityDecl",
    "EquationDecl",
    "ModelDefinition",
    "ShockDecl",
    "VariablesSection",
    "build_model",
    "evaluate_parameters",
    "load_model",
    "load_model_definition",
    "parse_model_definition",
]
