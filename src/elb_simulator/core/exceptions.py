"""elbsimカスタム例外階層

FailFast原則に従い、エラーは即座に報告される。
構造エラー（モデル定義の不備）は回復不能、ソルバーの発散は呼び出し側で回復可能。
"""


class ELBSimError(Exception):
    """elbsimの基底例外クラス"""

    pass


class ModelDefinitionError(ELBSimError):
    """モデル定義の構造エラー"""

    pass


class DuplicateNameError(ModelDefinitionError):
    """同名の方程式・変数が既に登録されている"""

    pass


class UnknownEquationError(ModelDefinitionError):
    """未登録の方程式を参照した"""

    pass


class UnknownVariableError(ModelDefinitionError):
    """未宣言の変数を参照した"""

    pass


class ConflictingConstraintError(ModelDefinitionError):
    """相補性制約の指定が衝突している

    同一変数へのMCPタグとmax再定式化の同時指定、
    同一方程式への二重の境界指定などで発生。
    """

    pass


class BoundaryReferenceError(ModelDefinitionError):
    """シミュレーション期間 [0, horizon-1] の外を参照した"""

    pass


class SolverError(ELBSimError):
    """ソルバー関連のエラー"""

    pass


class SolverDivergedError(SolverError):
    """完全予見ソルバーの発散エラー

    反復上限超過、ヤコビアンの特異、能動集合の循環で発生。
    最後の残差ノルムと反復回数を保持する。
    """

    def __init__(self, message: str, residual_norm: float, iterations: int) -> None:
        super().__init__(f"{message} (||F||_inf={residual_norm:.3e}, 反復={iterations})")
        self.residual_norm = residual_norm
        self.iterations = iterations


class ValidationError(ELBSimError):
    """入力バリデーションエラー"""

    pass


class ShockValidationError(ValidationError):
    """ショック指定が無効なエラー"""

    pass


class ParameterValidationError(ValidationError):
    """パラメータ値が有効範囲外のエラー"""

    pass
