"""formulary -- a small formula language evaluated through postfix form."""

__version__ = "0.3.0"

from formulary.engine import (  # noqa: E402
    CompiledFormula,
    EvaluationResult,
    compile_formula,
    evaluate,
    try_evaluate,
)
from formulary.formulas.errors import ErrorStage, FormulaError  # noqa: E402
from formulary.functions.registry import Function, Variable  # noqa: E402

__all__ = [
    "CompiledFormula",
    "ErrorStage",
    "EvaluationResult",
    "FormulaError",
    "Function",
    "Variable",
    "__version__",
    "compile_formula",
    "evaluate",
    "try_evaluate",
]
