"""Formula tokenizing, postfix parsing and evaluation.

Public API::

    from formulary.formulas import tokenize, parse_formula, evaluate_postfix
"""

from formulary.formulas.errors import (
    ErrorStage,
    FormulaError,
    FormulaEvalError,
    FormulaFunctionError,
    FormulaLexError,
    FormulaParseError,
    FormulaRefError,
)
from formulary.formulas.evaluator import evaluate_postfix
from formulary.formulas.lexer import tokenize
from formulary.formulas.parser import (
    ItemKind,
    PostfixItem,
    extract_refs,
    format_postfix,
    parse_formula,
    to_postfix,
)
from formulary.formulas.tokens import Operator, Token, TokenType

__all__ = [
    "ErrorStage",
    "FormulaError",
    "FormulaEvalError",
    "FormulaFunctionError",
    "FormulaLexError",
    "FormulaParseError",
    "FormulaRefError",
    "ItemKind",
    "Operator",
    "PostfixItem",
    "Token",
    "TokenType",
    "evaluate_postfix",
    "extract_refs",
    "format_postfix",
    "parse_formula",
    "to_postfix",
    "tokenize",
]
