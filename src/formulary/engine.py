"""Top-level evaluation entry points.

``evaluate`` runs the full pipeline (tokenize -> postfix -> reduce) and
raises a stage-tagged ``FormulaError``; ``try_evaluate`` returns the same
outcome as an ``EvaluationResult`` instead of raising.  ``compile_formula``
splits the pipeline so one expression can be reduced against many tables.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from pydantic import BaseModel

from formulary.formulas.errors import FormulaError
from formulary.formulas.evaluator import evaluate_postfix
from formulary.formulas.parser import PostfixItem, extract_refs, parse_formula
from formulary.functions.registry import (
    Function,
    Variable,
    as_variables,
    build_function_table,
)
from formulary.logging.events import (
    EventLevel,
    EventType,
    emit,
    error_code_for_stage,
    make_eval_event,
)

Variables = Sequence[Variable] | Mapping[str, float] | None


class EvaluationResult(BaseModel):
    """Result-style outcome of one evaluation."""

    expression: str
    ok: bool
    value: float | None = None
    error: str | None = None
    stage: str | None = None


class CompiledFormula:
    """An expression tokenized and parsed once, ready to be reduced.

    Attributes:
        expression: The source text.
        items: The postfix sequence.
        variables: Variable names the expression refers to.
        functions: Function names the expression calls.
    """

    def __init__(self, expression: str, items: list[PostfixItem]) -> None:
        self.expression = expression
        self.items = items
        self.variables, self.functions = extract_refs(items)

    def evaluate(
        self,
        functions: Sequence[Function] = (),
        variables: Variables = None,
        *,
        include_library: bool = False,
    ) -> float:
        """Reduce the postfix sequence against fresh function/variable tables."""
        table = build_function_table(functions, include_library=include_library)
        return evaluate_postfix(self.items, table, as_variables(variables))

    def __repr__(self) -> str:
        return f"CompiledFormula({self.expression!r})"


def compile_formula(expression: str) -> CompiledFormula:
    """Tokenize and parse *expression*.

    Raises:
        FormulaLexError: Malformed text.
        FormulaParseError: Malformed token order.
    """
    return CompiledFormula(expression, parse_formula(expression))


def variable_snapshot(variables: Variables) -> dict[str, float]:
    """Return the table as ``name -> value``, keeping the first of duplicate names."""
    snapshot: dict[str, float] = {}
    for v in as_variables(variables):
        snapshot.setdefault(v.name, v.value)
    return snapshot


def evaluate(
    expression: str,
    functions: Sequence[Function] = (),
    variables: Variables = None,
    *,
    include_library: bool = False,
) -> float:
    """Evaluate a formula to a float.

    Args:
        expression: Formula text, e.g. ``"If(x > 2, Add(x, 1), 0)"``.
        functions: Caller functions, appended after the reserved set (and
            the library, if enabled).  First match by name wins.
        variables: Variable table as ``Variable`` models or a mapping.
        include_library: Also make the optional math/logical functions
            available.

    Returns:
        The result; comparisons yield 1.0 or 0.0.

    Raises:
        FormulaError: Tagged with the stage (lexer, parser, processor) that
            detected the failure.
    """
    table = as_variables(variables)
    try:
        value = compile_formula(expression).evaluate(
            functions, table, include_library=include_library
        )
    except FormulaError as exc:
        stage = exc.stage.value if exc.stage else None
        emit(make_eval_event(
            EventType.eval_failed,
            EventLevel.warning,
            str(exc),
            expression=expression,
            stage=stage,
            error_code=error_code_for_stage(stage),
            extra={"variables": variable_snapshot(table)},
        ))
        raise
    emit(make_eval_event(
        EventType.eval_completed,
        EventLevel.info,
        f"Evaluated to {value!r}",
        expression=expression,
        extra={"variables": variable_snapshot(table), "value": value},
    ))
    return value


def try_evaluate(
    expression: str,
    functions: Sequence[Function] = (),
    variables: Variables = None,
    *,
    include_library: bool = False,
) -> EvaluationResult:
    """Like ``evaluate`` but report failure in the result instead of raising."""
    try:
        value = evaluate(expression, functions, variables, include_library=include_library)
    except FormulaError as exc:
        return EvaluationResult(
            expression=expression,
            ok=False,
            error=exc.message,
            stage=exc.stage.value if exc.stage else None,
        )
    return EvaluationResult(expression=expression, ok=True, value=value)
