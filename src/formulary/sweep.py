"""Evaluate one expression across the rows of a table.

The expression is compiled once; each row's numeric columns become the
variable table for that row.  Rows that fail keep a null result and carry
the error message in an ``error`` column.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import polars as pl

from formulary.engine import compile_formula
from formulary.formulas.errors import FormulaError, FormulaRefError
from formulary.functions.registry import Function, Variable
from formulary.logging.events import EventType, emit_info

ERROR_COLUMN = "error"


def load_table(path: Path) -> pl.DataFrame:
    """Load a CSV table.

    Args:
        path: Path to a CSV file with a header row.

    Returns:
        The table as a polars DataFrame.
    """
    return pl.read_csv(path)


def sweep_table(
    expression: str,
    table: pl.DataFrame,
    functions: Sequence[Function] = (),
    include_library: bool = False,
    result_column: str = "result",
) -> pl.DataFrame:
    """Evaluate *expression* once per row of *table*.

    Args:
        expression: Formula text; variables resolve against column names.
        table: Input rows.
        functions: Extra caller functions.
        include_library: Enable the optional function library.
        result_column: Name of the output column.

    Returns:
        *table* with two extra columns: *result_column* (Float64, null on
        failure) and ``error`` (Utf8, null on success).

    Raises:
        ValueError: If *result_column* or ``error`` already names a column
            of *table*, or *result_column* is ``error``.
        FormulaError: If the expression fails to tokenize or parse, or
            refers to a variable that is not a numeric column.
    """
    if result_column == ERROR_COLUMN:
        raise ValueError(f"result column may not be named {ERROR_COLUMN!r}")
    clashes = [c for c in (result_column, ERROR_COLUMN) if c in table.columns]
    if clashes:
        raise ValueError(f"table already has column(s) {clashes}; choose another result column or rename them")

    compiled = compile_formula(expression)

    numeric_cols = [name for name, dtype in table.schema.items() if dtype.is_numeric()]
    missing = sorted(compiled.variables - set(numeric_cols))
    if missing:
        raise FormulaRefError(missing[0], available=sorted(numeric_cols))

    if numeric_cols:
        rows = table.select(numeric_cols).iter_rows(named=True)
    else:
        rows = ({} for _ in range(table.height))

    results: list[float | None] = []
    errors: list[str | None] = []
    for row in rows:
        variables = [
            Variable(name=name, value=value)
            for name, value in row.items()
            if value is not None
        ]
        try:
            value = compiled.evaluate(functions, variables, include_library=include_library)
        except FormulaError as exc:
            results.append(None)
            errors.append(exc.message)
        else:
            results.append(value)
            errors.append(None)

    failed = sum(1 for e in errors if e is not None)
    emit_info(
        EventType.sweep_completed,
        f"Sweep completed: {len(results) - failed} ok, {failed} failed",
        context={"expression": expression, "rows": len(results), "failed": failed},
    )

    return table.with_columns(
        pl.Series(result_column, results, dtype=pl.Float64),
        pl.Series(ERROR_COLUMN, errors, dtype=pl.Utf8),
    )
