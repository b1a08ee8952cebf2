"""Batch evaluation of many expressions against one variable table.

Expressions are loaded from a text file (one per line).  Each expression
is evaluated independently: a failing line is recorded in the summary and
never aborts the batch.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from pathlib import Path
from typing import Any, Mapping, Sequence
from uuid import uuid4

from formulary.engine import try_evaluate, variable_snapshot
from formulary.functions.registry import Variable, as_variables
from formulary.logging.events import (
    WORKER_ERROR,
    EventLevel,
    EventType,
    clear_log_dir,
    current_log_dir,
    emit,
    emit_error,
    make_batch_event,
    set_log_dir,
)


def load_expressions(path: Path) -> list[str]:
    """Load expressions from a text file.

    Blank lines and lines starting with ``#`` are skipped; surrounding
    whitespace is stripped.

    Args:
        path: Path to the expressions file.

    Returns:
        List of expression strings, in file order.
    """
    expressions: list[str] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            expressions.append(line)
    return expressions


def run_batch(
    expressions: Sequence[str],
    variables: Sequence[Variable] | Mapping[str, float] | None = None,
    include_library: bool = False,
    max_workers: int = 1,
) -> dict[str, Any]:
    """Evaluate every expression and summarise the outcomes.

    Args:
        expressions: Formula strings.
        variables: Variable table shared by all expressions.
        include_library: Enable the optional function library.
        max_workers: Number of worker processes (1 = sequential).

    Returns:
        Summary dict with batch_id, results list, and counts.
    """
    batch_id = uuid4().hex
    table = as_variables(variables)
    # Plain pairs so the table pickles cleanly into worker processes.
    pairs = [(v.name, v.value) for v in table]

    emit(make_batch_event(
        EventType.batch_started,
        EventLevel.info,
        f"Batch started: {len(expressions)} expression(s), batch_id={batch_id[:8]}",
        batch_id=batch_id,
        extra={
            "total": len(expressions),
            "max_workers": max_workers,
            "variables": variable_snapshot(table),
        },
    ), batch_id=batch_id)

    if max_workers <= 1:
        results = _run_sequential(expressions, pairs, include_library)
    else:
        try:
            results = _run_parallel(expressions, pairs, include_library, max_workers)
        except BrokenProcessPool as exc:
            emit_error(
                EventType.batch_failed,
                f"Batch worker pool failed: {exc}",
                context={"batch_id": batch_id},
                error_code=WORKER_ERROR,
                batch_id=batch_id,
            )
            raise

    ok_count = sum(1 for r in results if r["status"] == "ok")
    fail_count = len(results) - ok_count

    emit(make_batch_event(
        EventType.batch_completed,
        EventLevel.info if fail_count == 0 else EventLevel.warning,
        f"Batch completed: {ok_count} ok, {fail_count} failed",
        batch_id=batch_id,
        extra={"total": len(results), "ok": ok_count, "failed": fail_count},
    ), batch_id=batch_id)

    return {
        "batch_id": batch_id,
        "total": len(results),
        "ok": ok_count,
        "failed": fail_count,
        "results": results,
    }


def _run_sequential(
    expressions: Sequence[str],
    pairs: list[tuple[str, float]],
    include_library: bool,
) -> list[dict[str, Any]]:
    return [
        _evaluate_single(expr, pairs, include_library, idx)
        for idx, expr in enumerate(expressions)
    ]


def _evaluate_single(
    expression: str,
    pairs: list[tuple[str, float]],
    include_library: bool,
    index: int,
) -> dict[str, Any]:
    """Evaluate one expression within a batch."""
    variables = [Variable(name=name, value=value) for name, value in pairs]
    outcome = try_evaluate(expression, variables=variables, include_library=include_library)
    if outcome.ok:
        return {
            "index": index,
            "expression": expression,
            "status": "ok",
            "value": outcome.value,
        }
    return {
        "index": index,
        "expression": expression,
        "status": "error",
        "error": outcome.error,
        "stage": outcome.stage,
    }


def _evaluate_single_args(args: tuple) -> dict[str, Any]:
    """Top-level picklable function for ProcessPoolExecutor."""
    return _evaluate_single(*args)


def _init_worker(log_dir: str | None) -> None:
    """Point a worker's module sink at the parent's project directory.

    Workers may be forked (inheriting the parent's sink) or spawned (with
    none), so the sink is always set explicitly.
    """
    if log_dir is None:
        clear_log_dir()
    else:
        set_log_dir(log_dir)


def _run_parallel(
    expressions: Sequence[str],
    pairs: list[tuple[str, float]],
    include_library: bool,
    max_workers: int,
) -> list[dict[str, Any]]:
    """Evaluate expressions in parallel using ProcessPoolExecutor."""
    log_dir = current_log_dir()
    args_list = [
        (expr, pairs, include_library, idx)
        for idx, expr in enumerate(expressions)
    ]
    with ProcessPoolExecutor(
        max_workers=max_workers,
        initializer=_init_worker,
        initargs=(str(log_dir) if log_dir is not None else None,),
    ) as executor:
        return list(executor.map(_evaluate_single_args, args_list))
