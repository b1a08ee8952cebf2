"""Command-line interface for formulary."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from formulary import __version__


@click.group()
@click.version_option(version=__version__, prog_name="formulary")
def main() -> None:
    """formulary -- evaluate formulas through postfix form.

    Pipeline: Tokenize -> Postfix -> Evaluate
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_vars(items: tuple[str, ...]) -> dict[str, float]:
    values: dict[str, float] = {}
    for item in items:
        if "=" not in item:
            raise click.ClickException(f"Invalid --var format: {item!r}. Use name=value.")
        k, v = item.split("=", 1)
        try:
            values[k.strip()] = float(v)
        except ValueError:
            raise click.ClickException(f"Invalid --var value for {k!r}: {v!r} is not a number")
    return values


def _load_settings(project: str | None, var_items: tuple[str, ...], stdlib: bool) -> tuple[dict[str, float], bool, dict[str, Any]]:
    """Merge project config with command-line overrides.

    Returns:
        (variables, include_library, config).  ``--var`` values override
        config variables of the same name.
    """
    from formulary.logging.events import set_log_dir
    from formulary.project import DEFAULT_CONFIG, config_variables, load_project_config

    config = dict(DEFAULT_CONFIG)
    variables: dict[str, float] = {}
    if project is not None:
        project_dir = Path(project)
        try:
            config = load_project_config(project_dir)
            variables = {v.name: v.value for v in config_variables(config)}
        except ValueError as e:
            raise click.ClickException(str(e))
        set_log_dir(project_dir)

    variables.update(_parse_vars(var_items))
    return variables, stdlib or bool(config.get("stdlib")), config


def _format_value(value: float) -> str:
    return f"{value:g}"


_project_option = click.option(
    "--project", default=None, type=click.Path(exists=True, file_okay=False),
    help="Project directory with formulary.yaml (enables event logging).",
)
_var_option = click.option("--var", "var_items", multiple=True, help="Set a variable as name=value.")
_stdlib_option = click.option("--stdlib", is_flag=True, help="Enable the optional function library.")

# Expressions such as "-4" or "-2 * x" must reach EXPRESSION instead of
# being rejected as unknown options.
_EXPRESSION_CONTEXT = {"ignore_unknown_options": True}


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval", context_settings=_EXPRESSION_CONTEXT)
@click.argument("expression")
@_var_option
@_stdlib_option
@_project_option
@click.option("--json", "as_json", is_flag=True, help="Output the result as JSON.")
def eval_cmd(expression: str, var_items: tuple[str, ...], stdlib: bool, project: str | None, as_json: bool) -> None:
    """Evaluate EXPRESSION and print the result."""
    from formulary.engine import try_evaluate

    variables, include_library, _ = _load_settings(project, var_items, stdlib)
    outcome = try_evaluate(expression, variables=variables, include_library=include_library)

    if as_json:
        click.echo(json.dumps(outcome.model_dump(), indent=2))
        if not outcome.ok:
            raise SystemExit(1)
        return

    if not outcome.ok:
        raise click.ClickException(f"[{outcome.stage}] {outcome.error}")
    click.echo(_format_value(outcome.value))


# ---------------------------------------------------------------------------
# Pipeline inspection
# ---------------------------------------------------------------------------


@main.command("tokens", context_settings=_EXPRESSION_CONTEXT)
@click.argument("expression")
def tokens_cmd(expression: str) -> None:
    """Print the tokens of EXPRESSION, one per line."""
    from formulary.formulas import FormulaError, Operator, tokenize

    try:
        tokens = tokenize(expression)
    except FormulaError as e:
        raise click.ClickException(str(e))
    for t in tokens:
        if t.value is None:
            click.echo(t.type.value)
        else:
            value = t.value.value if isinstance(t.value, Operator) else t.value
            click.echo(f"{t.type.value:10s} {value}")


@main.command("postfix", context_settings=_EXPRESSION_CONTEXT)
@click.argument("expression")
def postfix_cmd(expression: str) -> None:
    """Print EXPRESSION in postfix (reverse-Polish) order."""
    from formulary.formulas import FormulaError, format_postfix, parse_formula

    try:
        items = parse_formula(expression)
    except FormulaError as e:
        raise click.ClickException(str(e))
    click.echo(format_postfix(items))


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


@main.command("batch")
@click.argument("expressions_file", type=click.Path(exists=True, dir_okay=False))
@_var_option
@_stdlib_option
@_project_option
@click.option("--max-workers", type=int, default=None, help="Number of parallel workers (1=sequential).")
@click.option("--json", "as_json", is_flag=True, help="Output the summary as JSON.")
def batch_cmd(
    expressions_file: str,
    var_items: tuple[str, ...],
    stdlib: bool,
    project: str | None,
    max_workers: int | None,
    as_json: bool,
) -> None:
    """Evaluate every expression in EXPRESSIONS_FILE (one per line)."""
    from formulary.batch import load_expressions, run_batch

    variables, include_library, config = _load_settings(project, var_items, stdlib)
    if max_workers is None:
        max_workers = int(config.get("batch_max_workers") or 1)

    path = Path(expressions_file)
    expressions = load_expressions(path)
    if not expressions:
        click.echo("No expressions found.")
        return

    summary = run_batch(
        expressions,
        variables=variables,
        include_library=include_library,
        max_workers=max_workers,
    )

    if as_json:
        click.echo(json.dumps(summary, indent=2))
        return

    click.echo(f"Batch ID: {summary['batch_id']}")
    click.echo(f"Total: {summary['total']}  OK: {summary['ok']}  Failed: {summary['failed']}")
    for r in summary["results"]:
        if r["status"] == "ok":
            click.echo(f"  [{r['index']}] OK    {r['expression']} = {_format_value(r['value'])}")
        else:
            click.echo(f"  [{r['index']}] FAIL  {r['expression']}  [{r['stage']}] {r['error']}")


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------


@main.command("sweep", context_settings=_EXPRESSION_CONTEXT)
@click.argument("expression")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@_stdlib_option
@_project_option
@click.option("--output", "output", default=None, type=click.Path(dir_okay=False), help="Write the result table to this CSV file.")
@click.option("--column", "result_column", default="result", help="Name of the result column.")
def sweep_cmd(
    expression: str,
    csv_file: str,
    stdlib: bool,
    project: str | None,
    output: str | None,
    result_column: str,
) -> None:
    """Evaluate EXPRESSION once per row of CSV_FILE."""
    from formulary.formulas import FormulaError
    from formulary.sweep import load_table, sweep_table

    _, include_library, _ = _load_settings(project, (), stdlib)
    table = load_table(Path(csv_file))
    try:
        result = sweep_table(
            expression, table,
            include_library=include_library,
            result_column=result_column,
        )
    except (FormulaError, ValueError) as e:
        raise click.ClickException(str(e))

    if output:
        result.write_csv(output)
        click.echo(f"Wrote {result.height} row(s) to {output}")
    else:
        click.echo(str(result))


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--batch-id", default=None, help="Filter by batch ID.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    batch_id: str | None,
    limit: int,
) -> None:
    """Show the structured event log for DIRECTORY."""
    from formulary.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.read_global(
        level=level,
        event_type=event_type,
        batch_id=batch_id,
        limit=limit,
    )
    if not events:
        click.echo("No events found.")
        return
    for e in events:
        code = f" ({e['error_code']})" if e.get("error_code") else ""
        click.echo(f"{e.get('ts', '')}  {e.get('level', ''):7s}  {e.get('event_type', '')}{code}  {e.get('message', '')}")
