"""Table sweep tests: one compiled expression over polars rows."""

from __future__ import annotations

import json
from pathlib import Path

import polars as pl
import pytest

from formulary.formulas import ErrorStage, FormulaError, FormulaRefError
from formulary.functions import Function
from formulary.sweep import load_table, sweep_table


class TestSweepTable:
    def test_row_wise_results(self) -> None:
        table = pl.DataFrame({"x": [1, 2, 3], "y": [10.0, 20.0, 30.0]})
        out = sweep_table("x * y", table)
        assert out["result"].to_list() == [10.0, 40.0, 90.0]
        assert out["error"].to_list() == [None, None, None]
        assert out.columns == ["x", "y", "result", "error"]

    def test_result_dtypes(self) -> None:
        out = sweep_table("x + 1", pl.DataFrame({"x": [1]}))
        assert out.schema["result"] == pl.Float64
        assert out.schema["error"] == pl.Utf8

    def test_custom_result_column(self) -> None:
        out = sweep_table("x + 1", pl.DataFrame({"x": [1, 2]}), result_column="next")
        assert out["next"].to_list() == [2.0, 3.0]

    def test_non_numeric_columns_ignored(self) -> None:
        table = pl.DataFrame({"name": ["a", "b"], "x": [1, 2]})
        out = sweep_table("x * 2", table)
        assert out["result"].to_list() == [2.0, 4.0]
        assert out["name"].to_list() == ["a", "b"]

    def test_constant_expression_without_numeric_columns(self) -> None:
        out = sweep_table("1 + 2", pl.DataFrame({"name": ["a", "b"]}))
        assert out["result"].to_list() == [3.0, 3.0]

    def test_null_cell_fails_that_row_only(self) -> None:
        table = pl.DataFrame({"x": [1.0, None, 3.0], "y": [2.0, 2.0, 2.0]})
        out = sweep_table("x + y", table)
        assert out["result"].to_list() == [3.0, None, 5.0]
        errors = out["error"].to_list()
        assert errors[0] is None
        assert "Unknown variable: 'x'" in errors[1]

    def test_row_level_function_error(self) -> None:
        table = pl.DataFrame({"x": [4.0, -1.0]})
        out = sweep_table("Sqrt(x)", table, include_library=True)
        assert out["result"].to_list() == [2.0, None]
        assert "Sqrt" in out["error"][1]

    def test_caller_functions(self) -> None:
        double = Function("Double", 1, lambda args: args[0] * 2)
        out = sweep_table("Double(x)", pl.DataFrame({"x": [1, 5]}), [double])
        assert out["result"].to_list() == [2.0, 10.0]

    def test_unknown_column_fails_up_front(self) -> None:
        with pytest.raises(FormulaRefError) as exc_info:
            sweep_table("x + z", pl.DataFrame({"x": [1], "label": ["a"]}))
        assert exc_info.value.ref_name == "z"
        assert exc_info.value.available == ["x"]

    def test_string_column_is_not_a_variable(self) -> None:
        with pytest.raises(FormulaRefError):
            sweep_table("label + 1", pl.DataFrame({"label": ["a"]}))

    def test_syntax_error_fails_up_front(self) -> None:
        with pytest.raises(FormulaError) as exc_info:
            sweep_table("2(x)", pl.DataFrame({"x": [1]}))
        assert exc_info.value.stage is ErrorStage.lexer

    def test_empty_table(self) -> None:
        out = sweep_table("x", pl.DataFrame({"x": []}, schema={"x": pl.Float64}))
        assert out.height == 0
        assert "result" in out.columns


class TestColumnClashes:
    def test_existing_error_column(self) -> None:
        table = pl.DataFrame({"x": [1], "error": ["keep me"]})
        with pytest.raises(ValueError, match="'error'"):
            sweep_table("x + 1", table)
        assert table["error"].to_list() == ["keep me"]

    def test_existing_result_column(self) -> None:
        table = pl.DataFrame({"x": [1], "result": [99.0]})
        with pytest.raises(ValueError, match="'result'"):
            sweep_table("x + 1", table)

    def test_result_column_named_like_an_input(self) -> None:
        with pytest.raises(ValueError, match="'x'"):
            sweep_table("x + 1", pl.DataFrame({"x": [1]}), result_column="x")

    def test_result_column_named_error(self) -> None:
        with pytest.raises(ValueError, match="may not be named 'error'"):
            sweep_table("x + 1", pl.DataFrame({"x": [1]}), result_column="error")


class TestLoadTable:
    def test_reads_csv(self, tmp_path: Path) -> None:
        path = tmp_path / "rows.csv"
        path.write_text("x,y\n1,2\n3,4\n")
        table = load_table(path)
        assert table.columns == ["x", "y"]
        assert sweep_table("x + y", table)["result"].to_list() == [3.0, 7.0]


class TestSweepEvents:
    def test_sweep_completed_event(self, tmp_path: Path) -> None:
        import formulary.logging.events as mod

        old_sink = mod._sink
        try:
            from formulary.logging.events import set_log_dir

            set_log_dir(tmp_path)
            sweep_table("x + y", pl.DataFrame({"x": [1.0, None], "y": [1.0, 1.0]}))

            lines = (tmp_path / "logs" / "events.ndjson").read_text().strip().splitlines()
            events = [json.loads(line) for line in lines]
            sweep = [e for e in events if e["event_type"] == "sweep_completed"]
            assert len(sweep) == 1
            assert sweep[0]["context"] == {"expression": "x + y", "rows": 2, "failed": 1}
        finally:
            mod._sink = old_sink
