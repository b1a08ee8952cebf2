"""Batch evaluation tests: sequential and parallel runs, events."""

from __future__ import annotations

from pathlib import Path

import pytest

from formulary.batch import load_expressions, run_batch
from formulary.functions import Variable


EXPRESSIONS = ["1 + 2", "Add(2)", "x * 2", "2(3)"]


# ────────────────────────────────────────────────────────────────
# Loading
# ────────────────────────────────────────────────────────────────


class TestLoadExpressions:
    def test_skips_blank_and_comments(self, tmp_path: Path) -> None:
        path = tmp_path / "exprs.txt"
        path.write_text("# header\n1 + 2\n\n   \n  x * 2  \n# trailing\n")
        assert load_expressions(path) == ["1 + 2", "x * 2"]

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "exprs.txt"
        path.write_text("")
        assert load_expressions(path) == []


# ────────────────────────────────────────────────────────────────
# Running
# ────────────────────────────────────────────────────────────────


class TestRunBatch:
    def test_summary_counts(self) -> None:
        summary = run_batch(EXPRESSIONS, variables={"x": 4})
        assert summary["total"] == 4
        assert summary["ok"] == 2
        assert summary["failed"] == 2
        assert len(summary["batch_id"]) == 32

    def test_results_in_order(self) -> None:
        summary = run_batch(EXPRESSIONS, variables={"x": 4})
        results = summary["results"]
        assert [r["index"] for r in results] == [0, 1, 2, 3]
        assert results[0] == {"index": 0, "expression": "1 + 2", "status": "ok", "value": 3.0}
        assert results[1]["status"] == "error"
        assert results[1]["stage"] == "processor"
        assert results[2]["value"] == 8.0
        assert results[3]["stage"] == "lexer"

    def test_failure_does_not_abort(self) -> None:
        summary = run_batch(["2(3)", "1"])
        assert summary["results"][1]["value"] == 1.0

    def test_variable_models(self) -> None:
        summary = run_batch(["x"], variables=[Variable(name="x", value=7)])
        assert summary["results"][0]["value"] == 7.0

    def test_library_flag(self) -> None:
        without = run_batch(["Sqrt(9)"])
        with_lib = run_batch(["Sqrt(9)"], include_library=True)
        assert without["failed"] == 1
        assert with_lib["results"][0]["value"] == 3.0

    def test_unique_batch_ids(self) -> None:
        assert run_batch(["1"])["batch_id"] != run_batch(["1"])["batch_id"]

    def test_parallel_matches_sequential(self) -> None:
        sequential = run_batch(EXPRESSIONS, variables={"x": 4}, max_workers=1)
        parallel = run_batch(EXPRESSIONS, variables={"x": 4}, max_workers=2)
        assert parallel["results"] == sequential["results"]
        assert parallel["ok"] == sequential["ok"]


# ────────────────────────────────────────────────────────────────
# Events
# ────────────────────────────────────────────────────────────────


class TestBatchEvents:
    def test_lifecycle_events(self, tmp_path: Path) -> None:
        import formulary.logging.events as mod

        old_sink = mod._sink
        try:
            from formulary.logging.events import set_log_dir
            from formulary.logging.sink import EventSink

            set_log_dir(tmp_path)
            summary = run_batch(["1 + 2", "Add(2)"])

            events = EventSink(tmp_path).read_batch_log(summary["batch_id"])
            assert [e["event_type"] for e in events] == ["batch_started", "batch_completed"]
            completed = events[1]
            assert completed["level"] == "warning"
            assert completed["context"]["ok"] == 1
            assert completed["context"]["failed"] == 1

            global_types = [e["event_type"] for e in EventSink(tmp_path).read_global()]
            assert global_types.count("eval_completed") == 1
            assert global_types.count("eval_failed") == 1
        finally:
            mod._sink = old_sink

    @pytest.mark.parametrize("expressions", [["1"], ["1", "2"]])
    def test_clean_batch_is_info(self, tmp_path: Path, expressions: list[str]) -> None:
        import formulary.logging.events as mod

        old_sink = mod._sink
        try:
            from formulary.logging.events import set_log_dir
            from formulary.logging.sink import EventSink

            set_log_dir(tmp_path)
            summary = run_batch(expressions)

            events = EventSink(tmp_path).read_batch_log(summary["batch_id"])
            assert events[-1]["level"] == "info"
            assert events[-1]["context"]["total"] == len(expressions)
        finally:
            mod._sink = old_sink

    def test_started_event_records_variables(self, tmp_path: Path) -> None:
        import formulary.logging.events as mod

        old_sink = mod._sink
        try:
            from formulary.logging.events import set_log_dir
            from formulary.logging.sink import EventSink

            set_log_dir(tmp_path)
            summary = run_batch(["x"], variables={"x": 4, "secret": 1})

            started = EventSink(tmp_path).read_batch_log(summary["batch_id"])[0]
            assert started["context"]["variables"] == {"x": 4.0, "secret": "[REDACTED]"}
        finally:
            mod._sink = old_sink

    def test_parallel_workers_log_every_evaluation(self, tmp_path: Path) -> None:
        import formulary.logging.events as mod

        old_sink = mod._sink
        try:
            from formulary.logging.events import set_log_dir
            from formulary.logging.sink import EventSink

            set_log_dir(tmp_path)
            run_batch(EXPRESSIONS, variables={"x": 4}, max_workers=2)

            events = EventSink(tmp_path).read_global()
            logged = sorted(
                e["context"]["expression"] for e in events
                if e["event_type"] in ("eval_completed", "eval_failed")
            )
            assert logged == sorted(EXPRESSIONS)
        finally:
            mod._sink = old_sink


class TestWorkerInit:
    def test_sets_sink_from_directory(self, tmp_path: Path) -> None:
        import formulary.logging.events as mod
        from formulary.batch import _init_worker

        old_sink = mod._sink
        try:
            _init_worker(str(tmp_path))
            assert mod.current_log_dir() == tmp_path
        finally:
            mod._sink = old_sink

    def test_clears_inherited_sink(self, tmp_path: Path) -> None:
        import formulary.logging.events as mod
        from formulary.batch import _init_worker
        from formulary.logging.events import set_log_dir

        old_sink = mod._sink
        try:
            set_log_dir(tmp_path)
            _init_worker(None)
            assert mod.current_log_dir() is None
        finally:
            mod._sink = old_sink
