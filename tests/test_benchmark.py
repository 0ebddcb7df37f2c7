"""Tests for query selection and the benchmark runner."""

from __future__ import annotations

import json

import pytest

from splicebench.benchmark import (
    BENCHMARK_QUERIES,
    BenchmarkRunner,
    IterationReport,
    QueryResult,
    QueryStatus,
    ShellStatus,
    select_queries,
)
from splicebench.benchmark.runner import RESULTS_FILE, format_ms
from splicebench.config import QuerySet
from tests.conftest import FakeShell, error_log, make_config, timed_log


class TestQuerySelection:
    def test_universe(self):
        assert [q.query_id for q in BENCHMARK_QUERIES] == list(range(1, 23))

    @pytest.mark.parametrize("query_set,size", [("good", 19), ("errors", 3), ("all", 22)])
    def test_selection_sizes(self, query_set, size):
        assert len(select_queries(query_set)) == size

    def test_errors_set(self):
        assert [q.query_id for q in select_queries(QuerySet.ERRORS)] == [8, 18, 20]

    def test_good_excludes_known_bad(self):
        assert not any(q.known_bad for q in select_queries("good"))

    def test_names(self):
        q = BENCHMARK_QUERIES[0]
        assert q.name == "query-01"
        assert q.template == "query-01.sql"
        assert q.log_name == "query-01.out"

    def test_unknown_set(self):
        with pytest.raises(ValueError):
            select_queries("most")


class TestQueryResult:
    def _result(self, errors, elapsed):
        return QueryResult(query=BENCHMARK_QUERIES[0], error_count=errors, elapsed_ms=elapsed)

    def test_ok(self):
        result = self._result(0, 1250.0)
        assert result.status is QueryStatus.OK
        assert result.success
        assert result.display_value == "1250"

    def test_error_wins_over_time(self):
        result = self._result(2, 800.0)
        assert result.status is QueryStatus.ERROR
        assert result.display_value == "Err"

    def test_no_time(self):
        result = self._result(0, None)
        assert result.status is QueryStatus.NO_TIME
        assert result.display_value == "Nan"

    def test_format_ms(self):
        assert format_ms(12.0) == "12"
        assert format_ms(12.5) == "12.5"
        assert format_ms(None) == ""


class TestIterationReport:
    def test_summary_single_run(self, tmp_path):
        report = IterationReport(schema="TPCH1", iteration=0, log_dir=tmp_path)
        report.results = [
            QueryResult(BENCHMARK_QUERIES[0], 0, 100.0),
            QueryResult(BENCHMARK_QUERIES[1], 1, 5.0),
            QueryResult(BENCHMARK_QUERIES[2], 0, None),
        ]
        assert report.summary_line() == "TPCH1 results: 100, Err, Nan"
        assert report.error_queries == ["query-02"]
        assert report.total_ms == 100.0

    def test_summary_iteration(self, tmp_path):
        report = IterationReport(schema="TPCH10", iteration=3, log_dir=tmp_path)
        report.results = [QueryResult(BENCHMARK_QUERIES[0], 0, 7.0)]
        assert report.summary_line() == "TPCH10 results for run 3: 7"

    def test_save(self, tmp_path):
        report = IterationReport(schema="TPCH1", iteration=0, log_dir=tmp_path)
        report.results = [QueryResult(BENCHMARK_QUERIES[0], 0, 100.0)]
        data = json.loads(report.save().read_text())
        assert data["schema"] == "TPCH1"
        assert data["queries"][0] == {
            "query": "query-01",
            "status": "ok",
            "error_count": 0,
            "elapsed_ms": 100.0,
            "timed_out": False,
        }


def _runner(workspace, renderer, outputs=None, **config):
    shell = FakeShell(outputs, default=timed_log(100))
    cfg = make_config(log_base=workspace.log_base, **config)
    return BenchmarkRunner(cfg, workspace, renderer, shell), shell


class TestBenchmarkRunner:
    def test_good_set_single_run(self, workspace, renderer):
        runner, shell = _runner(workspace, renderer)
        reports = runner.run()

        assert len(reports) == 1
        report = reports[0]
        assert report.iteration == 0
        assert report.log_dir == workspace.run_dir
        assert len(report.results) == 19
        assert "query-08.sql" not in shell.scripts()
        assert report.summary_line() == "TPCH1 results: " + ", ".join(["100"] * 19)
        assert (workspace.run_dir / RESULTS_FILE).exists()

    @pytest.mark.parametrize("query_set,size", [("good", 19), ("errors", 3), ("all", 22)])
    def test_selection_executed(self, workspace, renderer, query_set, size):
        runner, shell = _runner(workspace, renderer, query_set=query_set)
        runner.run()
        assert len(shell.calls) == size

    def test_failing_query_does_not_stop_pass(self, workspace, renderer):
        runner, shell = _runner(
            workspace,
            renderer,
            {"query-02": error_log(), "query-03": "0 rows selected\n"},
            query_set="all",
        )
        report = runner.run()[0]
        values = report.summary_line().split(": ", 1)[1].split(", ")
        assert values[:4] == ["100", "Err", "Nan", "100"]
        assert len(shell.calls) == 22

    def test_missing_log_counts_as_no_time(self, workspace, renderer):
        runner, _ = _runner(workspace, renderer, {"query-01": None})
        report = runner.run()[0]
        assert report.results[0].display_value == "Nan"

    def test_iterations(self, workspace, renderer):
        runner, shell = _runner(workspace, renderer, iterations=3, query_set="errors")
        seen: list[int] = []
        reports = runner.run(report_callback=lambda r: seen.append(r.iteration))

        assert [r.iteration for r in reports] == [1, 2, 3]
        assert seen == [1, 2, 3]
        assert len(shell.calls) == 9
        for i, report in enumerate(reports, start=1):
            assert report.log_dir == workspace.iteration_dir(i)
            assert (report.log_dir / "query-18.out").exists()
            assert report.summary_line().startswith(f"TPCH1 results for run {i}: ")

    def test_timeout_passed_to_executor(self, workspace, renderer):
        runner, shell = _runner(workspace, renderer, timeout=5, query_set="errors")
        runner.run()
        assert {timeout for _, timeout in shell.calls} == {5}

    def test_timed_out_query_reported(self, workspace, renderer):
        class HangingShell(FakeShell):
            def run(self, sql_file, log_file, timeout=0):
                super().run(sql_file, log_file, timeout)
                return ShellStatus(returncode=None, elapsed_seconds=5.0, timed_out=True, cancelled=["abc"])

        shell = HangingShell({"query-08": "ERROR 57014: Statement was cancelled\n"})
        cfg = make_config(log_base=workspace.log_base, timeout=5, query_set="errors")
        report = BenchmarkRunner(cfg, workspace, renderer, shell).run()[0]
        assert report.results[0].timed_out
        assert report.results[0].display_value == "Err"

    def test_progress_messages(self, workspace, renderer):
        runner, _ = _runner(workspace, renderer, {"query-02": error_log(2)}, query_set="good")
        messages: list[str] = []
        runner.run(progress_callback=messages.append)
        assert "Set is good, so skipping TPCH query 08" in messages
        assert "Running TPCH query 01 at scale 1" in messages
        assert "TPCH1 query-01.sql took 100 milliseconds" in messages
        assert "TPCH1 query-02.sql had 2 errors" in messages

    def test_prepare_queries_renders_all(self, workspace, renderer):
        runner, _ = _runner(workspace, renderer)
        paths = runner.prepare_queries()
        assert len(paths) == 22
        assert (workspace.sql_dir / "query-20.sql").exists()

    def test_renders_missing_script(self, workspace, renderer):
        runner, _ = _runner(workspace, renderer, query_set="errors")
        assert not (workspace.sql_dir / "query-08.sql").exists()
        runner.run()
        assert (workspace.sql_dir / "query-08.sql").exists()
