"""Benchmark runner for splicebench.

Runs the selected TPC-H queries one after another through sqlshell and
scrapes each query's log for its error count and elapsed time. One pass
over the query set is an iteration; each iteration logs to its own
directory and yields one :class:`IterationReport`.

Per-query failures never stop a pass: a failing query shows up as ``Err``
in the results line and the runner moves on to the next query.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .executor import SqlShellExecutor
from .logparse import elapsed_time, error_count
from .queries import BenchmarkQuery, select_queries

if TYPE_CHECKING:
    from splicebench.config.schema import RunConfig
    from splicebench.provision.engine import TemplateRenderer
    from splicebench.workspace import RunWorkspace

logger = logging.getLogger(__name__)

RESULTS_FILE = "results.json"


class QueryStatus(str, Enum):
    """Classification of one query's log."""

    OK = "ok"
    NO_TIME = "no_time"
    ERROR = "error"


@dataclass
class QueryResult:
    """Parsed outcome of a single query execution."""

    query: BenchmarkQuery
    error_count: int
    elapsed_ms: float | None
    timed_out: bool = False

    @property
    def status(self) -> QueryStatus:
        if self.error_count > 0:
            return QueryStatus.ERROR
        if self.elapsed_ms is None:
            return QueryStatus.NO_TIME
        return QueryStatus.OK

    @property
    def success(self) -> bool:
        return self.status is QueryStatus.OK

    @property
    def display_value(self) -> str:
        """Token used in the results line: the time, ``Nan`` or ``Err``."""
        if self.status is QueryStatus.ERROR:
            return "Err"
        if self.status is QueryStatus.NO_TIME:
            return "Nan"
        return format_ms(self.elapsed_ms)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict."""
        return {
            "query": self.query.name,
            "status": self.status.value,
            "error_count": self.error_count,
            "elapsed_ms": self.elapsed_ms,
            "timed_out": self.timed_out,
        }


def format_ms(value: float | None) -> str:
    """Render milliseconds without a trailing ``.0`` for whole values."""
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else f"{value:.3f}".rstrip("0")


@dataclass
class IterationReport:
    """Results of one pass over the query set, in query-id order."""

    schema: str
    iteration: int
    log_dir: Path
    results: list[QueryResult] = field(default_factory=list)

    @property
    def error_queries(self) -> list[str]:
        return [r.query.name for r in self.results if r.status is QueryStatus.ERROR]

    @property
    def total_ms(self) -> float:
        return sum(r.elapsed_ms or 0.0 for r in self.results if r.success)

    def summary_line(self) -> str:
        """``<SCHEMA> results[ for run N]: v1, v2, ...``"""
        prefix = f"{self.schema} results"
        if self.iteration:
            prefix += f" for run {self.iteration}"
        return f"{prefix}: " + ", ".join(r.display_value for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict."""
        return {
            "schema": self.schema,
            "iteration": self.iteration,
            "log_dir": str(self.log_dir),
            "total_ms": self.total_ms,
            "errors": len(self.error_queries),
            "queries": [r.to_dict() for r in self.results],
        }

    def save(self) -> Path:
        path = self.log_dir / RESULTS_FILE
        path.write_text(json.dumps(self.to_dict(), indent=2) + "\n")
        return path


class BenchmarkRunner:
    """Runs the TPC-H query suite against a provisioned schema."""

    def __init__(
        self,
        config: RunConfig,
        workspace: RunWorkspace,
        renderer: TemplateRenderer,
        executor: SqlShellExecutor | None = None,
    ):
        """Initialize benchmark runner.

        Args:
            config: Run configuration
            workspace: Directory layout for this run
            renderer: Renders query templates into the workspace SQL directory
            executor: sqlshell executor (created from config if not provided)
        """
        self.config = config
        self.workspace = workspace
        self.renderer = renderer
        self.executor = executor or SqlShellExecutor.from_config(config)
        self.schema = config.schema_name

    def prepare_queries(self) -> list[Path]:
        """Render every query template for this schema."""
        return self.renderer.render_queries(
            self.schema,
            self.config.scale,
            [q.template for q in select_queries("all")],
        )

    def run(
        self,
        progress_callback: Callable[[str], None] | None = None,
        report_callback: Callable[[IterationReport], None] | None = None,
    ) -> list[IterationReport]:
        """Run all iterations.

        A single run (0 or 1 iterations) logs into the base run directory and
        is reported as iteration 0; otherwise iteration N logs into a fresh
        ``-iter<N>`` directory. ``report_callback`` sees each report as soon
        as its iteration finishes.
        """
        if self.config.single_run:
            plan = [(self.workspace.run_dir, 0)]
        else:
            plan = [
                (self.workspace.make_iteration_dir(i), i)
                for i in range(1, self.config.iterations + 1)
            ]

        reports = []
        for log_dir, i in plan:
            logger.debug("Running %s iteration %d into %s", self.schema, i, log_dir)
            report = self.run_iteration(log_dir, i, progress_callback)
            if report_callback:
                report_callback(report)
            reports.append(report)
        return reports

    def run_iteration(
        self,
        log_dir: Path,
        iteration: int = 0,
        progress_callback: Callable[[str], None] | None = None,
    ) -> IterationReport:
        """Run one pass over the selected queries.

        Args:
            log_dir: Directory receiving one ``.out`` per query
            iteration: Iteration index (0 for a single run)
            progress_callback: Optional callback receiving progress messages

        Returns:
            IterationReport with one entry per executed query
        """
        log_dir.mkdir(parents=True, exist_ok=True)
        report = IterationReport(schema=self.schema, iteration=iteration, log_dir=log_dir)
        selected = {q.query_id for q in select_queries(self.config.query_set)}

        for query in select_queries("all"):
            if query.query_id not in selected:
                if progress_callback:
                    progress_callback(
                        f"Set is {self.config.query_set.value}, so skipping TPCH query {query.query_id:02d}"
                    )
                continue

            if progress_callback:
                progress_callback(
                    f"Running TPCH query {query.query_id:02d} at scale {self.config.scale}"
                )
            result = self._execute_single_query(query, log_dir)
            report.results.append(result)

            if progress_callback:
                if result.status is QueryStatus.ERROR:
                    progress_callback(
                        f"{self.schema} {query.template} had {result.error_count} errors"
                    )
                elif result.status is QueryStatus.NO_TIME:
                    progress_callback(f"{self.schema} {query.template} no errors and no time")
                else:
                    progress_callback(
                        f"{self.schema} {query.template} took {result.display_value} milliseconds"
                    )

        report.save()
        return report

    def _execute_single_query(self, query: BenchmarkQuery, log_dir: Path) -> QueryResult:
        """Run one query and parse its log."""
        sql_file = self.workspace.sql_dir / query.template
        if not sql_file.exists():
            self.renderer.render(query.template, self.schema, self.config.scale)

        log_file = log_dir / query.log_name
        status = self.executor.run(sql_file, log_file, timeout=self.config.timeout)
        if status.timed_out:
            logger.warning(
                "%s exceeded %ds, cancelled %d operation(s)",
                query.name,
                self.config.timeout,
                len(status.cancelled),
            )

        return QueryResult(
            query=query,
            error_count=error_count(log_file),
            elapsed_ms=elapsed_time(log_file),
            timed_out=status.timed_out,
        )
