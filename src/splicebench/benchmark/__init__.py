"""TPC-H query benchmark for splicebench.

Runs the TPC-H query set through sqlshell and reports per-query
elapsed times and error counts for each iteration.
"""

from .executor import QueryJob, ShellStatus, SqlShellExecutor
from .queries import BENCHMARK_QUERIES, BenchmarkQuery, select_queries
from .runner import BenchmarkRunner, IterationReport, QueryResult, QueryStatus

__all__ = [
    "BENCHMARK_QUERIES",
    "BenchmarkQuery",
    "BenchmarkRunner",
    "IterationReport",
    "QueryJob",
    "QueryResult",
    "QueryStatus",
    "ShellStatus",
    "SqlShellExecutor",
    "select_queries",
]
