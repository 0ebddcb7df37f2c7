"""TPC-H query set for splicebench.

The 22 TPC-H queries ship as ``query-NN.sql`` templates. Some are known to
fail against the engine; :data:`KNOWN_BAD_QUERIES` is the one place that
list lives.
"""

from __future__ import annotations

from dataclasses import dataclass

from splicebench._constants import KNOWN_BAD_QUERIES, TPCH_QUERY_IDS
from splicebench.config.schema import QuerySet


@dataclass(frozen=True)
class BenchmarkQuery:
    """A single TPC-H query template."""

    query_id: int

    @property
    def name(self) -> str:
        return f"query-{self.query_id:02d}"

    @property
    def template(self) -> str:
        return f"{self.name}.sql"

    @property
    def log_name(self) -> str:
        return f"{self.name}.out"

    @property
    def known_bad(self) -> bool:
        return self.query_id in KNOWN_BAD_QUERIES


BENCHMARK_QUERIES: tuple[BenchmarkQuery, ...] = tuple(BenchmarkQuery(i) for i in TPCH_QUERY_IDS)


def select_queries(query_set: QuerySet | str) -> list[BenchmarkQuery]:
    """Queries to run for a query set, in query-id order.

    ``good`` skips the known-bad queries, ``errors`` runs only them and
    ``all`` runs everything.
    """
    query_set = QuerySet(query_set)
    if query_set is QuerySet.GOOD:
        return [q for q in BENCHMARK_QUERIES if not q.known_bad]
    if query_set is QuerySet.ERRORS:
        return [q for q in BENCHMARK_QUERIES if q.known_bad]
    return list(BENCHMARK_QUERIES)
