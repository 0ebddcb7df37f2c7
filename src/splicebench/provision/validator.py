"""Schema validation for splicebench.

A TPC-H schema is usable when it exists, holds 8 tables and 4 indexes, and
the promoted count log shows the row counts expected for its scale. Each
check renders a throwaway one-row catalog query, runs it through sqlshell
and scrapes the scalar from its log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from splicebench._constants import TPCH_INDEX_COUNT, TPCH_TABLE_COUNT
from splicebench.benchmark.logparse import ParsedCount, parse_log_count, table_counts

if TYPE_CHECKING:
    from splicebench.benchmark.executor import SqlShellExecutor
    from splicebench.config.scale import ScaleProfile
    from splicebench.workspace import RunWorkspace

logger = logging.getLogger(__name__)

SCHEMA_EXISTS_SQL = "select count(1) from sys.sysschemas s where s.schemaname='{schema}';\n"
TABLE_COUNT_SQL = (
    "select count(1) from sys.systables c join sys.sysschemas s "
    "on c.schemaid = s.schemaid where s.schemaname='{schema}';\n"
)
INDEX_COUNT_SQL = (
    "select count(1) from sys.sysconglomerates c join sys.sysschemas s "
    "on c.schemaid = s.schemaid where s.schemaname='{schema}' and c.isindex=true;\n"
)
STATISTICS_COUNT_SQL = "select count(1) from sys.systablestatistics where schemaname='{schema}';\n"


@dataclass
class ValidationVerdict:
    """Outcome of :meth:`SchemaValidator.validate`.

    Checks run in order and stop at the first failure, so flags after a
    failed check stay False.
    """

    schema: str
    schema_exists: bool = False
    table_count_ok: bool = False
    index_count_ok: bool = False
    row_counts_ok: bool = False
    reason: str = ""

    @property
    def passed(self) -> bool:
        return all(
            (self.schema_exists, self.table_count_ok, self.index_count_ok, self.row_counts_ok)
        )

    def __bool__(self) -> bool:
        return self.passed


class SchemaValidator:
    """Checks a TPC-H schema against catalog metadata and the count log."""

    def __init__(self, executor: SqlShellExecutor, workspace: RunWorkspace):
        self.executor = executor
        self.workspace = workspace

    def _scalar(self, name: str, sql: str) -> ParsedCount:
        """Run a one-row query and parse its scalar."""
        sql_file = self.workspace.sql_dir / f"{name}.sql"
        log_file = self.workspace.run_dir / f"{name}.out"
        self.executor.run_script(sql, sql_file, log_file)
        return parse_log_count(log_file)

    def check_schema(self, schema: str) -> bool:
        count = self._scalar("checkSchema", SCHEMA_EXISTS_SQL.format(schema=schema)).or_zero()
        logger.debug("CheckSchema: found %d", count)
        if count != 1:
            logger.info("Schema %s: not present", schema)
            return False
        logger.debug("Schema %s is present", schema)
        return True

    def check_table_count(self, schema: str, expect: int = TPCH_TABLE_COUNT) -> bool:
        count = self._scalar("checkTableCount", TABLE_COUNT_SQL.format(schema=schema)).or_zero()
        if count != expect:
            logger.info("Schema %s: incorrect table count %d (expected %d)", schema, count, expect)
            return False
        logger.debug("Schema %s has %d tables", schema, expect)
        return True

    def check_index_count(self, schema: str, expect: int = TPCH_INDEX_COUNT) -> bool:
        count = self._scalar("checkIndexes", INDEX_COUNT_SQL.format(schema=schema)).or_zero()
        if count != expect:
            logger.info("Schema %s: incorrect index count %d (expected %d)", schema, count, expect)
            return False
        logger.debug("Schema %s has %d indexes", schema, expect)
        return True

    def count_statistics(self, schema: str) -> int:
        """Number of table statistics rows collected for ``schema``."""
        count = self._scalar("checkStats", STATISTICS_COUNT_SQL.format(schema=schema)).or_zero()
        logger.debug("Schema %s has %d stats", schema, count)
        return count

    def check_row_counts(self, profile: ScaleProfile, count_log: Path | None = None) -> bool:
        """Compare the count log against the profile; any mismatch fails the check."""
        count_log = count_log or self.workspace.count_log
        found = table_counts(count_log, profile.row_counts)
        mismatched = [
            table for table, expected in profile.row_counts.items() if found.get(table) != expected
        ]
        if mismatched:
            logger.info(
                "Row counts mismatch at scale %d in %s: %s",
                profile.scale,
                count_log,
                ", ".join(f"{t}={found.get(t)}" for t in mismatched),
            )
            return False
        logger.debug("Row counts match scale %d", profile.scale)
        return True

    def validate(self, schema: str, profile: ScaleProfile) -> ValidationVerdict:
        """Run all checks in order, stopping at the first failure."""
        verdict = ValidationVerdict(schema=schema)

        verdict.schema_exists = self.check_schema(schema)
        if not verdict.schema_exists:
            verdict.reason = f"schema {schema} not present"
            return verdict

        verdict.table_count_ok = self.check_table_count(schema, TPCH_TABLE_COUNT)
        if not verdict.table_count_ok:
            verdict.reason = f"schema {schema} is missing {TPCH_TABLE_COUNT} tables"
            return verdict

        verdict.index_count_ok = self.check_index_count(schema, TPCH_INDEX_COUNT)
        if not verdict.index_count_ok:
            verdict.reason = f"schema {schema} is missing {TPCH_INDEX_COUNT} indexes"
            return verdict

        verdict.row_counts_ok = self.check_row_counts(profile)
        if not verdict.row_counts_ok:
            verdict.reason = f"schema {schema} row counts mismatch"
            return verdict

        logger.debug("Schema %s passed validation", schema)
        return verdict
