"""Provisioning engine for splicebench.

Builds a TPC-H schema from the packaged SQL templates, in strict order:

1. Create tables
2. Load data (bulk: indexes then HFile import; linear: import then indexes)
3. Major compaction
4. Statistics collection
5. Row counts (log promoted for later validation)

Any failed step aborts provisioning with a :class:`PipelineStageError`.
Nothing is rolled back: a half-built schema stays as it is.
"""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from splicebench._constants import TPCH_INDEX_COUNT, TPCH_TABLE_COUNT
from splicebench.benchmark.executor import SqlShellExecutor
from splicebench.benchmark.logparse import elapsed_time, error_count
from splicebench.benchmark.runner import format_ms
from splicebench.config.scale import get_profile
from splicebench.config.schema import LoadMode

from .validator import SchemaValidator

if TYPE_CHECKING:
    from splicebench.config.schema import RunConfig
    from splicebench.workspace import RunWorkspace

logger = logging.getLogger(__name__)

# Exit codes for fatal stage failures.
EXIT_LOAD_FAILURE = 4
EXIT_FINALIZE_FAILURE = 5


class ProvisionError(Exception):
    """Base exception for provisioning errors."""

    pass


class TemplateNotFound(ProvisionError):
    """Raised when a SQL template does not exist."""

    pass


class PipelineStageError(ProvisionError):
    """Raised when a provisioning stage fails; carries the process exit code."""

    def __init__(self, stage: str, message: str, exit_code: int = EXIT_LOAD_FAILURE):
        super().__init__(message)
        self.stage = stage
        self.exit_code = exit_code


class TemplateRenderer:
    """Renders SQL templates with ``##SCHEMA##``, ``##SCALE##`` and ``##QRY11##`` placeholders.

    Substitution is literal: only those three tokens are replaced and every
    other byte of the template, line endings included, is written back as is.
    """

    TOKENS = ("SCHEMA", "SCALE", "QRY11")

    def __init__(self, output_dir: Path, template_dir: Path | None = None):
        """Initialize template renderer.

        Args:
            output_dir: Directory receiving rendered scripts.
            template_dir: Path to templates directory. Defaults to package templates.
        """
        if template_dir is None:
            from splicebench._resources import get_templates_dir

            template_dir = get_templates_dir()

        self.template_dir = Path(template_dir)
        self.output_dir = Path(output_dir)

    @staticmethod
    def context_for(schema: str, scale: int) -> dict[str, Any]:
        """Placeholder values for a schema at a given scale."""
        return {
            "SCHEMA": schema,
            "SCALE": scale,
            "QRY11": get_profile(scale).qry11,
        }

    def render_text(self, template_name: str, context: dict[str, Any]) -> str:
        """Render a template to a string.

        Raises:
            TemplateNotFound: If the template file does not exist.
        """
        path = self.template_dir / template_name
        if not path.is_file():
            raise TemplateNotFound(f"there is no template {template_name}")
        with open(path, encoding="utf-8", newline="") as f:
            text = f.read()
        for token in self.TOKENS:
            if token in context:
                text = text.replace(f"##{token}##", str(context[token]))
        return text

    def render(self, template_name: str, schema: str, scale: int) -> Path:
        """Render ``template_name`` into the output directory, overwriting any prior render.

        Returns:
            Path of the rendered script
        """
        text = self.render_text(template_name, self.context_for(schema, scale))
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output = self.output_dir / template_name
        logger.debug("Rendering %s to %s", template_name, output)
        with open(output, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        return output

    def render_queries(self, schema: str, scale: int, template_names: list[str]) -> list[Path]:
        """Render multiple templates with the same schema and scale."""
        return [self.render(name, schema, scale) for name in template_names]


@dataclass
class StageResult:
    """Outcome of one provisioning step."""

    stage: str
    template: str
    log_file: Path
    elapsed_ms: float | None
    error_count: int

    @property
    def display_ms(self) -> str:
        return format_ms(self.elapsed_ms) if self.elapsed_ms is not None else "0"


@dataclass
class ProvisionReport:
    """All stage results of one provisioning run."""

    schema: str
    mode: LoadMode
    stages: dict[str, StageResult] = field(default_factory=dict)
    total_seconds: float = 0.0
    counts_match: bool = False

    def stage_ms(self, stage: str) -> str:
        result = self.stages.get(stage)
        return result.display_ms if result else "0"

    def summary_line(self) -> str:
        """``<SCHEMA> setup times:`` followed by total seconds and per-stage milliseconds."""
        times = [str(int(self.total_seconds))] + [
            self.stage_ms(s) for s in ("create", "index", "load", "compact", "stats", "count")
        ]
        return f"{self.schema} setup times:\t" + ",\t".join(times)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict."""
        return {
            "schema": self.schema,
            "mode": self.mode.value,
            "total_seconds": round(self.total_seconds, 2),
            "counts_match": self.counts_match,
            "stages": {
                name: {"elapsed_ms": r.elapsed_ms, "errors": r.error_count}
                for name, r in self.stages.items()
            },
        }


class ProvisioningPipeline:
    """Creates and loads a TPC-H schema."""

    def __init__(
        self,
        config: RunConfig,
        workspace: RunWorkspace,
        renderer: TemplateRenderer,
        executor: SqlShellExecutor | None = None,
        validator: SchemaValidator | None = None,
    ):
        """Initialize provisioning pipeline.

        Args:
            config: Run configuration
            workspace: Directory layout for this run
            renderer: Renders setup templates into the workspace SQL directory
            executor: sqlshell executor (created from config if not provided)
            validator: Schema validator (created if not provided)
        """
        self.config = config
        self.workspace = workspace
        self.renderer = renderer
        self.executor = executor or SqlShellExecutor.from_config(config)
        self.validator = validator or SchemaValidator(self.executor, workspace)
        self.schema = config.schema_name
        self.scale = config.scale
        self._progress: Callable[[str], None] | None = None

    def _say(self, message: str) -> None:
        logger.info(message)
        if self._progress:
            self._progress(message)

    def _run_stage(self, stage: str, template: str, description: str) -> StageResult:
        """Render and run one setup template and parse its log."""
        sql_file = self.renderer.render(template, self.schema, self.scale)
        log_file = self.workspace.run_dir / template.replace(".sql", ".out")
        self.executor.run(sql_file, log_file)

        result = StageResult(
            stage=stage,
            template=template,
            log_file=log_file,
            elapsed_ms=elapsed_time(log_file),
            error_count=error_count(log_file),
        )
        self._say(f"{self.schema}: {description} . . . took {result.display_ms} milliseconds.")
        return result

    def _fail(self, stage: str, message: str, exit_code: int) -> PipelineStageError:
        logger.error("%s: %s", stage, message)
        return PipelineStageError(stage, message, exit_code)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def create_tables(self) -> StageResult:
        result = self._run_stage("create", "setup-01-tables.sql", "Creating tables")
        if result.error_count > 0:
            raise self._fail(
                "create",
                f"errors seen during table create: {result.error_count}",
                EXIT_LOAD_FAILURE,
            )
        if not self.validator.check_table_count(self.schema, TPCH_TABLE_COUNT):
            raise self._fail(
                "create", f"could not make {TPCH_TABLE_COUNT} tables on {self.schema}", EXIT_LOAD_FAILURE
            )
        return result

    def _check_indexes(self, result: StageResult) -> StageResult:
        if result.error_count > 0:
            raise self._fail("index", "failure during index creation", EXIT_LOAD_FAILURE)
        if not self.validator.check_index_count(self.schema, TPCH_INDEX_COUNT):
            raise self._fail(
                "index", f"{self.schema} is missing {TPCH_INDEX_COUNT} indexes", EXIT_LOAD_FAILURE
            )
        return result

    def _check_load(self, result: StageResult) -> StageResult:
        if result.error_count > 0:
            raise self._fail(
                "load",
                "failure during data load. Is your cluster configured to read from s3?",
                EXIT_LOAD_FAILURE,
            )
        return result

    def load_bulk(self) -> tuple[StageResult, StageResult]:
        """Pre-create indexes on the empty tables, then bulk-import HFiles."""
        index = self._check_indexes(
            self._run_stage("index", "setup-02-bulk-splitindex.sql", "Pre-creating indexes")
        )
        load = self._check_load(
            self._run_stage("load", "setup-03-bulk-import.sql", "Bulk loading data")
        )
        return index, load

    def load_linear(self) -> tuple[StageResult, StageResult]:
        """Import rows through the write path, then build indexes."""
        load = self._check_load(
            self._run_stage("load", "setup-02-linear-import.sql", "Loading data with IMPORT_DATA")
        )
        index = self._check_indexes(
            self._run_stage("index", "setup-03-linear-indexes.sql", "Creating linear indexes")
        )
        return index, load

    def compact(self) -> StageResult:
        result = self._run_stage("compact", "setup-04-compact.sql", "Running compaction")
        if result.error_count > 0:
            raise self._fail("compact", "compaction returned an error", EXIT_FINALIZE_FAILURE)
        return result

    def gather_statistics(self) -> StageResult:
        result = self._run_stage("stats", "setup-05-stats.sql", "Gathering statistics")
        if result.error_count > 0:
            raise self._fail("stats", "gathering statistics returned an error", EXIT_FINALIZE_FAILURE)
        stat_count = self.validator.count_statistics(self.schema)
        if stat_count == 0:
            raise self._fail("stats", "zero statistics returned", EXIT_FINALIZE_FAILURE)
        self._say(f"{self.schema}: gathered {stat_count} stats")
        return result

    def count_rows(self) -> StageResult:
        """Count every table and promote the log for later row-count validation."""
        result = self._run_stage("count", "setup-06-count.sql", "Counting tables")
        if result.log_file.exists():
            self.workspace.count_log.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(result.log_file, self.workspace.count_log)
        if result.error_count > 0:
            raise self._fail("count", "failure during row count", EXIT_FINALIZE_FAILURE)
        return result

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def run(self, progress_callback: Callable[[str], None] | None = None) -> ProvisionReport:
        """Run every stage in order.

        Args:
            progress_callback: Optional callback receiving progress messages

        Returns:
            ProvisionReport with per-stage timings

        Raises:
            PipelineStageError: On the first failing stage.
            TemplateNotFound: If a setup template is missing.
        """
        self._progress = progress_callback
        start = time.monotonic()
        mode = self.config.mode
        report = ProvisionReport(schema=self.schema, mode=mode)
        logger.debug("Creating TPCH at %s for scale %s using mode %s", self.schema, self.scale, mode.value)

        try:
            report.stages["create"] = self.create_tables()
            if mode is LoadMode.LINEAR:
                index, load = self.load_linear()
            else:
                index, load = self.load_bulk()
            report.stages["index"] = index
            report.stages["load"] = load
            report.stages["compact"] = self.compact()
            report.stages["stats"] = self.gather_statistics()
            report.stages["count"] = self.count_rows()

            report.counts_match = self.validator.check_row_counts(get_profile(self.scale))
            if report.counts_match:
                self._say(f"Counts are correct on {self.schema} at scale {self.scale}")
            else:
                self._say(f"Error: counts mismatched on {self.schema}")
        finally:
            self._progress = None

        report.total_seconds = time.monotonic() - start
        return report
