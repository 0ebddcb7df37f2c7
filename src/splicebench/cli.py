"""Splicebench CLI."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from splicebench import __version__
from splicebench._constants import DEFAULT_OUTPUT_DIR
from splicebench._logging import setup_logging
from splicebench._resources import get_templates_dir
from splicebench.benchmark import BenchmarkRunner, IterationReport, SqlShellExecutor
from splicebench.benchmark.executor import ConnectivityError, SubprocessLaunchError
from splicebench.config import (
    ConfigError,
    ConfigValidationError,
    RunConfig,
    build_config,
)
from splicebench.journal import CommandName, EventType, Journal
from splicebench.provision import (
    PipelineStageError,
    ProvisioningPipeline,
    SchemaValidator,
    TemplateNotFound,
    TemplateRenderer,
    ValidationVerdict,
)
from splicebench.workspace import RunWorkspace, run_stamp

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_USAGE = 1
EXIT_INVALID_VALUE = 2
EXIT_CONNECTIVITY = 3

# typer may ship its own copy of click, so the usage error base is taken
# from the exception classes typer re-exports.
UsageError = next(c for c in typer.BadParameter.__mro__ if c.__name__ == "UsageError")

app = typer.Typer(
    name="splicebench",
    help="Provision TPC-H schemas and benchmark them on Splice Machine",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-H", "--help"]},
    epilog="[dim]Workflow: validate -> run -> journal[/dim]",
)

console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]OK[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]ERROR[/red] {message}", highlight=False)


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]WARN[/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]...[/blue] {message}")


def print_result(line: str) -> None:
    """Print a results line verbatim, never wrapped."""
    console.print(line, markup=False, highlight=False, soft_wrap=True)


def _progress(cfg: RunConfig) -> Callable[[str], None] | None:
    """Progress printer used by the pipeline and runner, only in verbose mode."""
    if not cfg.verbose:
        return None
    return lambda message: console.print(message, markup=False, highlight=False, soft_wrap=True)


def _journal_safe(fn, *args, **kwargs) -> None:
    """Call a journal function, logging failures instead of aborting the run."""
    try:
        fn(*args, **kwargs)
    except Exception:
        logger.debug("Journal write failed", exc_info=True)


def _abort(j: Journal | None, message: str, code: int) -> typer.Exit:
    """Report a fatal error, journal it, and build the exit to raise."""
    print_error(message)
    if j is not None:
        _journal_safe(j.end_command, success=False, message=message, exit_code=code)
    return typer.Exit(code)


def _resolve_config(overrides: dict[str, Any], config_file: Path | None) -> RunConfig:
    """Build the RunConfig, exiting 1 for a missing target and 2 for bad values."""
    try:
        return build_config(overrides, config_file)
    except ConfigValidationError as e:
        # Model-level errors (empty loc) come from the host/url check.
        if any(not err.get("loc") for err in e.errors):
            print_error("One of host or url must be supplied!")
            raise typer.Exit(EXIT_USAGE)  # noqa: B904
        print_error(str(e))
        raise typer.Exit(EXIT_INVALID_VALUE)  # noqa: B904
    except ConfigError as e:
        print_error(f"Config error: {e}")
        raise typer.Exit(EXIT_INVALID_VALUE)  # noqa: B904


def _sanity_check(cfg: RunConfig, log_dir_given: bool) -> None:
    """Check the log base, templates and client before touching the database."""
    if log_dir_given and not cfg.log_base.is_dir():
        print_error(f"specified logdir does not exist: {cfg.log_base}")
        raise typer.Exit(EXIT_INVALID_VALUE)

    templates_dir = cfg.templates_dir or get_templates_dir()
    if not templates_dir.is_dir():
        print_error(f"{templates_dir} must be present")
        raise typer.Exit(EXIT_INVALID_VALUE)

    if not cfg.sqlshell.is_file():
        print_error(f"could not find sqlshell <{cfg.sqlshell}>")
        raise typer.Exit(EXIT_INVALID_VALUE)


def _connect(cfg: RunConfig, workspace: RunWorkspace, j: Journal) -> SqlShellExecutor:
    """Create the executor and prove the database answers a trivial query."""
    executor = SqlShellExecutor.from_config(cfg)
    try:
        test_log = executor.health_check(workspace.sql_dir, workspace.run_dir)
    except (ConnectivityError, SubprocessLaunchError) as e:
        _journal_safe(
            j.record,
            EventType.CONNECTIVITY_CHECK,
            message=str(e),
            success=False,
            details={"target": cfg.target},
        )
        raise _abort(j, str(e), EXIT_CONNECTIVITY) from None

    if cfg.debug:
        print_info("Test query results follow")
        print_result(test_log.read_text(errors="replace"))
    _journal_safe(
        j.record,
        EventType.CONNECTIVITY_CHECK,
        message=f"Connected to {cfg.target}",
        success=True,
    )
    return executor


def _open_journal(cfg: RunConfig, workspace: RunWorkspace, command: CommandName, args: dict) -> Journal:
    j = Journal(workspace.journal_dir)
    _journal_safe(
        j.open_session,
        schema=cfg.schema_name,
        details={"benchmark": cfg.benchmark.value, "scale": cfg.scale},
    )
    _journal_safe(j.begin_command, command, args)
    return j


def _record_verdict(j: Journal, verdict: ValidationVerdict) -> None:
    _journal_safe(
        j.record,
        EventType.SCHEMA_VALIDATED,
        message=verdict.reason or f"Schema {verdict.schema} is valid",
        success=verdict.passed,
        details={
            "schema_exists": verdict.schema_exists,
            "table_count_ok": verdict.table_count_ok,
            "index_count_ok": verdict.index_count_ok,
            "row_counts_ok": verdict.row_counts_ok,
        },
    )


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show splicebench version."""
    console.print(f"Splicebench version {__version__}")


@app.command()
def run(
    host: Annotated[
        str | None,
        typer.Option("--host", "-h", help="Hostname of your database. One of host or url is required."),
    ] = None,
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="JDBC url for your database. One of host or url is required."),
    ] = None,
    benchmark: Annotated[
        str | None,
        typer.Option("--benchmark", "-b", help="Benchmark to run (default: TPCH)"),
    ] = None,
    scale: Annotated[
        int | None,
        typer.Option("--scale", "-s", help="Scale factor (default: 1) {1, 10, 100, 1000}"),
    ] = None,
    query_set: Annotated[
        str | None,
        typer.Option("--set", "-S", help="Query set to run (default: good) {good, all, errors}"),
    ] = None,
    mode: Annotated[
        str | None,
        typer.Option("--mode", "-m", help="Load mode for setup (default: bulk) {bulk, linear}"),
    ] = None,
    log_dir: Annotated[
        Path | None,
        typer.Option("--logdir", "-L", help=f"Base directory for logs (default: {DEFAULT_OUTPUT_DIR})"),
    ] = None,
    label: Annotated[
        str | None,
        typer.Option("--label", "-l", help="Label identifying the output (default: scale and date)"),
    ] = None,
    suffix: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Suffix added to the schema name"),
    ] = None,
    iterations: Annotated[
        int | None,
        typer.Option("--iterations", "-i", help="How many iterations to run (default: 1)"),
    ] = None,
    timeout: Annotated[
        int | None,
        typer.Option("--timeout", "-t", help="Seconds each query may run (default: forever)"),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="YAML file with defaults for any of these options"),
    ] = None,
    sqlshell: Annotated[
        Path | None,
        typer.Option("--sqlshell", help="Path to the sqlshell client"),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-D", help="Print debug messages"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-V", help="Print progress messages"),
    ] = False,
) -> None:
    """Validate or provision a TPC-H schema, then run the query benchmark.

    If the schema is missing or incomplete it is created and loaded first
    (bulk or linear). Each iteration prints one results line with the
    elapsed milliseconds of every query, or Err / Nan.

    Examples:

        splicebench run -h localhost

        splicebench run -h localhost -s 10 -m linear -i 3 -V

        splicebench run -u "jdbc:splice://db:1527/splicedb;user=splice;password=admin" -S all -t 600
    """
    started_wall = time.monotonic()
    stamp = run_stamp()

    overrides: dict[str, Any] = {
        "host": host,
        "url": url,
        "benchmark": benchmark,
        "scale": scale,
        "query_set": query_set,
        "mode": mode,
        "log_base": log_dir,
        "label": label,
        "suffix": suffix,
        "iterations": iterations,
        "timeout": timeout,
        "sqlshell": sqlshell,
        "debug": debug or None,
        "verbose": verbose or None,
    }
    cfg = _resolve_config(overrides, config_file)
    setup_logging(debug=cfg.debug, verbose=cfg.verbose)
    _sanity_check(cfg, log_dir_given=log_dir is not None)

    schema = cfg.schema_name
    workspace = RunWorkspace(log_base=cfg.log_base, schema=schema, stamp=stamp).prepare()
    renderer = TemplateRenderer(workspace.sql_dir, cfg.templates_dir)
    effective_label = cfg.effective_label(stamp)
    logger.debug("Entering main for %s with scale %s schema %s", cfg.benchmark.value, cfg.scale, schema)

    if cfg.verbose:
        console.print(
            Panel(
                f"{effective_label}\n"
                f"Schema: {schema}  Target: {cfg.target}\n"
                f"Mode: {cfg.mode.value}  Set: {cfg.query_set.value}  "
                f"Iterations: {max(cfg.iterations, 1)}  "
                f"Timeout: {cfg.timeout or 'none'}",
                expand=False,
            )
        )

    j = _open_journal(
        cfg,
        workspace,
        CommandName.RUN,
        {
            "label": effective_label,
            "mode": cfg.mode.value,
            "set": cfg.query_set.value,
            "iterations": cfg.iterations,
            "timeout": cfg.timeout,
        },
    )

    executor = _connect(cfg, workspace, j)
    validator = SchemaValidator(executor, workspace)
    profile = cfg.profile

    # Provision when the schema is missing or incomplete
    verdict = validator.validate(schema, profile)
    _record_verdict(j, verdict)
    if not verdict.passed:
        logger.info("Schema %s needs provisioning: %s", schema, verdict.reason)
        pipeline = ProvisioningPipeline(cfg, workspace, renderer, executor, validator)
        try:
            report = pipeline.run(progress_callback=_progress(cfg))
        except PipelineStageError as e:
            _journal_safe(
                j.record,
                EventType.PROVISION_STAGE,
                message=str(e),
                success=False,
                details={"stage": e.stage},
            )
            raise _abort(j, str(e), e.exit_code) from None
        except TemplateNotFound as e:
            raise _abort(j, str(e), EXIT_INVALID_VALUE) from None
        except SubprocessLaunchError as e:
            raise _abort(j, str(e), EXIT_CONNECTIVITY) from None

        if cfg.verbose:
            console.print("\t\t\t Times:\tSetup Time,\tCreate,\tIndex,\tLoad,\tCompact,\tStats,\tCount")
        print_result(report.summary_line())
        _journal_safe(
            j.record,
            EventType.PROVISION_COMPLETE,
            message=f"Provisioned {schema} using {cfg.mode.value} load",
            success=True,
            details=report.to_dict(),
            duration_s=report.total_seconds,
        )

        verdict = validator.validate(schema, profile)
        _record_verdict(j, verdict)
        if not verdict.passed:
            raise _abort(j, f"the schema {schema} has failed validation", EXIT_USAGE)

    # Benchmark
    runner = BenchmarkRunner(cfg, workspace, renderer, executor)
    try:
        runner.prepare_queries()
    except TemplateNotFound as e:
        raise _abort(j, str(e), EXIT_INVALID_VALUE) from None

    _journal_safe(
        j.record,
        EventType.BENCHMARK_START,
        message="Benchmark started",
        details={"set": cfg.query_set.value, "iterations": cfg.iterations},
    )

    def on_report(report: IterationReport) -> None:
        print_result(report.summary_line())
        _journal_safe(
            j.record,
            EventType.BENCHMARK_ITERATION,
            message=report.summary_line(),
            success=not report.error_queries,
            details=report.to_dict(),
        )

    try:
        reports = runner.run(progress_callback=_progress(cfg), report_callback=on_report)
    except SubprocessLaunchError as e:
        raise _abort(j, str(e), EXIT_CONNECTIVITY) from None

    _journal_safe(
        j.record,
        EventType.BENCHMARK_COMPLETE,
        message=f"Benchmark complete: {len(reports)} iteration(s)",
        success=True,
        details={
            "iterations": len(reports),
            "queries_failed": sum(len(r.error_queries) for r in reports),
        },
    )
    _journal_safe(j.end_command, success=True)

    total = int(time.monotonic() - started_wall)
    console.print(f"Total runtime was {total} seconds")


@app.command()
def validate(
    host: Annotated[
        str | None,
        typer.Option("--host", "-h", help="Hostname of your database"),
    ] = None,
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="JDBC url for your database"),
    ] = None,
    scale: Annotated[
        int | None,
        typer.Option("--scale", "-s", help="Scale factor {1, 10, 100, 1000}"),
    ] = None,
    suffix: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Suffix added to the schema name"),
    ] = None,
    log_dir: Annotated[
        Path | None,
        typer.Option("--logdir", "-L", help="Base directory for logs"),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="YAML file with defaults for any of these options"),
    ] = None,
    sqlshell: Annotated[
        Path | None,
        typer.Option("--sqlshell", help="Path to the sqlshell client"),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-D", help="Print debug messages"),
    ] = False,
) -> None:
    """Check that a TPC-H schema exists and is fully loaded, without changing it.

    Exits 0 when the schema passes, 1 when it does not.
    """
    overrides: dict[str, Any] = {
        "host": host,
        "url": url,
        "scale": scale,
        "suffix": suffix,
        "log_base": log_dir,
        "sqlshell": sqlshell,
        "debug": debug or None,
    }
    cfg = _resolve_config(overrides, config_file)
    setup_logging(debug=cfg.debug, verbose=True)
    _sanity_check(cfg, log_dir_given=log_dir is not None)

    workspace = RunWorkspace(log_base=cfg.log_base, schema=cfg.schema_name).prepare()
    j = _open_journal(cfg, workspace, CommandName.VALIDATE, {"scale": cfg.scale})
    executor = _connect(cfg, workspace, j)

    verdict = SchemaValidator(executor, workspace).validate(cfg.schema_name, cfg.profile)
    _record_verdict(j, verdict)

    table = Table(title=f"Schema {cfg.schema_name}")
    table.add_column("Check")
    table.add_column("Status", justify="center")
    checks = [
        ("Schema exists", verdict.schema_exists),
        ("8 tables", verdict.table_count_ok),
        ("4 indexes", verdict.index_count_ok),
        (f"Row counts at scale {cfg.scale}", verdict.row_counts_ok),
    ]
    for name, ok in checks:
        table.add_row(name, "[green]PASS[/green]" if ok else "[red]FAIL[/red]")
    console.print(table)

    if not verdict.passed:
        raise _abort(j, verdict.reason, EXIT_USAGE)
    print_success(f"Schema {cfg.schema_name} is valid")
    _journal_safe(j.end_command, success=True)


@app.command()
def journal(
    session_id: Annotated[
        str | None,
        typer.Option("--session", help="Show events for a specific session"),
    ] = None,
    last: Annotated[
        int,
        typer.Option("--last", help="Show last N sessions"),
    ] = 10,
    log_dir: Annotated[
        Path,
        typer.Option("--logdir", "-L", help="Base directory for logs"),
    ] = Path(DEFAULT_OUTPUT_DIR),
) -> None:
    """View the provisioning and benchmark history recorded per schema.

    Examples:

        splicebench journal

        splicebench journal --session 20261018-120000-a1b2c3
    """
    j = Journal(log_dir / "journal")

    if session_id:
        events = j.load_session_events(session_id)
        if not events:
            print_warning(f"No events found for session {session_id}")
            return

        console.print(Panel(f"Session: [bold]{session_id}[/bold]", expand=False))
        table = Table()
        table.add_column("Time", style="dim", width=19)
        table.add_column("Event", style="cyan")
        table.add_column("Command", style="bold")
        table.add_column("Message")
        table.add_column("Status", justify="center")

        for event in events:
            success = event.get("success")
            status = ""
            if success is True:
                status = "[green]OK[/green]"
            elif success is False:
                status = "[red]FAIL[/red]"
            table.add_row(
                event.get("timestamp", "")[:19],
                event.get("event_type", ""),
                event.get("command", "") or "",
                event.get("message", ""),
                status,
            )

        console.print(table)
        return

    sessions = j.list_sessions()
    if not sessions:
        print_warning(f"No journal sessions found in {log_dir / 'journal'}")
        return

    console.print(Panel("Splicebench Journal Sessions", expand=False))
    table = Table()
    table.add_column("Session ID", style="cyan")
    table.add_column("Schema")
    table.add_column("Started", style="dim")
    table.add_column("Events", justify="right")
    table.add_column("Commands")

    for s in sessions[:last]:
        table.add_row(
            s["session_id"],
            s.get("schema", ""),
            s.get("started", "")[:19],
            str(s.get("event_count", 0)),
            ", ".join(s.get("commands", [])),
        )

    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Main entry point for CLI.

    Unknown options and missing option values exit 1; malformed values exit 2.
    """
    try:
        rv = app(standalone_mode=False)
    except typer.BadParameter as e:
        e.show()
        raise SystemExit(EXIT_INVALID_VALUE) from None
    except UsageError as e:
        e.show()
        raise SystemExit(EXIT_USAGE) from None
    except typer.Abort:
        console.print("Aborted!")
        raise SystemExit(EXIT_USAGE) from None
    raise SystemExit(rv if isinstance(rv, int) else EXIT_OK)


if __name__ == "__main__":
    main()
