"""sqlshell executor for splicebench.

Runs SQL scripts through the Splice Machine command-line client::

    sqlshell.sh -q {-h host | -U url} -f script.sql -o script.out

and issues administrative statements (listing and killing running
operations) through the same client with the SQL on standard input.

Usage::

    from splicebench.benchmark.executor import SqlShellExecutor

    executor = SqlShellExecutor.from_config(config)
    status = executor.run(sql_dir / "query-01.sql", log_dir / "query-01.out", timeout=600)
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .logparse import error_count, read_log

if TYPE_CHECKING:
    from splicebench.config.schema import RunConfig

logger = logging.getLogger(__name__)

LIST_OPERATIONS_SQL = "call syscs_util.SYSCS_GET_RUNNING_OPERATIONS();"
KILL_OPERATION_SQL = "call syscs_util.SYSCS_KILL_OPERATION('{operation_id}');"
HEALTH_CHECK_SQL = "elapsedtime on;\nselect count(1) from sys.systables;\n"

# Marker of user operations in the running-operations listing.
_OPERATION_MARKER = "|SPLICE"
_LISTING_LOG = "getJobId.out"
# Upper bound on administrative side-channel calls.
_ADMIN_TIMEOUT = 120


class SubprocessLaunchError(RuntimeError):
    """Raised when the SQL client cannot be started."""

    pass


class ConnectivityError(RuntimeError):
    """Raised when the database cannot be reached through the SQL client."""

    pass


@dataclass(frozen=True)
class QueryJob:
    """One script to run and where its output goes."""

    sql_file: Path
    log_file: Path
    timeout: int = 0


@dataclass
class ShellStatus:
    """Outcome of one sqlshell invocation.

    ``returncode`` is None when the client was still running at the deadline;
    the local process is left alone and only server-side cancellation is
    requested.
    """

    returncode: int | None
    elapsed_seconds: float
    timed_out: bool = False
    cancelled: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def parse_running_operations(text: str) -> list[str]:
    """Operation ids from SYSCS_GET_RUNNING_OPERATIONS output, excluding the listing call itself."""
    ids = []
    for line in text.splitlines():
        if _OPERATION_MARKER in line and "SYSCS_GET_RUNNING_OPERATIONS" not in line:
            # Columns are padded with spaces but delimited by "|"
            operation_id = line.split("|", 1)[0].strip()
            if operation_id:
                ids.append(operation_id)
    return ids


class SqlShellExecutor:
    """Runs SQL through the external sqlshell client, one process at a time."""

    def __init__(self, sqlshell: Path | str, connection_args: list[str]):
        """Initialize executor.

        Args:
            sqlshell: Path to the sqlshell launcher
            connection_args: ``["-h", host]`` or ``["-U", url]``
        """
        self.sqlshell = str(sqlshell)
        self.connection_args = list(connection_args)

    @classmethod
    def from_config(cls, config: RunConfig) -> SqlShellExecutor:
        return cls(config.sqlshell, config.connection_args)

    def _base_cmd(self) -> list[str]:
        return [self.sqlshell, "-q", *self.connection_args]

    def _spawn(self, cmd: list[str]) -> subprocess.Popen:
        try:
            return subprocess.Popen(cmd, stdout=subprocess.DEVNULL)
        except OSError as e:
            raise SubprocessLaunchError(f"Could not start {self.sqlshell}: {e}") from e

    # ------------------------------------------------------------------
    # Script execution
    # ------------------------------------------------------------------

    def run(self, sql_file: Path, log_file: Path, timeout: int = 0) -> ShellStatus:
        """Run ``sql_file`` writing client output to ``log_file``.

        With ``timeout == 0`` this blocks until the client exits. Otherwise it
        waits at most ``timeout`` seconds; if the client is still running, every
        running operation on the server gets a kill request and control returns
        to the caller without terminating the local process.

        Raises:
            SubprocessLaunchError: If the client cannot be started.
        """
        cmd = [*self._base_cmd(), "-f", str(sql_file), "-o", str(log_file)]
        logger.debug("Running %s", " ".join(cmd))

        start = time.monotonic()
        proc = self._spawn(cmd)

        if timeout <= 0:
            returncode = proc.wait()
            return ShellStatus(returncode=returncode, elapsed_seconds=time.monotonic() - start)

        try:
            returncode = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            elapsed = time.monotonic() - start
            logger.debug("Decided to cancel %s after %.0fs", sql_file.name, elapsed)
            cancelled = self.cancel_running(log_file.parent)
            return ShellStatus(
                returncode=None,
                elapsed_seconds=elapsed,
                timed_out=True,
                cancelled=cancelled,
            )

        return ShellStatus(returncode=returncode, elapsed_seconds=time.monotonic() - start)

    def execute(self, job: QueryJob) -> ShellStatus:
        return self.run(job.sql_file, job.log_file, timeout=job.timeout)

    def run_script(self, sql_text: str, sql_file: Path, log_file: Path, timeout: int = 0) -> ShellStatus:
        """Write a throwaway script and run it."""
        sql_file.parent.mkdir(parents=True, exist_ok=True)
        sql_file.write_text(sql_text)
        return self.run(sql_file, log_file, timeout=timeout)

    # ------------------------------------------------------------------
    # Administrative side channel
    # ------------------------------------------------------------------

    def _admin(self, sql: str, output: Path | str) -> subprocess.CompletedProcess:
        cmd = [*self._base_cmd(), "-o", str(output)]
        try:
            return subprocess.run(
                cmd,
                input=sql,
                capture_output=True,
                text=True,
                timeout=_ADMIN_TIMEOUT,
            )
        except OSError as e:
            raise SubprocessLaunchError(f"Could not start {self.sqlshell}: {e}") from e

    def list_running_operations(self, log_dir: Path) -> list[str]:
        """Ids of operations currently running on the server."""
        outfile = log_dir / _LISTING_LOG
        try:
            self._admin(LIST_OPERATIONS_SQL, outfile)
        except subprocess.TimeoutExpired:
            logger.warning("Listing running operations timed out")
            return []
        return parse_running_operations(read_log(outfile))

    def kill_operation(self, operation_id: str) -> None:
        """Request cancellation of one server operation. No confirmation is awaited."""
        logger.info("Killing operation %s", operation_id)
        try:
            self._admin(KILL_OPERATION_SQL.format(operation_id=operation_id), "/dev/null")
        except subprocess.TimeoutExpired:
            logger.warning("Kill request for operation %s timed out", operation_id)

    def cancel_running(self, log_dir: Path) -> list[str]:
        """Best-effort cancellation of everything running on the server."""
        operation_ids = self.list_running_operations(log_dir)
        logger.debug("Found running operation(s) %s", operation_ids)
        for operation_id in operation_ids:
            self.kill_operation(operation_id)
        return operation_ids

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def health_check(self, sql_dir: Path, log_dir: Path) -> Path:
        """Run a trivial catalog query and return its log.

        Raises:
            ConnectivityError: If the client fails, writes no output, or reports errors.
        """
        sql_file = sql_dir / "testQry.sql"
        log_file = log_dir / "testQry.out"
        status = self.run_script(HEALTH_CHECK_SQL, sql_file, log_file)
        if status.returncode != 0:
            raise ConnectivityError(
                f"sqlshell test failed for {self.sqlshell} at {' '.join(self.connection_args)}"
            )
        if not log_file.exists():
            raise ConnectivityError("sqlshell did not produce output for the test query")
        errors = error_count(log_file)
        if errors:
            raise ConnectivityError(f"test query reported {errors} error(s), see {log_file}")
        return log_file
