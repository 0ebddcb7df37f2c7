"""On-disk layout of a splicebench run.

All paths hang off the configured log base::

    <log_base>/
      <SCHEMA>-queries/                         rendered SQL scripts
      logs/
        setup-06-count.out                      promoted count log
        <SCHEMA>-queries-<stamp>/               single run / setup logs
        <SCHEMA>-queries-<stamp>-iter<N>/       one per iteration
      journal/                                  provenance journal

Directory names are namespaced by schema and start time. Two harness
processes writing to the same schema in the same minute will share a
directory; that case is not guarded against.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from splicebench._constants import COUNT_LOG_NAME, RUN_STAMP_FORMAT

logger = logging.getLogger(__name__)


def run_stamp(now: datetime | None = None) -> str:
    """Timestamp used in run directory names (minute resolution)."""
    return (now or datetime.now()).strftime(RUN_STAMP_FORMAT)


@dataclass(frozen=True)
class RunWorkspace:
    """Resolved directories for one schema and start time."""

    log_base: Path
    schema: str
    stamp: str = field(default_factory=run_stamp)

    @property
    def sql_dir(self) -> Path:
        return self.log_base / f"{self.schema}-queries"

    @property
    def logs_root(self) -> Path:
        return self.log_base / "logs"

    @property
    def run_dir(self) -> Path:
        return self.logs_root / f"{self.schema}-queries-{self.stamp}"

    @property
    def count_log(self) -> Path:
        """Count log promoted out of the setup run directory."""
        return self.logs_root / COUNT_LOG_NAME

    @property
    def journal_dir(self) -> Path:
        return self.log_base / "journal"

    def iteration_dir(self, iteration: int) -> Path:
        return self.logs_root / f"{self.schema}-queries-{self.stamp}-iter{iteration}"

    def prepare(self) -> RunWorkspace:
        """Create the SQL and base run directories."""
        for path in (self.sql_dir, self.run_dir):
            if not path.is_dir():
                logger.debug("Creating directory %s", path)
            path.mkdir(parents=True, exist_ok=True)
        return self

    def make_iteration_dir(self, iteration: int) -> Path:
        path = self.iteration_dir(iteration)
        path.mkdir(parents=True, exist_ok=True)
        return path
