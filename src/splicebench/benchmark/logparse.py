"""Extraction of structured facts from sqlshell output logs.

sqlshell writes human-readable tables, ``ERROR`` lines and, with
``elapsedtime on``, one ``ELAPSED TIME = <n> milliseconds`` line per
statement. A scalar query looks like::

    1
    --------------------
    6001215

    1 row selected
    ELAPSED TIME = 532 milliseconds

Every function accepts a path that may not exist: a log that never
materialised is read as empty text.

The integer helpers keep the historical behaviour of returning 0 when no
count can be found, which makes "no data" indistinguishable from a true
zero. :func:`parse_count` returns a :class:`ParsedCount` that keeps the
two apart; callers that care should use it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

_RULE_RE = re.compile(r"-{6,}")
_ELAPSED_RE = re.compile(r"ELAPSED TIME\s*=?\s*(-?\d+(?:\.\d+)?)")
_ERROR_MARKER = "ERROR"


class ParseStatus(str, Enum):
    """Outcome of scraping a scalar from a log."""

    MATCHED = "matched"
    NO_MATCH = "no_match"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class ParsedCount:
    """A scalar count scraped from tabular output."""

    value: int | None
    status: ParseStatus
    raw: str = ""

    @property
    def matched(self) -> bool:
        return self.status is ParseStatus.MATCHED

    def or_zero(self) -> int:
        """Collapse ambiguity to 0, as the integer helpers do."""
        return self.value if self.value is not None else 0


def read_log(log: Path | str) -> str:
    """Return the log text, or an empty string if the file is missing."""
    try:
        return Path(log).read_text(errors="replace")
    except FileNotFoundError:
        logger.debug("Log %s does not exist, treating as empty", log)
        return ""


def _first_field_int(line: str) -> int | None:
    fields = line.split()
    if not fields:
        return None
    try:
        return int(fields[0])
    except ValueError:
        return None


def parse_count(text: str) -> ParsedCount:
    """Parse the first column of the row that follows the last rule line."""
    lines = text.splitlines()
    candidate: str | None = None
    for i, line in enumerate(lines):
        if _RULE_RE.search(line) and i + 1 < len(lines):
            candidate = lines[i + 1]

    if candidate is None:
        return ParsedCount(value=None, status=ParseStatus.NO_MATCH)

    value = _first_field_int(candidate)
    if value is None:
        return ParsedCount(value=None, status=ParseStatus.UNPARSEABLE, raw=candidate.strip())
    return ParsedCount(value=value, status=ParseStatus.MATCHED, raw=candidate.strip())


def parse_log_count(log: Path | str) -> ParsedCount:
    """:func:`parse_count` applied to a log file."""
    parsed = parse_count(read_log(log))
    if not parsed.matched:
        logger.warning("No count result in %s (%s)", log, parsed.status.value)
    else:
        logger.debug("Count result %d from %s", parsed.value, log)
    return parsed


def count_result(log: Path | str) -> int:
    """Scalar count from a one-row query log; 0 when nothing matches."""
    return parse_log_count(log).or_zero()


def error_count(log: Path | str) -> int:
    """Number of lines containing ``ERROR``."""
    return sum(1 for line in read_log(log).splitlines() if _ERROR_MARKER in line)


def elapsed_time(log: Path | str) -> float | None:
    """Sum of all ``ELAPSED TIME`` values in milliseconds, or None if there are none."""
    values = [float(m.group(1)) for m in _ELAPSED_RE.finditer(read_log(log))]
    if not values:
        return None
    return sum(values)


def table_counts(log: Path | str, tables: Iterable[str]) -> dict[str, int | None]:
    """Per-table counts from a count log.

    The count script aliases each ``COUNT(*)`` column to the table name, so
    each table appears alone on a header line with its count two lines below
    (after the rule). Tables with no parseable count map to None.
    """
    lines = read_log(log).splitlines()
    counts: dict[str, int | None] = {}
    for table in tables:
        header = re.compile(rf"^{re.escape(table)}\s*$")
        value: int | None = None
        for i, line in enumerate(lines):
            if header.match(line) and i + 2 < len(lines):
                value = _first_field_int(lines[i + 2])
        counts[table] = value
    return counts
