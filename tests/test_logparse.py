"""Tests for sqlshell log scraping."""

from __future__ import annotations

import logging

import pytest

from splicebench.benchmark.logparse import (
    ParseStatus,
    count_result,
    elapsed_time,
    error_count,
    parse_count,
    parse_log_count,
    read_log,
    table_counts,
)
from splicebench.config import get_profile
from tests.conftest import count_log, scalar_log


@pytest.fixture
def log(tmp_path):
    """Write ``text`` to a log file and return its path."""

    def _write(text: str, name: str = "query.out"):
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


class TestErrorCount:
    def test_counts_error_lines(self, log):
        path = log("ok\nERROR 42X05: no table\nstill ok\nERROR XJ001: boom\n")
        assert error_count(path) == 2

    def test_no_errors(self, log):
        assert error_count(log("ELAPSED TIME = 3 milliseconds\n")) == 0

    def test_missing_log(self, tmp_path):
        assert error_count(tmp_path / "never-written.out") == 0

    def test_case_sensitive(self, log):
        assert error_count(log("error: lower case is not counted\n")) == 0


class TestElapsedTime:
    def test_single_statement(self, log):
        assert elapsed_time(log("ELAPSED TIME = 532 milliseconds\n")) == 532

    def test_sums_all_statements(self, log):
        text = (
            "ELAPSED TIME = 1 milliseconds\n"
            "0 rows inserted/updated/deleted\n"
            "ELAPSED TIME = 250 milliseconds\n"
            "ELAPSED TIME = 1200 milliseconds\n"
        )
        assert elapsed_time(log(text)) == 1451

    def test_decimal_values(self, log):
        assert elapsed_time(log("ELAPSED TIME = 1.5 milliseconds\nELAPSED TIME = 2.25 milliseconds\n")) == 3.75

    def test_no_elapsed_lines_is_none(self, log):
        assert elapsed_time(log("1 row selected\n")) is None

    def test_zero_is_not_none(self, log):
        assert elapsed_time(log("ELAPSED TIME = 0 milliseconds\n")) == 0

    def test_missing_log(self, tmp_path):
        assert elapsed_time(tmp_path / "missing.out") is None


class TestParseCount:
    def test_matched(self):
        parsed = parse_count(scalar_log(8))
        assert parsed.status is ParseStatus.MATCHED
        assert parsed.matched
        assert parsed.value == 8

    def test_last_rule_wins(self):
        text = scalar_log(1) + scalar_log(42)
        assert parse_count(text).value == 42

    def test_no_rule(self):
        parsed = parse_count("nothing tabular here\n")
        assert parsed.status is ParseStatus.NO_MATCH
        assert parsed.value is None
        assert parsed.or_zero() == 0

    def test_unparseable(self):
        parsed = parse_count("NAME\n----------\nSPLICE\n")
        assert parsed.status is ParseStatus.UNPARSEABLE
        assert parsed.raw == "SPLICE"
        assert parsed.or_zero() == 0

    def test_true_zero_is_distinguishable(self):
        parsed = parse_count(scalar_log(0))
        assert parsed.matched
        assert parsed.value == 0

    def test_log_warns_when_nothing_matches(self, log, caplog):
        caplog.set_level(logging.WARNING, logger="splicebench")
        parsed = parse_log_count(log("ERROR 08006: connection refused\n"))
        assert not parsed.matched
        assert "No count result" in caplog.text

    def test_count_result(self, log):
        assert count_result(log(scalar_log(6001215))) == 6001215
        assert count_result(log("garbage\n", "other.out")) == 0


class TestTableCounts:
    def test_all_tables_found(self, log):
        profile = get_profile(1)
        path = log(count_log(profile), "setup-06-count.out")
        assert table_counts(path, profile.row_counts) == profile.row_counts

    def test_missing_table_is_none(self, log):
        path = log("NATION\n----------\n25\n")
        counts = table_counts(path, ["NATION", "REGION"])
        assert counts == {"NATION": 25, "REGION": None}

    def test_header_must_stand_alone(self, log):
        # PARTSUPP must not be read as PART
        path = log("PARTSUPP\n----------\n800000\n")
        assert table_counts(path, ["PART"]) == {"PART": None}

    def test_missing_log(self, tmp_path):
        assert table_counts(tmp_path / "none.out", ["NATION"]) == {"NATION": None}


def test_read_log_missing(tmp_path):
    assert read_log(tmp_path / "absent.out") == ""
