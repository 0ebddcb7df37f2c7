"""Shared fixtures for Splicebench test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from splicebench.benchmark.executor import ShellStatus, SqlShellExecutor
from splicebench.config import RunConfig, ScaleProfile, get_profile
from splicebench.provision import TemplateRenderer
from splicebench.workspace import RunWorkspace


def make_config(**overrides) -> RunConfig:
    """Create a RunConfig with sensible defaults for testing.

    This is the canonical config factory for tests. Prefer this over
    hand-building dicts so that new required fields are handled in one place.
    """
    base: dict = {"host": "localhost"}
    base.update(overrides)
    return RunConfig(**base)


# =============================================================================
# sqlshell output builders
# =============================================================================


def scalar_log(value: int | str, elapsed_ms: int = 12) -> str:
    """Output of a one-row, one-column query."""
    return (
        "1\n"
        "--------------------\n"
        f"{value}\n"
        "\n"
        "1 row selected\n"
        f"ELAPSED TIME = {elapsed_ms} milliseconds\n"
    )


def timed_log(*elapsed_ms: float) -> str:
    """Output of a script whose statements all succeeded."""
    return "".join(f"ELAPSED TIME = {ms} milliseconds\n" for ms in elapsed_ms)


def error_log(errors: int = 1) -> str:
    return "".join(
        f"ERROR 42X05: Table/View 'MISSING{i}' does not exist.\n" for i in range(errors)
    )


def count_log(profile: ScaleProfile) -> str:
    """Output of setup-06-count.sql with every table at its expected size."""
    blocks = []
    for table, rows in profile.row_counts.items():
        blocks.append(
            f"{table}\n"
            "--------------------\n"
            f"{rows}\n"
            "\n"
            "1 row selected\n"
            "ELAPSED TIME = 7 milliseconds\n"
        )
    return "".join(blocks)


class FakeShell(SqlShellExecutor):
    """Stands in for sqlshell by writing canned output for each script.

    ``outputs`` maps a script stem (``setup-01-tables``, ``checkSchema``) to
    the text written to its log. A list value is consumed one entry per
    call, repeating the last entry. A None value writes no log at all.
    Scripts with no entry get ``default``.
    """

    def __init__(self, outputs: dict | None = None, default: str | None = None):
        super().__init__("/opt/splice/sqlshell.sh", ["-h", "localhost"])
        self.outputs = dict(outputs or {})
        self.default = timed_log(10) if default is None else default
        self.calls: list[tuple[str, int]] = []

    def _output_for(self, stem: str) -> str | None:
        value = self.outputs.get(stem, self.default)
        if isinstance(value, list):
            return value.pop(0) if len(value) > 1 else value[0]
        return value

    def run(self, sql_file: Path, log_file: Path, timeout: int = 0) -> ShellStatus:
        self.calls.append((Path(sql_file).name, timeout))
        output = self._output_for(Path(sql_file).stem)
        if output is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(output)
        return ShellStatus(returncode=0, elapsed_seconds=0.01)

    def scripts(self) -> list[str]:
        return [name for name, _ in self.calls]


def healthy_outputs(profile: ScaleProfile | None = None) -> dict:
    """Outputs of a database holding a complete, provisioned schema."""
    profile = profile or get_profile(1)
    return {
        "checkSchema": scalar_log(1),
        "checkTableCount": scalar_log(8),
        "checkIndexes": scalar_log(4),
        "checkStats": scalar_log(8),
        "setup-06-count": count_log(profile),
    }


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def default_config(tmp_path) -> RunConfig:
    """A default RunConfig for tests that don't care about specifics."""
    return make_config(log_base=tmp_path)


@pytest.fixture
def workspace(tmp_path) -> RunWorkspace:
    """Prepared workspace for the TPCH1 schema."""
    return RunWorkspace(log_base=tmp_path, schema="TPCH1", stamp="20261018-1200").prepare()


@pytest.fixture
def renderer(workspace) -> TemplateRenderer:
    """Renderer using the packaged templates."""
    return TemplateRenderer(workspace.sql_dir)
