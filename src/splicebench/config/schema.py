"""Pydantic models for splicebench run configuration.

A :class:`RunConfig` is resolved once at startup (from CLI flags and an
optional YAML file) and passed explicitly to every component. It is frozen:
nothing mutates it after validation.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from splicebench._constants import DEFAULT_OUTPUT_DIR, DEFAULT_SQLSHELL

from .scale import SUPPORTED_SCALES, ScaleProfile, get_profile

# Upper bound shared by iteration and timeout arguments.
_MAX_COUNT = 99_999

# =============================================================================
# Enums
# =============================================================================


class BenchmarkType(str, Enum):
    """Supported benchmarks."""

    TPCH = "TPCH"


class LoadMode(str, Enum):
    """Data loading strategy used when provisioning a schema.

    - bulk: create indexes on the empty tables, then bulk-import HFiles.
    - linear: import rows through the regular write path, then build indexes.
    """

    BULK = "bulk"
    LINEAR = "linear"


class QuerySet(str, Enum):
    """Which subset of the TPC-H queries to run."""

    GOOD = "good"
    ALL = "all"
    ERRORS = "errors"


# =============================================================================
# Run configuration
# =============================================================================


class RunConfig(BaseModel):
    """Immutable configuration for one splicebench invocation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = ""
    url: str = ""
    benchmark: BenchmarkType = BenchmarkType.TPCH
    scale: int = 1
    mode: LoadMode = LoadMode.BULK
    query_set: QuerySet = QuerySet.GOOD
    iterations: int = Field(default=0, ge=0, le=_MAX_COUNT)
    timeout: int = Field(default=0, ge=0, le=_MAX_COUNT, description="Per-query seconds, 0 = forever")
    log_base: Path = Path(DEFAULT_OUTPUT_DIR)
    label: str = ""
    suffix: str = ""
    sqlshell: Path = Path(DEFAULT_SQLSHELL)
    templates_dir: Path | None = None
    debug: bool = False
    verbose: bool = False

    @field_validator("benchmark", mode="before")
    @classmethod
    def normalize_benchmark(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("scale")
    @classmethod
    def validate_scale(cls, v: int) -> int:
        if v not in SUPPORTED_SCALES:
            supported = ", ".join(str(s) for s in SUPPORTED_SCALES)
            raise ValueError(f"scale of {v} is not supported for TPCH (valid: {supported})")
        return v

    @field_validator("suffix")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        if v and not v.replace("_", "").isalnum():
            raise ValueError("suffix may only contain letters, digits and underscores")
        return v

    @model_validator(mode="before")
    @classmethod
    def validate_target(cls, data: Any) -> Any:
        """Exactly one of host or url must identify the database.

        Runs before field validation so a missing target is reported even
        when other values are also invalid.
        """
        if isinstance(data, dict) and bool(data.get("host")) == bool(data.get("url")):
            raise ValueError("exactly one of host or url must be supplied")
        return data

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def schema_name(self) -> str:
        """Upper-case schema name built from benchmark, scale and suffix."""
        return f"{self.benchmark.value}{self.scale}{self.suffix}".upper()

    @property
    def connection_args(self) -> list[str]:
        """sqlshell arguments selecting the target database."""
        if self.host:
            return ["-h", self.host]
        return ["-U", self.url]

    @property
    def target(self) -> str:
        return self.host or self.url

    @property
    def profile(self) -> ScaleProfile:
        return get_profile(self.scale)

    @property
    def single_run(self) -> bool:
        """0 and 1 iterations both mean one pass into the base log directory."""
        return self.iterations <= 1

    def effective_label(self, started: str) -> str:
        """User label, or a generated one naming the benchmark, scale and start time."""
        return self.label or f"{self.benchmark.value}-{self.scale} benchmark run started {started}"
