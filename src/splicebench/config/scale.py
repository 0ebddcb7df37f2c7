"""Scale factor definitions for the TPC-H dataset.

Each supported scale factor maps to the row counts a fully loaded schema
must hold and to the query-11 fraction constant (``##QRY11##``), which the
TPC-H specification defines as ``0.0001 / SF``.

Scale 1    -> LINEITEM 6,001,215 rows
Scale 10   -> LINEITEM 59,986,052 rows
Scale 100  -> LINEITEM 600,037,902 rows
Scale 1000 -> LINEITEM 5,999,989,709 rows
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

# Order matters: it is the order tables appear in the count log.
TPCH_TABLES: tuple[str, ...] = (
    "CUSTOMER",
    "LINEITEM",
    "NATION",
    "ORDERS",
    "PART",
    "PARTSUPP",
    "REGION",
    "SUPPLIER",
)


@dataclass(frozen=True)
class ScaleProfile:
    """Expected dataset shape for one TPC-H scale factor."""

    scale: int
    qry11: str
    row_counts: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Profiles are shared module-level constants; hand out a read-only view.
        object.__setattr__(self, "row_counts", MappingProxyType(dict(self.row_counts)))

    def expected_rows(self, table: str) -> int:
        """Expected row count for ``table`` (case-insensitive)."""
        return self.row_counts[table.upper()]

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())


def _profile(scale: int, qry11: str, counts: tuple[int, ...]) -> ScaleProfile:
    return ScaleProfile(scale=scale, qry11=qry11, row_counts=dict(zip(TPCH_TABLES, counts)))


SCALE_PROFILES: dict[int, ScaleProfile] = {
    1: _profile(
        1,
        "0.0001000000",
        (150_000, 6_001_215, 25, 1_500_000, 200_000, 800_000, 5, 10_000),
    ),
    10: _profile(
        10,
        "0.0000100000",
        (1_500_000, 59_986_052, 25, 15_000_000, 2_000_000, 8_000_000, 5, 100_000),
    ),
    100: _profile(
        100,
        "0.0000010000",
        (15_000_000, 600_037_902, 25, 150_000_000, 20_000_000, 80_000_000, 5, 1_000_000),
    ),
    1000: _profile(
        1000,
        "0.0000001000",
        (150_000_000, 5_999_989_709, 25, 1_500_000_000, 200_000_000, 800_000_000, 5, 10_000_000),
    ),
}

SUPPORTED_SCALES: tuple[int, ...] = tuple(sorted(SCALE_PROFILES))


def get_profile(scale: int) -> ScaleProfile:
    """Return the ScaleProfile for ``scale``.

    Raises:
        ValueError: If the scale is not one of the supported TPC-H scales.
    """
    try:
        return SCALE_PROFILES[scale]
    except KeyError:
        supported = ", ".join(str(s) for s in SUPPORTED_SCALES)
        raise ValueError(f"scale of {scale} is not supported (valid: {supported})") from None
