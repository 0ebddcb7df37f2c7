"""Shared constants for splicebench."""

# Default location of the Splice Machine command-line client.
DEFAULT_SQLSHELL = "/sqlshell/sqlshell.sh"

# Unified output directory -- single top-level directory for all splicebench outputs.
# Contains:
#   <SCHEMA>-queries/   -- rendered SQL scripts
#   logs/               -- per-run log directories and the promoted count log
#   journal/            -- session-scoped JSONL provenance logs
DEFAULT_OUTPUT_DIR = "./splicebench-output"

# TPC-H query universe, in execution order.
TPCH_QUERY_IDS: tuple[int, ...] = tuple(range(1, 23))

# Queries known to fail against the engine. ``good`` skips these, ``errors`` runs only these.
KNOWN_BAD_QUERIES: frozenset[int] = frozenset({8, 18, 20})

# Shape of a fully provisioned TPC-H schema.
TPCH_TABLE_COUNT = 8
TPCH_INDEX_COUNT = 4

# Log promoted to the parent log directory after provisioning, reused for row-count checks.
COUNT_LOG_NAME = "setup-06-count.out"

# Timestamp used in run directory names.
RUN_STAMP_FORMAT = "%Y%m%d-%H%M"
