"""Engine configuration constants.

This module centralizes the tunables of the engine. Values that a deployment may
want to change without code edits are read from environment variables each time
they are needed:

    TESSERA_MAX_THREADS    worker threads for partitioned join probing
    TESSERA_FMT_MAX_ROWS   rows shown by ``DataFrame.__repr__``
"""

from __future__ import annotations

import os

# ============================================================================
# ROW WINDOWS
# ============================================================================

# head()/tail() length when none is given
DEFAULT_HEAD_LENGTH = 10

# Rows rendered by DataFrame.__repr__ when TESSERA_FMT_MAX_ROWS is unset
DEFAULT_REPR_ROWS = 8


# ============================================================================
# PARALLELISM
# ============================================================================

# Probe side must be at least this long before allow_parallel splits it
PARALLEL_MIN_ROWS = 100_000


# ============================================================================
# INGESTION
# ============================================================================

# Rows per chunk produced by read_csv before any rechunk
CSV_CHUNK_SIZE = 50_000


def max_threads() -> int:
    """Number of worker threads available to partitioned work."""
    raw = os.environ.get("TESSERA_MAX_THREADS")
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            raise ValueError(f"TESSERA_MAX_THREADS must be an integer, got: {raw!r}") from None
    return os.cpu_count() or 1


def repr_rows() -> int:
    """Number of rows rendered when a DataFrame is printed."""
    raw = os.environ.get("TESSERA_FMT_MAX_ROWS")
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            raise ValueError(f"TESSERA_FMT_MAX_ROWS must be an integer, got: {raw!r}") from None
    return DEFAULT_REPR_ROWS
