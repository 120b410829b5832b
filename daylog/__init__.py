"""
daylog - a day-partitioned log line store.

Stores structured application log records as one append-only text file per
UTC calendar date, with:
- Paginated sequential reads
- Single line deletion by atomic rewrite
- Time-based retention sweeps
- A small HTTP service in front of the store
"""

__version__ = "0.1.0"

from daylog.core.store import LineStore, PageResult, RetentionSweeper

__all__ = [
    "LineStore",
    "PageResult",
    "RetentionSweeper",
]
