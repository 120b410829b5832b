"""
Day-partitioned line storage.

This package provides:
- A JSON line codec for opaque log records
- Date to partition file naming
- A reader/writer access coordinator
- The line store (append, paginated scan, line delete)
- Retention sweeps on a background schedule
"""

from daylog.core.store.codec import LogRecord, decode, encode
from daylog.core.store.coordinator import AccessCoordinator
from daylog.core.store.diagnostics import Diagnostic, DiagnosticSink, Severity
from daylog.core.store.errors import (
    DecodingError,
    EncodingError,
    LineOutOfRangeError,
    OperationTimeoutError,
    PartitionNameError,
    PartitionNotFoundError,
    StoreError,
)
from daylog.core.store.line_store import LineStore, PageResult
from daylog.core.store.naming import PartitionNaming
from daylog.core.store.retention import RetentionScheduler, RetentionSweeper

__all__ = [
    "AccessCoordinator",
    "DecodingError",
    "Diagnostic",
    "DiagnosticSink",
    "EncodingError",
    "LineOutOfRangeError",
    "LineStore",
    "LogRecord",
    "OperationTimeoutError",
    "PageResult",
    "PartitionNameError",
    "PartitionNaming",
    "PartitionNotFoundError",
    "RetentionScheduler",
    "RetentionSweeper",
    "Severity",
    "StoreError",
    "decode",
    "encode",
]
