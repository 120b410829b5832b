"""
Exceptions raised by the line store.

Filesystem failures are not wrapped: they surface as the builtin ``OSError``
so callers can inspect ``errno`` the usual way.
"""


class StoreError(Exception):
    """Base class for line store errors."""
    pass


class EncodingError(StoreError):
    """Raised when a record cannot be serialized to a single line."""
    pass


class DecodingError(StoreError):
    """Raised when a stored line is not a valid record."""
    pass


class PartitionNotFoundError(StoreError):
    """Raised when an operation references a partition that does not exist."""

    def __init__(self, path):
        super().__init__(f"Partition not found: {path}")
        self.path = path


class LineOutOfRangeError(StoreError):
    """Raised when a line number falls outside a partition."""

    def __init__(self, line_number: int, line_count: int):
        super().__init__(
            f"Line {line_number} out of range, partition has {line_count} lines"
        )
        self.line_number = line_number
        self.line_count = line_count


class PartitionNameError(StoreError):
    """Raised when a partition file name carries an unparseable date."""
    pass


class OperationTimeoutError(StoreError):
    """Raised when an operation's deadline expires before it completes."""
    pass
