"""
Day-partitioned line store.

Owns the data directory. Every partition is an append-only text file of
newline terminated records for one UTC date. Reads are sequential scans;
deleting a line rewrites the partition into a temporary sibling and swaps it
in with an atomic rename.
"""

import os
import tempfile
import time
from contextlib import closing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional

from daylog.core.store import codec
from daylog.core.store.coordinator import AccessCoordinator
from daylog.core.store.diagnostics import (
    Diagnostic,
    DiagnosticSink,
    Severity,
    log_diagnostic,
)
from daylog.core.store.errors import (
    DecodingError,
    LineOutOfRangeError,
    OperationTimeoutError,
    PartitionNotFoundError,
)
from daylog.core.store.naming import DateLike, PartitionNaming, today_utc
from daylog.utils.logging import get_logger

logger = get_logger(__name__)

LINE_TERMINATOR = b"\n"


@dataclass
class PageResult:
    """
    One page of decoded records.

    Attributes:
        records: Successfully decoded records in partition order
        scanned_lines: Non-blank lines counted while producing the page
        has_next: Best-effort hint, True when the page came back full
        has_more: True when at least one line exists past the page
    """

    records: List[codec.LogRecord] = field(default_factory=list)
    scanned_lines: int = 0
    has_next: bool = False
    has_more: bool = False


class LineStore:
    """
    Append, page through, and delete lines of daily partitions.

    A single AccessCoordinator arbitrates all partitions: scans run shared,
    mutations run exclusive.

    Attributes:
        directory: Data directory holding the partitions
        naming: Date to path mapping
        coordinator: Shared reader/writer lock
    """

    def __init__(
        self,
        directory: Path,
        coordinator: Optional[AccessCoordinator] = None,
        diagnostics: DiagnosticSink = log_diagnostic,
        fsync_on_append: bool = False,
        default_timeout: Optional[float] = None,
    ):
        """
        Initialize the store and create the data directory.

        Args:
            directory: Data directory for partition files
            coordinator: Lock to share with other components (new one if None)
            diagnostics: Sink receiving recoverable failures
            fsync_on_append: Whether to fsync after each append
            default_timeout: Deadline in seconds applied when a call gives none

        Raises:
            OSError: If the data directory cannot be created
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

        self.naming = PartitionNaming(self.directory)
        self.coordinator = coordinator or AccessCoordinator()
        self.diagnostics = diagnostics
        self.fsync_on_append = fsync_on_append
        self.default_timeout = default_timeout

        logger.info(
            "Initialized line store",
            directory=str(self.directory),
            fsync_on_append=fsync_on_append,
        )

    def resolve_timeout(self, timeout: Optional[float]) -> Optional[float]:
        return self.default_timeout if timeout is None else timeout

    def path_for(self, day: DateLike) -> Path:
        return self.naming.path_for(day)

    def append(
        self,
        day: DateLike,
        encoded_line: bytes,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Append one encoded record to a partition.

        The line is written with a single trailing newline, unbuffered, before
        the exclusive lock is released. If the write fails partway the
        partition is truncated back to its previous length, so a failed
        append never leaves a fragment for the next line to join.

        Args:
            day: Partition date
            encoded_line: Output of codec.encode
            timeout: Seconds to wait for exclusive access

        Raises:
            ValueError: If the line contains a line terminator
            OperationTimeoutError: If access is not granted in time
            OSError: If the write fails
        """
        if LINE_TERMINATOR in encoded_line:
            raise ValueError("Encoded line must not contain a line terminator")

        path = self.path_for(day)
        data = encoded_line + LINE_TERMINATOR

        with self.coordinator.exclusive(self.resolve_timeout(timeout)):
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(path, "ab", buffering=0) as f:
                offset = f.seek(0, os.SEEK_END)
                try:
                    pending = memoryview(data)
                    while pending:
                        written = f.write(pending)
                        pending = pending[written:]
                    if self.fsync_on_append:
                        os.fsync(f.fileno())
                except OSError:
                    self._roll_back(f, path, offset)
                    raise

        logger.debug("Appended line", path=str(path), size=len(data))

    def _roll_back(self, f, path: Path, offset: int) -> None:
        """Cut a partition back to the length it had before a failed append."""
        try:
            f.truncate(offset)
        except OSError as e:
            self.diagnostics(
                Diagnostic(
                    severity=Severity.ERROR,
                    message="Failed to roll back partial append",
                    operation="append",
                    context={"path": str(path), "offset": offset, "error": str(e)},
                )
            )

    def append_record(
        self,
        record: Mapping[str, Any],
        day: Optional[DateLike] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Encode a record and append it to its partition.

        Args:
            record: Log record to store
            day: Partition date, today (UTC) if None
            timeout: Seconds to wait for exclusive access

        Raises:
            EncodingError: If the record cannot be encoded
        """
        line = codec.encode(record)
        self.append(day if day is not None else today_utc(), line, timeout=timeout)

    def _iter_lines(self, path: Path) -> Iterator[bytes]:
        """Yield stripped non-blank lines of a partition."""
        with open(path, "rb") as f:
            for raw in f:
                line = raw.strip()
                if line:
                    yield line

    def scan_page(
        self,
        day: DateLike,
        page: int = 1,
        page_size: int = 100,
        timeout: Optional[float] = None,
    ) -> PageResult:
        """
        Read one page of records from a partition.

        Lines are indexed from zero, skipping blank lines. Only lines inside
        [(page-1)*page_size, page*page_size) are decoded, and the scan stops
        once the end of that range is reached. Lines that fail to decode keep
        their index but are left out of the result.

        Args:
            day: Partition date
            page: 1-based page number
            page_size: Records per page
            timeout: Deadline in seconds for the whole operation

        Returns:
            PageResult, empty if the partition does not exist

        Raises:
            ValueError: If page < 1 or page_size < 1
            OperationTimeoutError: If the deadline expires
            OSError: If the partition cannot be read
        """
        if page < 1:
            raise ValueError(f"Page must be >= 1, got {page}")
        if page_size < 1:
            raise ValueError(f"Page size must be >= 1, got {page_size}")

        timeout = self.resolve_timeout(timeout)
        deadline = None if timeout is None else time.monotonic() + timeout

        path = self.path_for(day)
        start = (page - 1) * page_size
        end = page * page_size
        result = PageResult()

        with self.coordinator.shared(timeout):
            try:
                with closing(self._iter_lines(path)) as lines:
                    for line in lines:
                        if deadline is not None and time.monotonic() > deadline:
                            raise OperationTimeoutError(
                                f"Scan of {path.name} exceeded {timeout}s"
                            )

                        if result.scanned_lines >= end:
                            result.has_more = True
                            break

                        if result.scanned_lines >= start:
                            self._decode_into(result, line, path, result.scanned_lines)

                        result.scanned_lines += 1
            except FileNotFoundError:
                return PageResult()
            except OSError as e:
                self.diagnostics(
                    Diagnostic(
                        severity=Severity.ERROR,
                        message="Failed to scan partition",
                        operation="scan",
                        context={"path": str(path), "error": str(e)},
                    )
                )
                raise

        result.has_next = len(result.records) == page_size

        logger.debug(
            "Scanned page",
            path=str(path),
            page=page,
            page_size=page_size,
            records=len(result.records),
            scanned_lines=result.scanned_lines,
        )

        return result

    def _decode_into(self, result: PageResult, line: bytes, path: Path, index: int) -> None:
        try:
            result.records.append(codec.decode(line))
        except DecodingError as e:
            self.diagnostics(
                Diagnostic(
                    severity=Severity.WARNING,
                    message="Skipping undecodable line",
                    operation="scan",
                    context={"path": str(path), "line_index": index, "error": str(e)},
                )
            )

    def delete_line(
        self,
        day: DateLike,
        line_number: int,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Remove a single line from a partition.

        Lines are numbered from 1 using the same non-blank indexing as
        scan_page. The rest of the partition keeps its order. The new content
        is written to a temporary file in the data directory and moved over
        the partition with os.replace, so readers see either the old or the
        new file, never a mix.

        Args:
            day: Partition date
            line_number: 1-based line number
            timeout: Seconds to wait for exclusive access

        Raises:
            PartitionNotFoundError: If the partition does not exist
            LineOutOfRangeError: If line_number is outside the partition
            OperationTimeoutError: If access is not granted in time
            OSError: If reading or rewriting fails
        """
        path = self.path_for(day)

        with self.coordinator.exclusive(self.resolve_timeout(timeout)):
            try:
                lines = list(self._iter_lines(path))
            except FileNotFoundError:
                raise PartitionNotFoundError(path) from None

            if line_number < 1 or line_number > len(lines):
                raise LineOutOfRangeError(line_number, len(lines))

            del lines[line_number - 1]
            self._rewrite(path, lines)

        logger.info(
            "Deleted line",
            path=str(path),
            line_number=line_number,
            remaining=len(lines),
        )

    def _rewrite(self, path: Path, lines: List[bytes]) -> None:
        """Atomically replace a partition with the given lines."""
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=self.directory,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "wb") as f:
                for line in lines:
                    f.write(line + LINE_TERMINATOR)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def line_count(self, day: DateLike, timeout: Optional[float] = None) -> int:
        """
        Count non-blank lines in a partition (0 if it does not exist).

        Args:
            day: Partition date
            timeout: Seconds to wait for shared access
        """
        path = self.path_for(day)
        with self.coordinator.shared(self.resolve_timeout(timeout)):
            try:
                return sum(1 for _ in self._iter_lines(path))
            except FileNotFoundError:
                return 0

    def __repr__(self) -> str:
        return f"LineStore(directory={str(self.directory)!r})"
