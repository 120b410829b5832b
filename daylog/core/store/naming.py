"""
Daily partition naming.

Each UTC calendar date maps to exactly one file, ``data_<YYYY-MM-DD>.txt``,
inside the data directory.
"""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

from daylog.core.store.errors import PartitionNameError

DateLike = Union[date, datetime]


def to_utc_date(value: DateLike) -> date:
    """
    Reduce a date or datetime to a UTC calendar date.

    Naive datetimes are taken to be UTC already.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


class PartitionNaming:
    """
    Maps calendar dates to partition file paths and back.

    Attributes:
        directory: Data directory holding the partition files
    """

    PREFIX = "data_"
    SUFFIX = ".txt"
    DATE_FORMAT = "%Y-%m-%d"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def file_name(self, day: DateLike) -> str:
        return f"{self.PREFIX}{to_utc_date(day).strftime(self.DATE_FORMAT)}{self.SUFFIX}"

    def path_for(self, day: DateLike) -> Path:
        """
        Build the partition path for a date.

        Args:
            day: Calendar date (datetimes are converted to UTC)

        Returns:
            Path of the partition file
        """
        return self.directory / self.file_name(day)

    def is_partition_name(self, name: str) -> bool:
        return name.startswith(self.PREFIX) and name.endswith(self.SUFFIX)

    def parse(self, name: str) -> Optional[date]:
        """
        Recover the date encoded in a partition file name.

        Args:
            name: File name (not a full path)

        Returns:
            The encoded date, or None if the name is not a partition name

        Raises:
            PartitionNameError: If the name looks like a partition but the
                date part does not parse
        """
        if not self.is_partition_name(name):
            return None

        date_str = name[len(self.PREFIX):-len(self.SUFFIX)]
        try:
            parsed = datetime.strptime(date_str, self.DATE_FORMAT).date()
        except ValueError as e:
            raise PartitionNameError(f"Invalid partition date in {name!r}: {e}") from e

        # strptime accepts unpadded fields such as 2024-1-5
        if parsed.strftime(self.DATE_FORMAT) != date_str:
            raise PartitionNameError(f"Invalid partition date in {name!r}: not zero-padded")
        return parsed

    def partitions(self) -> Iterator[Tuple[str, Path]]:
        """
        List candidate partition files in the data directory.

        Yields:
            (file name, path) pairs for regular files matching the pattern
        """
        if not self.directory.exists():
            return

        for path in sorted(self.directory.iterdir()):
            if path.is_file() and self.is_partition_name(path.name):
                yield path.name, path
