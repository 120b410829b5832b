"""
Time-based retention for daily partitions.

The sweeper removes every partition whose encoded date is older than the
retention horizon. The scheduler runs it on a background thread at a fixed
interval for the lifetime of the process.
"""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from daylog.core.store.diagnostics import Diagnostic, Severity
from daylog.core.store.errors import PartitionNameError
from daylog.core.store.line_store import LineStore
from daylog.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RetentionSweeper:
    """
    Deletes partitions older than a fixed number of days.

    Attributes:
        store: Line store owning the partitions
        retain_days: Retention horizon in days
    """

    def __init__(
        self,
        store: LineStore,
        retain_days: int,
        clock: Clock = utc_now,
    ):
        """
        Initialize the sweeper.

        Args:
            store: Line store whose data directory and lock are used
            retain_days: Partitions older than this many days are removed
            clock: Returns the current aware UTC datetime

        Raises:
            ValueError: If retain_days is negative
        """
        if retain_days < 0:
            raise ValueError(f"retain_days must be non-negative, got {retain_days}")

        self.store = store
        self.retain_days = retain_days
        self._clock = clock

        logger.info("Initialized retention sweeper", retain_days=retain_days)

    def _report(self, severity: Severity, message: str, **context) -> None:
        self.store.diagnostics(
            Diagnostic(
                severity=severity,
                message=message,
                operation="sweep",
                context=context,
            )
        )

    def sweep(self, timeout: Optional[float] = None) -> List[Path]:
        """
        Run one full retention pass.

        A partition is removed when the hours between its date (midnight UTC)
        and now exceed retain_days * 24. Malformed names and failed removals
        are reported and skipped.

        Args:
            timeout: Seconds to wait for exclusive access

        Returns:
            Paths of the removed partitions
        """
        limit_hours = self.retain_days * 24
        removed: List[Path] = []

        with self.store.coordinator.exclusive(self.store.resolve_timeout(timeout)):
            now = self._clock()

            try:
                partitions = list(self.store.naming.partitions())
            except OSError as e:
                self._report(
                    Severity.ERROR,
                    "Failed to list data directory",
                    directory=str(self.store.directory),
                    error=str(e),
                )
                return removed

            for name, path in partitions:
                try:
                    day = self.store.naming.parse(name)
                except PartitionNameError as e:
                    self._report(
                        Severity.WARNING,
                        "Skipping partition with invalid date",
                        path=str(path),
                        error=str(e),
                    )
                    continue

                if day is None:
                    continue

                day_start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
                age_hours = (now - day_start).total_seconds() / 3600

                if age_hours <= limit_hours:
                    continue

                try:
                    path.unlink()
                except OSError as e:
                    self._report(
                        Severity.ERROR,
                        "Failed to delete expired partition",
                        path=str(path),
                        error=str(e),
                    )
                    continue

                removed.append(path)
                logger.info(
                    "Deleted expired partition",
                    path=str(path),
                    age_hours=round(age_hours, 1),
                )

        logger.info(
            "Retention sweep complete",
            removed=len(removed),
            scanned=len(partitions),
        )

        return removed


class RetentionScheduler:
    """
    Runs a RetentionSweeper on a background thread.

    The first sweep runs as soon as the thread starts, then one per
    interval. Each sweep finishes before the next wait begins.
    """

    def __init__(self, sweeper: RetentionSweeper, interval_seconds: float = 86400.0):
        """
        Initialize the scheduler.

        Args:
            sweeper: Sweeper to run
            interval_seconds: Pause between the end of one sweep and the next
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self.sweeper = sweeper
        self.interval_seconds = interval_seconds

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.sweeps_completed = 0

    def start(self) -> None:
        """Start the sweeper thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="retention-sweeper",
            daemon=True,
        )
        self._thread.start()

        logger.info("Started retention scheduler", interval_seconds=self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the sweeper thread and wait for the current sweep to finish."""
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=timeout)
        self._thread = None

        logger.info("Stopped retention scheduler", sweeps=self.sweeps_completed)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.sweeper.sweep()
            except Exception as e:
                logger.error("Retention sweep failed", error=str(e), exc_info=True)
            self.sweeps_completed += 1

            if self._stop_event.wait(self.interval_seconds):
                break
