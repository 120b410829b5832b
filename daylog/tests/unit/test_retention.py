"""Tests for partition retention."""

import tempfile
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

import pytest

from daylog.core.store.diagnostics import CollectingSink, Severity
from daylog.core.store.errors import OperationTimeoutError
from daylog.core.store.line_store import LineStore
from daylog.core.store.retention import RetentionScheduler, RetentionSweeper

NOW = datetime(2024, 6, 10, 15, 30, tzinfo=timezone.utc)


class TestRetentionSweeper:
    """Test RetentionSweeper."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def sink(self):
        return CollectingSink(forward=None)

    @pytest.fixture
    def store(self, temp_dir, sink):
        return LineStore(directory=temp_dir, diagnostics=sink)

    def write_partition(self, store, days_ago):
        day = NOW.date() - timedelta(days=days_ago)
        store.append(day, b'{"a":1}')
        return store.path_for(day)

    def test_negative_retention_rejected(self, store):
        """Test argument validation."""
        with pytest.raises(ValueError):
            RetentionSweeper(store, retain_days=-1)

    def test_retention_correctness(self, store):
        """Test that only the partition past the horizon is removed."""
        retain_days = 7
        today = self.write_partition(store, 0)
        inside = self.write_partition(store, retain_days - 1)
        outside = self.write_partition(store, retain_days + 1)

        sweeper = RetentionSweeper(store, retain_days=retain_days, clock=lambda: NOW)
        removed = sweeper.sweep()

        assert removed == [outside]
        assert today.exists()
        assert inside.exists()
        assert not outside.exists()

    def test_boundary_uses_hours(self, store):
        """Test the age comparison against retain_days * 24 hours."""
        edge = self.write_partition(store, 7)
        edge_day = NOW.date() - timedelta(days=7)
        at_limit = datetime(edge_day.year, edge_day.month, edge_day.day, tzinfo=timezone.utc)
        at_limit += timedelta(days=7)

        sweeper = RetentionSweeper(store, retain_days=7, clock=lambda: at_limit)
        assert sweeper.sweep() == []

        sweeper = RetentionSweeper(
            store,
            retain_days=7,
            clock=lambda: at_limit + timedelta(seconds=1),
        )
        assert sweeper.sweep() == [edge]

    def test_zero_retention_keeps_nothing_old(self, store):
        """Test that retain_days=0 removes yesterday's partition."""
        yesterday = self.write_partition(store, 1)

        sweeper = RetentionSweeper(store, retain_days=0, clock=lambda: NOW)

        assert sweeper.sweep() == [yesterday]

    def test_malformed_name_skipped_and_reported(self, store, sink):
        """Test that a bad partition name is reported, not deleted."""
        bad = store.directory / "data_2024-99-99.txt"
        bad.write_text("{}\n")
        foreign = store.directory / "notes.txt"
        foreign.write_text("keep me")

        sweeper = RetentionSweeper(store, retain_days=1, clock=lambda: NOW)
        removed = sweeper.sweep()

        assert removed == []
        assert bad.exists()
        assert foreign.exists()

        reports = sink.for_operation("sweep")
        assert len(reports) == 1
        assert reports[0].severity is Severity.WARNING
        assert reports[0].context["path"] == str(bad)

    def test_unpadded_name_skipped_and_reported(self, store, sink):
        """Test that an old partition name without zero-padding is kept and reported."""
        unpadded = store.directory / "data_2024-1-5.txt"
        unpadded.write_text("{}\n")

        sweeper = RetentionSweeper(store, retain_days=7, clock=lambda: NOW)

        assert sweeper.sweep() == []
        assert unpadded.exists()

        reports = sink.for_operation("sweep")
        assert len(reports) == 1
        assert reports[0].severity is Severity.WARNING
        assert reports[0].context["path"] == str(unpadded)

    def test_delete_failure_does_not_abort_pass(self, store, sink):
        """Test that one failed removal does not stop the sweep."""
        first = self.write_partition(store, 30)
        second = self.write_partition(store, 31)

        real_unlink = Path.unlink

        def flaky_unlink(path, *args, **kwargs):
            if path == second:
                raise PermissionError("denied")
            return real_unlink(path, *args, **kwargs)

        sweeper = RetentionSweeper(store, retain_days=7, clock=lambda: NOW)
        with mock.patch.object(Path, "unlink", flaky_unlink):
            removed = sweeper.sweep()

        assert removed == [first]
        assert second.exists()
        assert [d.severity for d in sink.for_operation("sweep")] == [Severity.ERROR]

    def test_sweep_waits_for_exclusive_access(self, store):
        """Test that the sweep respects the shared coordinator."""
        self.write_partition(store, 30)
        sweeper = RetentionSweeper(store, retain_days=7, clock=lambda: NOW)

        with store.coordinator.shared():
            with pytest.raises(OperationTimeoutError):
                sweeper.sweep(timeout=0.05)

        assert len(sweeper.sweep()) == 1


class TestRetentionScheduler:
    """Test the background scheduler."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_invalid_interval(self, temp_dir):
        """Test argument validation."""
        sweeper = RetentionSweeper(LineStore(directory=temp_dir), retain_days=7)

        with pytest.raises(ValueError):
            RetentionScheduler(sweeper, interval_seconds=0)

    def test_runs_immediately_then_periodically(self, temp_dir):
        """Test that the first sweep happens on start and more follow."""
        sweeper = RetentionSweeper(LineStore(directory=temp_dir), retain_days=7)
        scheduler = RetentionScheduler(sweeper, interval_seconds=0.02)

        scheduler.start()
        try:
            deadline = time.monotonic() + 2.0
            while scheduler.sweeps_completed < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            scheduler.stop()

        assert scheduler.sweeps_completed >= 3
        assert not scheduler.is_running()

    def test_sweeps_never_overlap(self, temp_dir):
        """Test that a slow sweep delays the next one."""
        sweeper = RetentionSweeper(LineStore(directory=temp_dir), retain_days=7)
        running = []
        overlaps = []
        lock = threading.Lock()

        def slow_sweep(timeout=None):
            with lock:
                running.append(1)
                if len(running) > 1:
                    overlaps.append(1)
            time.sleep(0.03)
            with lock:
                running.pop()
            return []

        sweeper.sweep = slow_sweep
        scheduler = RetentionScheduler(sweeper, interval_seconds=0.001)

        scheduler.start()
        time.sleep(0.2)
        scheduler.stop()

        assert overlaps == []
        assert scheduler.sweeps_completed >= 2

    def test_sweep_error_keeps_thread_alive(self, temp_dir):
        """Test that an exception in one sweep does not kill the scheduler."""
        sweeper = RetentionSweeper(LineStore(directory=temp_dir), retain_days=7)
        calls = []

        def failing_once(timeout=None):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return []

        sweeper.sweep = failing_once
        scheduler = RetentionScheduler(sweeper, interval_seconds=0.01)

        scheduler.start()
        try:
            deadline = time.monotonic() + 2.0
            while len(calls) < 2 and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            scheduler.stop()

        assert len(calls) >= 2
        assert scheduler.sweeps_completed >= 2
