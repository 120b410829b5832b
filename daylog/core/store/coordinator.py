"""
Access coordinator shared by every line store operation.

A single reader/writer lock spans all partitions. Scans hold it shared;
appends, deletes and retention sweeps hold it exclusive. Waiting writers
block new readers so a steady stream of scans cannot starve a writer.
"""

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from daylog.core.store.errors import OperationTimeoutError


class AccessCoordinator:
    """
    Writer-preferring reader/writer lock.

    Acquisition blocks without limit unless a timeout is given, in which case
    OperationTimeoutError is raised and the lock state is left unchanged.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def _wait(self, predicate, deadline: Optional[float], mode: str) -> None:
        while not predicate():
            if deadline is None:
                self._cond.wait()
                continue

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise OperationTimeoutError(f"Timed out waiting for {mode} access")
            self._cond.wait(remaining)

    @staticmethod
    def _deadline(timeout: Optional[float]) -> Optional[float]:
        return None if timeout is None else time.monotonic() + timeout

    def acquire_shared(self, timeout: Optional[float] = None) -> None:
        deadline = self._deadline(timeout)
        with self._cond:
            self._wait(
                lambda: not self._writer and self._writers_waiting == 0,
                deadline,
                "shared",
            )
            self._readers += 1

    def release_shared(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_shared without matching acquire")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_exclusive(self, timeout: Optional[float] = None) -> None:
        deadline = self._deadline(timeout)
        with self._cond:
            self._writers_waiting += 1
            try:
                self._wait(
                    lambda: not self._writer and self._readers == 0,
                    deadline,
                    "exclusive",
                )
            finally:
                self._writers_waiting -= 1
                # Readers parked behind this writer must re-check on timeout.
                self._cond.notify_all()
            self._writer = True

    def release_exclusive(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_exclusive without matching acquire")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def shared(self, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the lock in shared mode for the duration of the block."""
        self.acquire_shared(timeout)
        try:
            yield
        finally:
            self.release_shared()

    @contextmanager
    def exclusive(self, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the lock in exclusive mode for the duration of the block."""
        self.acquire_exclusive(timeout)
        try:
            yield
        finally:
            self.release_exclusive()

    def __repr__(self) -> str:
        return (
            f"AccessCoordinator(readers={self._readers}, "
            f"writer={self._writer}, "
            f"writers_waiting={self._writers_waiting})"
        )
