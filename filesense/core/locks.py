"""
Concurrency helpers - reader/writer lock and call deadlines.

Every stateful component owns one ReadWriteLock. Query paths take the
read side, ingestion and retraining take the write side.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from ..errors import DeadlineExceeded

T = TypeVar("T")


class ReadWriteLock:
    """
    Writer-preferring reader/writer lock.

    Many readers may hold the lock at once; a writer holds it alone.
    A waiting writer blocks new readers so ingestion is never starved.
    The write side is re-entrant for the owning thread, and the owner
    may also take the read side.

    Example:
        lock = ReadWriteLock()

        with lock.read():
            ...  # concurrent with other readers

        with lock.write():
            ...  # exclusive
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writers_waiting = 0
        self._writer: Optional[int] = None
        self._write_depth = 0

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth += 1
                return
            while self._writer is not None or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth -= 1
                return
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth += 1
                return
            self._writers_waiting += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = me
            self._write_depth = 1

    def release_write(self) -> None:
        with self._cond:
            if self._writer != threading.get_ident():
                raise RuntimeError("release_write called by a thread that does not hold the lock")
            self._write_depth -= 1
            if self._write_depth == 0:
                self._writer = None
                self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class Deadline:
    """
    Absolute deadline for one externally-facing call.

    A call either completes before its deadline or raises DeadlineExceeded;
    stages call check() between steps so no partial result escapes.
    """

    def __init__(self, expires_at: Optional[float] = None):
        self.expires_at = expires_at

    @classmethod
    def after(cls, seconds: Optional[float]) -> "Deadline":
        """Deadline `seconds` from now. None means no deadline."""
        if seconds is None:
            return cls(None)
        return cls(time.monotonic() + max(0.0, float(seconds)))

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def check(self, stage: str = "") -> None:
        if self.expired():
            where = f" during {stage}" if stage else ""
            raise DeadlineExceeded(f"Deadline exceeded{where}")

    def bound(self, timeout: float) -> float:
        """Clamp a per-step timeout to what is left of the deadline."""
        left = self.remaining()
        return timeout if left is None else min(timeout, left)


def call_with_timeout(
    executor: ThreadPoolExecutor,
    fn: Callable[..., T],
    timeout: Optional[float],
    *args,
    **kwargs,
) -> T:
    """
    Run a blocking collaborator call with a bounded wait.

    The call runs on the caller's worker pool. If it does not finish in time
    the caller gets concurrent.futures.TimeoutError and moves on; the
    worker finishes in the background and its result is discarded.
    """
    if timeout is not None and timeout <= 0:
        raise FuturesTimeout("No time left for collaborator call")
    future = executor.submit(fn, *args, **kwargs)
    return future.result(timeout=timeout)
