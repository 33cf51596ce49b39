"""
Shared progress counters and the one-shot completion gate of a run.

Counters are updated from many concurrent jobs (and, in principle, from any
thread), so every mutation happens under one lock and listeners are called
after it is released.
"""

import logging
import threading
from collections.abc import Callable
from typing import NamedTuple

log = logging.getLogger(__name__)


class ProgressSnapshot(NamedTuple):
    completed: int
    total: int
    failed: int

    @property
    def ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0


class CompletionGate:
    """A latch that exactly one caller of `try_close` ever wins."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._closed = False

    def try_close(self) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            return True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed


class ProgressTracker:
    """
    Counts terminal entries of a run against the number discovered so far.

    `total` only grows (via `add_total`) and `completed` only grows by one per
    `increment`. The run finalizes once `completed >= total` while no
    discovery hold is open; the gate makes sure that happens once, however
    many increments observe the condition at the same time.

    Discovery holds (`hold`/`release`) mark work that may still add to
    `total`, such as a component whose sub-manifest is still being fetched.
    """

    def __init__(
        self,
        on_finalize: Callable[[], None] | None = None,
        on_progress: Callable[[int, int], None] | None = None,
        gate: CompletionGate | None = None,
    ):
        self._lock = threading.Lock()
        self._completed = 0
        self._total = 0
        self._failed = 0
        self._holds = 0
        self._aborted = False
        self._on_finalize = on_finalize
        self._on_progress = on_progress
        self.gate = gate or CompletionGate()

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def failed(self) -> int:
        """Terminal entries that ended in failure. Informational only."""
        with self._lock:
            return self._failed

    @property
    def ratio(self) -> float:
        return self.snapshot().ratio

    @property
    def aborted(self) -> bool:
        with self._lock:
            return self._aborted

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(self._completed, self._total, self._failed)

    def _is_done_locked(self) -> bool:
        return not self._aborted and self._holds == 0 and self._completed >= self._total

    def add_total(self, count: int) -> None:
        """Adds newly discovered entries to the total."""
        if count < 0:
            raise ValueError("Progress total can only grow.")
        with self._lock:
            if self._aborted:
                return
            self._total += count
            completed, total = self._completed, self._total
            done = self._is_done_locked()
        self._notify(completed, total)
        if done:
            self._finalize()

    def hold(self) -> None:
        """Opens a discovery hold; completion waits until it is released."""
        with self._lock:
            self._holds += 1

    def release(self) -> None:
        with self._lock:
            if self._holds == 0:
                log.warning("Discovery hold released more often than taken.")
                return
            self._holds -= 1
            done = self._is_done_locked()
        if done:
            self._finalize()

    def increment(self, failed: bool = False) -> bool:
        """
        Records one terminal entry.

        Returns:
            False if the increment was ignored because the tracker was aborted
            or every counted entry has already completed.
        """
        with self._lock:
            if self._aborted:
                return False
            if self._completed >= self._total:
                log.warning(
                    f"Ignoring increment beyond total ({self._completed}/{self._total})."
                )
                return False
            self._completed += 1
            if failed:
                self._failed += 1
            completed, total = self._completed, self._total
            done = self._is_done_locked()
        self._notify(completed, total)
        if done:
            self._finalize()
        return True

    def abort(self) -> None:
        """Freezes the counters; later increments are ignored."""
        with self._lock:
            self._aborted = True

    def _notify(self, completed: int, total: int) -> None:
        if self._on_progress is not None:
            self._on_progress(completed, total)

    def _finalize(self) -> None:
        if self.gate.try_close():
            log.debug("Completion gate closed.")
            if self._on_finalize is not None:
                self._on_finalize()
