"""
Manages a Rich progress display for a synchronization run.

Engine callbacks may arrive from any thread. They are never applied to the
display directly: each one is queued on a TickExecutor and the display's own
refresh loop drains the queue once per tick, in order, on a single thread.
"""

import asyncio
import logging
import queue
from collections.abc import Callable
from contextlib import suppress

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from manifest_sync.utils.formatting import format_progress

log = logging.getLogger("manifest_sync")


class TickExecutor:
    """
    A FIFO of zero-argument actions, filled from any thread and drained by
    one consumer.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()

    def execute(self, action: Callable[[], None]) -> None:
        self._queue.put(action)

    def drain(self) -> int:
        """Runs every queued action in order. Returns how many ran."""
        ran = 0
        while True:
            try:
                action = self._queue.get_nowait()
            except queue.Empty:
                return ran
            action()
            ran += 1

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class ProgressManager:
    """Shows "N/M Files Downloaded" with a bar for the current run."""

    def __init__(self, console: Console, refresh_per_second: int = 12):
        self.console = console
        self.refresh_interval = 1.0 / refresh_per_second
        self.executor = TickExecutor()

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TextColumn("{task.fields[counter]}"),
            "•",
            TimeElapsedColumn(),
            console=console,
            refresh_per_second=refresh_per_second,
            transient=False,
        )

        self._task_id: TaskID | None = None
        self._tick_task: asyncio.Task | None = None
        self._completed = 0
        self._total = 0

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def total(self) -> int:
        return self._total

    def on_progress(self, completed: int, total: int) -> None:
        """Progress listener for the engine; safe to call from any thread."""
        self.executor.execute(lambda: self._apply(completed, total))

    def set_description(self, description: str) -> None:
        self.executor.execute(lambda: self._describe(description))

    def _apply(self, completed: int, total: int) -> None:
        self._completed = completed
        self._total = total
        if self._task_id is None:
            return
        self.progress.update(
            self._task_id,
            completed=completed,
            total=total,
            description="Synchronizing",
            counter=format_progress(completed, total),
        )

    def _describe(self, description: str) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, description=description)

    async def _tick_loop(self) -> None:
        while True:
            self.executor.drain()
            await asyncio.sleep(self.refresh_interval)

    async def __aenter__(self):
        self._task_id = self.progress.add_task(
            "Resolving manifest", total=None, counter=format_progress(0, 0)
        )
        self.progress.start()
        self._tick_task = asyncio.create_task(self._tick_loop())
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._tick_task is not None:
            self._tick_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._tick_task
        self.executor.drain()
        self.progress.stop()
