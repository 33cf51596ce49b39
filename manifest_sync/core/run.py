"""
One end-to-end synchronization request: resolve, expand, complete.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from manifest_sync.core.expander import FileTreeExpander
from manifest_sync.core.progress import CompletionGate, ProgressTracker
from manifest_sync.core.resolver import ManifestResolver
from manifest_sync.exceptions import (
    FetchError,
    ManifestError,
    ManifestSyncError,
    PoolShutdownError,
)
from manifest_sync.models.stats import SyncStats
from manifest_sync.net.fetch_pool import AsyncFetchPool
from manifest_sync.utils.structured_logger import SyncEventLogger, create_event_logger

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class RunStatus(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"


class SynchronizationRun:
    """
    Drives one synchronization from the top-level manifest to completion.

    The run finishes exactly once, either because every counted entry reached
    a terminal state or because a fatal error failed it. Both paths go through
    the same completion gate. On finishing, the pool is restarted so it is
    ready for the next run, and `on_complete` is called with the run.
    """

    def __init__(
        self,
        pool: AsyncFetchPool,
        manifest_url: str,
        output_root: Path,
        on_progress: ProgressCallback | None = None,
        on_complete: Callable[["SynchronizationRun"], None] | None = None,
        events: SyncEventLogger | None = None,
    ):
        self.pool = pool
        self.manifest_url = manifest_url
        self.output_root = Path(output_root)
        self.status = RunStatus.IDLE
        self.error: Exception | None = None
        self.stats = SyncStats()
        self.events = events or create_event_logger()

        self._on_progress = on_progress
        self._on_complete = on_complete
        self._gate = CompletionGate()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._done: asyncio.Event | None = None
        self._restart_pool = True

        self.tracker = ProgressTracker(
            on_finalize=self._signal_done,
            on_progress=self._progress_changed,
            gate=self._gate,
        )
        self.expander = FileTreeExpander(pool, self.tracker, self.stats, self.events)
        self.resolver = ManifestResolver(
            pool,
            self.tracker,
            self.expander,
            on_fatal=self.fail,
            stats=self.stats,
            events=self.events,
        )

    @property
    def completed(self) -> int:
        return self.tracker.completed

    @property
    def total(self) -> int:
        return self.tracker.total

    @property
    def failed(self) -> int:
        return self.tracker.failed

    @property
    def ratio(self) -> float:
        return self.tracker.ratio

    @property
    def finished(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)

    def _progress_changed(self, completed: int, total: int) -> None:
        if self.status == RunStatus.RESOLVING and total > 0:
            self.status = RunStatus.DOWNLOADING
        if self._on_progress is not None:
            self._on_progress(completed, total)

    def _signal_done(self) -> None:
        if self._loop is None or self._done is None:
            return
        self._loop.call_soon_threadsafe(self._done.set)

    def fail(self, error: Exception) -> None:
        """
        Fails the run: stops counting and force-stops the pool.

        Ignored if the run already finished.
        """
        if not self._gate.try_close():
            log.debug(f"Run already finished; ignoring failure: {error}")
            return
        self.error = error
        self.status = RunStatus.FAILED
        self.tracker.abort()
        self.pool.shutdown_forced()
        self.events.run_failed(str(error))
        self._signal_done()

    def abort(self, reason: str = "Run aborted.") -> None:
        """Fails the run for application exit; the pool stays stopped."""
        self._restart_pool = False
        self.fail(ManifestSyncError(reason))

    async def execute(self) -> RunStatus:
        """
        Runs the synchronization and waits for it to finish.

        Returns:
            The final status, COMPLETED or FAILED.
        """
        if self.status != RunStatus.IDLE:
            raise RuntimeError("A synchronization run can only be executed once.")
        self._loop = asyncio.get_running_loop()
        self._done = asyncio.Event()
        self.status = RunStatus.RESOLVING
        self.events.run_started(
            self.manifest_url, str(self.output_root), self.pool.max_workers
        )

        try:
            self.tracker.hold()
            try:
                await self.resolver.resolve(self.manifest_url, self.output_root)
            except (FetchError, ManifestError, PoolShutdownError, OSError) as e:
                log.error(f"[red]Could not resolve '{self.manifest_url}': {e}[/red]")
                self.fail(e)
            except Exception as e:
                log.error(
                    f"[red]Unexpected error resolving '{self.manifest_url}': "
                    f"{e!r}[/red]"
                )
                log.debug("Full traceback:", exc_info=True)
                self.fail(e)
            self.tracker.release()
            await self._done.wait()
        except asyncio.CancelledError:
            self.abort("Run cancelled.")
            raise

        await self._finish()
        return self.status

    async def _finish(self) -> None:
        self.stats.mark_finished()
        if self.status != RunStatus.FAILED:
            self.status = RunStatus.COMPLETED
            snapshot = self.tracker.snapshot()
            self.events.run_completed(
                snapshot.completed,
                snapshot.total,
                snapshot.failed,
                self.stats.duration_s,
            )
        if self._restart_pool:
            await self.pool.restart()
        if self._on_complete is not None:
            self._on_complete(self)
