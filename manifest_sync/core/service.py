"""
The application-facing synchronization service.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from manifest_sync.core.run import ProgressCallback, SynchronizationRun
from manifest_sync.exceptions import RunInProgressError
from manifest_sync.models.config import SyncConfig
from manifest_sync.net.fetch_pool import AsyncFetchPool
from manifest_sync.utils.structured_logger import SyncEventLogger, create_event_logger

log = logging.getLogger(__name__)


class SyncService:
    """
    Owns the fetch pool and starts synchronization runs, one at a time.

    The application constructs one service and passes it where it is needed;
    the pool and the request identity live here rather than in module state.
    """

    def __init__(
        self,
        config: SyncConfig,
        pool: AsyncFetchPool | None = None,
        events: SyncEventLogger | None = None,
    ):
        self.config = config
        self.pool = pool or AsyncFetchPool.from_config(config)
        self.events = events or create_event_logger()
        self._active_run: SynchronizationRun | None = None
        self._active_task: asyncio.Task | None = None

    @property
    def identity(self) -> str:
        return self.pool.identity

    @identity.setter
    def identity(self, value: str) -> None:
        self.pool.identity = value

    @property
    def active_run(self) -> SynchronizationRun | None:
        if self._active_task is not None and not self._active_task.done():
            return self._active_run
        return None

    @property
    def ratio(self) -> float:
        """Progress of the active (or most recent) run, 0.0 when there is none."""
        return self._active_run.ratio if self._active_run else 0.0

    def start_run(
        self,
        manifest_url: str,
        output_root: Path | str,
        on_progress: ProgressCallback | None = None,
        on_complete: Callable[[SynchronizationRun], None] | None = None,
    ) -> "asyncio.Task":
        """
        Starts a run in the background and returns its task.

        Raises:
            RunInProgressError: If a run is already active.
        """
        if self.active_run is not None:
            raise RunInProgressError(
                f"A run for '{self._active_run.manifest_url}' is still in progress."
            )
        run = SynchronizationRun(
            self.pool,
            manifest_url,
            Path(output_root),
            on_progress=on_progress,
            on_complete=on_complete,
            events=self.events,
        )
        self._active_run = run
        self._active_task = asyncio.get_running_loop().create_task(run.execute())
        log.debug(f"Started run for '{manifest_url}' into '{output_root}'.")
        return self._active_task

    async def sync(
        self,
        manifest_url: str | None = None,
        output_root: Path | str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SynchronizationRun:
        """Runs one synchronization to the end, defaulting to the configured source."""
        task = self.start_run(
            manifest_url or self.config.manifest_url,
            output_root or self.config.output_root,
            on_progress=on_progress,
        )
        await task
        return self._active_run

    def shutdown(self) -> None:
        """Stops accepting new work; running jobs finish."""
        self.pool.shutdown_graceful()

    def force_shutdown(self) -> None:
        """Aborts the active run and cancels every outstanding job."""
        run = self.active_run
        if run is not None:
            run.abort("Forced shutdown.")
        self.pool.shutdown_forced()

    async def close(self) -> None:
        """Releases the pool's resources; the service cannot be used afterwards."""
        self.force_shutdown()
        if self._active_task is not None and not self._active_task.done():
            self._active_task.cancel()
            await asyncio.gather(self._active_task, return_exceptions=True)
        await self.pool.close()
        self.events.logger.close()
