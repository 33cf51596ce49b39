"""
A bounded pool for network fetches and the filesystem work that goes with them.

Every job runs as an asyncio task gated by a semaphore sized to the worker
count, so at most `max_workers` jobs touch the network or disk at once. The
pool can be shut down gracefully or forcibly and then restarted, which
installs a fresh generation (semaphore, HTTP session and job set).
"""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import aiofiles
import aiohttp

from manifest_sync.exceptions import FetchError, PoolShutdownError
from manifest_sync.models.config import (
    DEFAULT_USER_AGENT,
    SyncConfig,
    default_worker_count,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

ErrorCallback = Callable[[Exception], None]


class _Generation:
    """One incarnation of the pool."""

    def __init__(self, number: int, max_workers: int):
        self.number = number
        self.max_workers = max_workers
        self.semaphore = asyncio.Semaphore(max_workers)
        self.session: aiohttp.ClientSession | None = None
        self.jobs: set[asyncio.Task] = set()
        self.accepting = True


class AsyncFetchPool:
    """
    Bounded worker pool issuing HTTP GETs.

    `submit_future` is the single result primitive; `submit_callback` is a
    fire-and-forget adapter on top of it. Pool jobs that need the network call
    `fetch` or `download` inline instead of submitting and waiting, so a job
    never waits on another job's slot.

    The pool binds to the event loop of its first submission. Apart from the
    `identity` property and `restart_threadsafe`/`shutdown_forced`, methods
    are meant to be called from that loop.
    """

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        identity: str = DEFAULT_USER_AGENT,
        max_workers: int | None = None,
        request_timeout: float = 60.0,
        max_attempts: int = 1,
        base_delay: float = 1.5,
        drain_timeout: float = 15.0,
    ):
        """
        Args:
            identity: The User-Agent sent with every request.
            max_workers: Concurrent job limit; defaults to the CPU count.
            request_timeout: Total timeout for a single request, in seconds.
            max_attempts: Attempts per fetch before giving up.
            base_delay: Backoff base between attempts, in seconds.
            drain_timeout: How long `restart` waits for in-flight jobs.
        """
        self._identity = identity
        self._configured_workers = max_workers
        self.request_timeout = request_timeout
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.drain_timeout = drain_timeout

        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._generation_count = 0
        self._gen = self._new_generation()

    @classmethod
    def from_config(cls, config: SyncConfig) -> "AsyncFetchPool":
        return cls(
            identity=config.user_agent,
            max_workers=config.max_workers,
            request_timeout=config.request_timeout,
            max_attempts=config.max_attempts,
            drain_timeout=config.drain_timeout,
        )

    @property
    def identity(self) -> str:
        with self._lock:
            return self._identity

    @identity.setter
    def identity(self, value: str) -> None:
        with self._lock:
            self._identity = value

    @property
    def max_workers(self) -> int:
        return self._gen.max_workers

    @property
    def is_running(self) -> bool:
        """Whether the current generation still accepts work."""
        return self._gen.accepting

    @property
    def generation(self) -> int:
        return self._gen.number

    @property
    def active_jobs(self) -> int:
        return sum(1 for task in self._gen.jobs if not task.done())

    def _new_generation(self) -> _Generation:
        self._generation_count += 1
        workers = self._configured_workers or default_worker_count()
        return _Generation(self._generation_count, workers)

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    # --- Submission ---

    def submit(self, job: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        """
        Schedules a zero-argument coroutine function as a pool job.

        The coroutine is only created once the job holds a worker slot, so jobs
        cancelled while queued never start.

        Raises:
            PoolShutdownError: If the pool is not accepting work.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            gen = self._gen
            if not gen.accepting:
                raise PoolShutdownError(
                    "Fetch pool is shut down; no new work is accepted."
                )
            if self._loop is None:
                self._loop = loop
            task = loop.create_task(self._run_job(gen, job))
            gen.jobs.add(task)
        task.add_done_callback(gen.jobs.discard)
        return task

    async def _run_job(self, gen: _Generation, job: Callable[[], Awaitable[T]]) -> T:
        async with gen.semaphore:
            return await job()

    def submit_future(
        self, url: str, on_error: ErrorCallback | None = None
    ) -> "asyncio.Task[bytes | None]":
        """
        Fetches a URL as a pool job.

        The returned task resolves to the body, or to None when the fetch
        failed (after `on_error` was called, if given). Only await it from
        outside pool jobs.
        """

        async def job() -> bytes | None:
            try:
                return await self.fetch(url)
            except FetchError as e:
                if on_error is not None:
                    on_error(e)
                else:
                    log.debug(f"Unhandled fetch failure for '{url}': {e.reason}")
                return None

        return self.submit(job)

    def submit_callback(
        self,
        url: str,
        on_success: Callable[[bytes | None], Any],
        on_error: ErrorCallback | None = None,
    ) -> None:
        """
        Fetches a URL and reports through callbacks.

        Exactly one callback fires, on the loop thread. Without `on_error`, a
        failure calls `on_success(None)`. Jobs abandoned by a forced shutdown
        fire neither.
        """
        failures: list[Exception] = []
        future = self.submit_future(url, on_error=failures.append)

        def deliver(task: asyncio.Task) -> None:
            if task.cancelled():
                return
            if failures:
                if on_error is not None:
                    on_error(failures[0])
                else:
                    on_success(None)
            else:
                on_success(task.result())

        future.add_done_callback(deliver)

    # --- Transport ---

    def _session(self) -> aiohttp.ClientSession:
        gen = self._gen
        if gen.session is None or gen.session.closed:
            connector = aiohttp.TCPConnector(
                limit=gen.max_workers * 2,
                limit_per_host=gen.max_workers,
                ttl_dns_cache=600,
            )
            gen.session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(
                    total=self.request_timeout, sock_connect=15
                ),
                headers={"Accept-Encoding": "gzip, deflate"},
            )
            log.debug(
                f"Created HTTP session for pool generation {gen.number} "
                f"(limit_per_host={gen.max_workers})"
            )
        return gen.session

    async def _request(
        self, url: str, consume: Callable[[aiohttp.ClientResponse], Awaitable[T]]
    ) -> T:
        last_exception: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                session = self._session()
                async with session.get(
                    url, headers={"User-Agent": self.identity}, allow_redirects=True
                ) as response:
                    response.raise_for_status()
                    return await consume(response)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Fetch attempt {attempt}/{self.max_attempts} for '{url}' "
                    f"failed: {e!r}"
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        reason = str(last_exception) or type(last_exception).__name__
        raise FetchError(url, reason) from last_exception

    async def fetch(self, url: str) -> bytes:
        """
        Fetches a URL into memory.

        Raises:
            FetchError: On connection errors, timeouts and non-2xx statuses.
        """

        async def read_body(response: aiohttp.ClientResponse) -> bytes:
            return await response.read()

        return await self._request(url, read_body)

    async def download(self, url: str, destination: Path) -> int:
        """
        Streams a URL into a file, overwriting it.

        Returns:
            The number of bytes written.

        Raises:
            FetchError: On transport failures.
            OSError: If the destination cannot be written.
        """

        async def write_body(response: aiohttp.ClientResponse) -> int:
            written = 0
            async with aiofiles.open(destination, "wb") as f:
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    written += len(chunk)
            return written

        return await self._request(url, write_body)

    # --- Lifecycle ---

    def shutdown_graceful(self) -> None:
        """Stops accepting new work; in-flight jobs run to completion."""
        with self._lock:
            if self._gen.accepting:
                self._gen.accepting = False
                log.debug(f"Pool generation {self._gen.number} shutting down.")

    def shutdown_forced(self) -> None:
        """
        Stops accepting new work and cancels every queued or running job.

        A file being written when its job is cancelled is left as-is.
        """
        with self._lock:
            gen = self._gen
            gen.accepting = False
        log.debug(f"Pool generation {gen.number} force-stopped.")
        if self._loop is None or self._loop.is_closed():
            return
        if self._on_loop_thread():
            self._cancel_jobs(gen)
        else:
            self._loop.call_soon_threadsafe(self._cancel_jobs, gen)

    @staticmethod
    def _cancel_jobs(gen: _Generation) -> None:
        for task in list(gen.jobs):
            task.cancel()

    async def drain(self, timeout: float | None = None) -> bool:
        """
        Waits for the current generation's jobs to finish.

        Returns:
            True if every job finished within the timeout.
        """
        pending = {task for task in self._gen.jobs if not task.done()}
        pending.discard(asyncio.current_task())
        if not pending:
            return True
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        return not still_pending

    async def restart(self) -> None:
        """
        Shuts down gracefully, waits up to `drain_timeout` for in-flight jobs,
        then installs a fresh generation for subsequent submissions.
        """
        old = self._gen
        self.shutdown_graceful()
        if not await self.drain(self.drain_timeout):
            log.warning(
                f"[yellow]Pool generation {old.number} did not drain within "
                f"{self.drain_timeout:.0f}s; starting a new one anyway.[/yellow]"
            )
        with self._lock:
            if self._gen is old:
                self._gen = self._new_generation()
            number = self._gen.number
        await self._close_session(old)
        log.debug(f"Fetch pool restarted as generation {number}.")

    def restart_threadsafe(self) -> concurrent.futures.Future:
        """
        Schedules `restart` on the pool's loop from any other thread.

        Do not block on the returned future from the loop thread itself.
        """
        if self._loop is None:
            raise RuntimeError("Fetch pool has not been bound to an event loop yet.")
        return asyncio.run_coroutine_threadsafe(self.restart(), self._loop)

    @staticmethod
    async def _close_session(gen: _Generation) -> None:
        if gen.session and not gen.session.closed:
            await gen.session.close()
            log.debug(f"HTTP session of pool generation {gen.number} closed.")

    async def close(self) -> None:
        """Force-stops the pool and releases its HTTP session."""
        gen = self._gen
        self.shutdown_forced()
        await self.drain(timeout=self.drain_timeout)
        await self._close_session(gen)
