"""
Resolves the top-level manifest into per-component file trees.
"""

import logging
from collections.abc import Callable
from functools import partial
from pathlib import Path
from typing import Any

from manifest_sync.core.expander import FileTreeExpander
from manifest_sync.core.progress import ProgressTracker
from manifest_sync.exceptions import FetchError, ManifestError, PoolShutdownError
from manifest_sync.models.manifest import (
    ManifestDescriptor,
    is_flat_tree,
    iter_descriptors,
    parse_document,
)
from manifest_sync.models.stats import SyncStats
from manifest_sync.net.fetch_pool import AsyncFetchPool
from manifest_sync.storage.manifest_cache import LocalManifestCache
from manifest_sync.utils.structured_logger import SyncEventLogger, create_event_logger

log = logging.getLogger(__name__)


class ManifestResolver:
    """
    Fetches the index, then fetches or reuses each component's sub-manifest
    and hands it to the expander.

    Components are resolved as independent pool jobs. Each one holds the
    tracker's discovery gate until its tree has been counted. A component
    whose sub-manifest cannot be obtained reports through `on_fatal`, which is
    expected to fail the whole run.
    """

    def __init__(
        self,
        pool: AsyncFetchPool,
        tracker: ProgressTracker,
        expander: FileTreeExpander,
        on_fatal: Callable[[Exception], None],
        stats: SyncStats | None = None,
        events: SyncEventLogger | None = None,
    ):
        self.pool = pool
        self.tracker = tracker
        self.expander = expander
        self.on_fatal = on_fatal
        self.stats = stats or SyncStats()
        self.events = events or create_event_logger()

    async def fetch_index(self, manifest_url: str) -> dict[str, Any]:
        """
        Fetches and parses the top-level document.

        Raises:
            FetchError: If the document cannot be fetched.
            ManifestError: If it is not a JSON object.
        """
        errors: list[Exception] = []
        payload = await self.pool.submit_future(manifest_url, on_error=errors.append)
        if errors:
            raise errors[0]
        return parse_document(payload, manifest_url)

    async def resolve(self, manifest_url: str, output_root: Path) -> int:
        """
        Resolves a manifest URL into scheduled work under `output_root`.

        Returns:
            The number of components scheduled (0 for a flat tree).

        Raises:
            FetchError, ManifestError: If the index cannot be used.
            PoolShutdownError: If the pool stopped accepting work.
        """
        document = await self.fetch_index(manifest_url)

        if is_flat_tree(document):
            log.debug("Index is a flat file tree; expanding it directly.")
            await self.expander.expand(document, output_root)
            return 0

        cache = LocalManifestCache(output_root)
        scheduled = 0
        for descriptor in iter_descriptors(document):
            try:
                cache.component_dir(descriptor.component)
            except ManifestError as e:
                log.warning(f"[yellow]Skipping component: {e}[/yellow]")
                self.stats.components_skipped += 1
                continue
            self._schedule_component(descriptor, cache)
            scheduled += 1

        log.debug(f"Scheduled {scheduled} component(s) from '{manifest_url}'.")
        return scheduled

    def _schedule_component(
        self, descriptor: ManifestDescriptor, cache: LocalManifestCache
    ) -> None:
        self.tracker.hold()
        try:
            self.pool.submit(partial(self._resolve_component, descriptor, cache))
        except PoolShutdownError:
            self.tracker.release()
            raise

    async def _resolve_component(
        self, descriptor: ManifestDescriptor, cache: LocalManifestCache
    ) -> None:
        # The hold is only released on a normal exit; a cancelled component
        # must not let the run look complete.
        try:
            document = await self._load_component_manifest(descriptor, cache)
            await self.expander.expand(
                document, cache.component_dir(descriptor.component)
            )
        except (FetchError, ManifestError, PoolShutdownError, OSError) as e:
            log.error(
                f"[red]Could not resolve component '{descriptor.component}': {e}[/red]"
            )
            self.on_fatal(e)
        except Exception as e:
            log.error(
                f"[red]Unexpected error resolving component "
                f"'{descriptor.component}': {e!r}[/red]"
            )
            log.debug("Full traceback:", exc_info=True)
            self.on_fatal(e)
        self.tracker.release()

    async def _load_component_manifest(
        self, descriptor: ManifestDescriptor, cache: LocalManifestCache
    ) -> dict[str, Any]:
        cached = await cache.lookup(descriptor)
        if cached is not None:
            self.stats.manifests_cached += 1
            self.events.manifest_cached(descriptor.component, descriptor.sha1)
            return parse_document(cached, str(cache.path_for(descriptor.component)))

        payload = await self.pool.fetch(descriptor.url)
        await cache.store(descriptor, payload)
        self.stats.manifests_fetched += 1
        self.events.manifest_fetched(descriptor.component, descriptor.url, len(payload))
        return parse_document(payload, descriptor.url)
