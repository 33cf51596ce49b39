"""
Expands one file-tree manifest into per-entry pool jobs.
"""

import asyncio
import logging
from functools import partial
from pathlib import Path
from typing import Any

from manifest_sync.core.progress import ProgressTracker
from manifest_sync.exceptions import FetchError, ManifestError
from manifest_sync.models.manifest import (
    DirectoryNode,
    FileNode,
    MalformedNode,
    parse_file_tree,
)
from manifest_sync.models.stats import SyncStats
from manifest_sync.net.fetch_pool import AsyncFetchPool
from manifest_sync.utils.hashing import hashes_match, sha1_file
from manifest_sync.utils.path import create_dir, resolve_entry_path
from manifest_sync.utils.structured_logger import SyncEventLogger, create_event_logger

log = logging.getLogger(__name__)


class FileTreeExpander:
    """
    Verifies or fetches every directory and file entry of a file tree.

    Each counted entry produces exactly one `increment` on the tracker, whether
    it was already present, downloaded, or failed. Failures are additionally
    recorded in the stats and the tracker's failed counter.
    """

    def __init__(
        self,
        pool: AsyncFetchPool,
        tracker: ProgressTracker,
        stats: SyncStats | None = None,
        events: SyncEventLogger | None = None,
    ):
        self.pool = pool
        self.tracker = tracker
        self.stats = stats or SyncStats()
        self.events = events or create_event_logger()

    async def expand(self, document: dict[str, Any], output_dir: Path) -> int:
        """
        Counts the tree's entries toward the total and schedules their work.

        Returns:
            The number of entries added to the total.

        Raises:
            ManifestError: If the document has no `files` object.
            PoolShutdownError: If the pool stopped accepting work.
        """
        nodes = parse_file_tree(document)
        self.tracker.add_total(len(nodes))
        log.debug(f"Expanding {len(nodes)} entries into '{output_dir}'.")

        for node in nodes:
            if isinstance(node, MalformedNode):
                self._count_failure(node.relative_path, node.reason)
                continue
            try:
                target = resolve_entry_path(output_dir, node.relative_path)
            except ManifestError as e:
                self._count_failure(node.relative_path, str(e))
                continue

            if isinstance(node, DirectoryNode):
                if await asyncio.to_thread(target.exists):
                    self.stats.directories_existing += 1
                    self.tracker.increment()
                else:
                    self.pool.submit(partial(self._create_directory, node, target))
            elif isinstance(node, FileNode):
                self.pool.submit(partial(self._sync_file, node, target))

        return len(nodes)

    def _count_failure(self, relative_path: str, reason: str) -> None:
        self.stats.record_failure(relative_path)
        self.events.file_failed(relative_path, reason)
        self.tracker.increment(failed=True)

    async def _create_directory(self, node: DirectoryNode, target: Path) -> None:
        try:
            await asyncio.to_thread(create_dir, target)
        except OSError as e:
            self._count_failure(node.relative_path, f"could not create directory: {e}")
            return
        except Exception as e:
            log.debug("Full traceback:", exc_info=True)
            self._count_failure(node.relative_path, f"unexpected error: {e!r}")
            return
        self.stats.directories_created += 1
        self.events.directory_created(node.relative_path)
        self.tracker.increment()

    async def _sync_file(self, node: FileNode, target: Path) -> None:
        try:
            local_hash = await asyncio.to_thread(sha1_file, target)
            if hashes_match(local_hash, node.sha1):
                self.stats.files_verified += 1
                self.events.file_verified(node.relative_path)
                self.tracker.increment()
                return

            if local_hash is not None:
                log.info(
                    f"Local file '{node.relative_path}' had a hash of '{local_hash}' "
                    f"while the server returned '{node.sha1}'. File being redownloaded."
                )
                await asyncio.to_thread(target.unlink)

            await asyncio.to_thread(create_dir, target.parent)
            size = await self.pool.download(node.url, target)
        except (FetchError, OSError) as e:
            self._count_failure(node.relative_path, str(e))
            return
        except Exception as e:
            log.debug("Full traceback:", exc_info=True)
            self._count_failure(node.relative_path, f"unexpected error: {e!r}")
            return

        self.stats.files_downloaded += 1
        self.stats.bytes_downloaded += size
        self.events.file_downloaded(node.relative_path, node.url, size)
        self.tracker.increment()
