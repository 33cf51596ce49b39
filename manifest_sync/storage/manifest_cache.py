"""
Persisted copies of resolved component sub-manifests.

Each component's sub-manifest is stored verbatim at
`<output_root>/<component>/manifest.json` and reused on later runs while its
SHA-1 still matches the index descriptor.
"""

import asyncio
import logging
from pathlib import Path

import aiofiles

from manifest_sync.models.manifest import ManifestDescriptor
from manifest_sync.utils.hashing import hashes_match, sha1_bytes
from manifest_sync.utils.path import create_dir, resolve_entry_path

log = logging.getLogger(__name__)


class LocalManifestCache:
    """Reads and writes cached sub-manifests under an output root."""

    FILENAME = "manifest.json"

    def __init__(self, output_root: Path):
        self.output_root = output_root

    def component_dir(self, component: str) -> Path:
        """
        Raises:
            ManifestError: If the component name escapes the output root.
        """
        return resolve_entry_path(self.output_root, component)

    def path_for(self, component: str) -> Path:
        return self.component_dir(component) / self.FILENAME

    async def lookup(self, descriptor: ManifestDescriptor) -> bytes | None:
        """
        Returns the cached payload if it exists and matches the descriptor hash.
        """
        cache_path = self.path_for(descriptor.component)
        if not await asyncio.to_thread(cache_path.is_file):
            return None
        try:
            async with aiofiles.open(cache_path, "rb") as f:
                payload = await f.read()
        except OSError as e:
            log.debug(f"Cache read failed for '{cache_path}': {e}")
            return None

        local_hash = sha1_bytes(payload)
        if not hashes_match(local_hash, descriptor.sha1):
            log.info(
                f"Cached manifest for '{descriptor.component}' has hash "
                f"'{local_hash}' while the index lists '{descriptor.sha1}'. "
                "Fetching it again."
            )
            return None
        return payload

    async def store(self, descriptor: ManifestDescriptor, payload: bytes) -> Path:
        """
        Writes a freshly fetched sub-manifest verbatim, creating its directory.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        component_dir = self.component_dir(descriptor.component)
        await asyncio.to_thread(create_dir, component_dir)
        cache_path = component_dir / self.FILENAME
        async with aiofiles.open(cache_path, "wb") as f:
            await f.write(payload)

        if not hashes_match(sha1_bytes(payload), descriptor.sha1):
            log.warning(
                f"[yellow]Manifest for '{descriptor.component}' does not match "
                f"its index hash '{descriptor.sha1}'.[/yellow]"
            )
        return cache_path
