"""
Dataclass for tracking synchronization run statistics.
"""

import time
from dataclasses import dataclass, field


@dataclass
class SyncStats:
    """
    Breaks down how each entry of a run ended.

    These counters are observational only. Completion of a run is decided by
    the progress tracker, which counts every terminal entry alike.
    """

    files_downloaded: int = 0
    files_verified: int = 0
    entries_failed: int = 0
    directories_created: int = 0
    directories_existing: int = 0
    manifests_fetched: int = 0
    manifests_cached: int = 0
    components_skipped: int = 0
    bytes_downloaded: int = 0
    failed_entries: list[str] = field(default_factory=list, repr=False)
    started_at: float = field(default_factory=time.monotonic, repr=False)
    finished_at: float | None = field(default=None, repr=False)

    def record_failure(self, relative_path: str) -> None:
        self.entries_failed += 1
        self.failed_entries.append(relative_path)

    def mark_finished(self) -> None:
        if self.finished_at is None:
            self.finished_at = time.monotonic()

    @property
    def duration_s(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    @property
    def entries_processed(self) -> int:
        return (
            self.files_downloaded
            + self.files_verified
            + self.entries_failed
            + self.directories_created
            + self.directories_existing
        )
