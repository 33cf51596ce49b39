"""
Core synchronization engine.

This package contains the primary logic. The `SyncService` owns the fetch pool
and starts `SynchronizationRun`s; each run uses the `ManifestResolver` to turn
the top-level manifest into component file trees, which the
`FileTreeExpander` turns into per-entry jobs counted by the
`ProgressTracker`.
"""
