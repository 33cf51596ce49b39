"""
Data Models Layer.

This package contains Pydantic models and dataclasses that define the core data
structures used throughout the application, such as configuration, manifests
and run statistics.
"""

from .config import SyncConfig
from .manifest import (
    DirectoryNode,
    FileNode,
    FileTreeNode,
    MalformedNode,
    ManifestDescriptor,
)
from .stats import SyncStats

__all__ = [
    "DirectoryNode",
    "FileNode",
    "FileTreeNode",
    "MalformedNode",
    "ManifestDescriptor",
    "SyncConfig",
    "SyncStats",
]
