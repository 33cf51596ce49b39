"""
Storage Layer.

This package handles all data persistence: the configuration file and the
cached component manifests.
"""

from .config_manager import ConfigManager
from .manifest_cache import LocalManifestCache

__all__ = ["ConfigManager", "LocalManifestCache"]
