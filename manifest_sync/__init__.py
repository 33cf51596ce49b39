"""
manifest-sync: a concurrent, hash-verified downloader for multi-tier
installation manifests.
"""

__version__ = "0.1.0"
