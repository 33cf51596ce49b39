"""
Network Layer.

This package owns all outbound HTTP traffic through a bounded fetch pool.
"""

from .fetch_pool import AsyncFetchPool

__all__ = ["AsyncFetchPool"]
