"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class ManifestSyncError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(ManifestSyncError):
    """Raised for issues related to configuration loading or validation."""


class ManifestError(ManifestSyncError):
    """Raised when a manifest document cannot be parsed or has the wrong shape."""


class FetchError(ManifestSyncError):
    """Raised when a URL cannot be fetched."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch '{url}': {reason}")
        self.url = url
        self.reason = reason


class PoolShutdownError(ManifestSyncError):
    """Raised when work is submitted to a fetch pool that has been shut down."""


class RunInProgressError(ManifestSyncError):
    """Raised when a synchronization run is started while another is active."""
