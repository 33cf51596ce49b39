"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import os

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
)
DEFAULT_OUTPUT_ROOT = "data"


def default_worker_count() -> int:
    """Sizes the pool to the available hardware parallelism."""
    return max(1, min(64, os.cpu_count() or 1))


class SyncConfig(BaseModel):
    """A validated configuration model for the application."""

    # Source & destination
    manifest_url: str = ""
    output_root: str = DEFAULT_OUTPUT_ROOT

    # Fetch pool settings
    max_workers: int = Field(default_factory=default_worker_count)
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 60.0
    max_attempts: int = 1
    drain_timeout: float = 15.0

    # Logging
    json_log_dir: str = ""

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("manifest_url")
    @classmethod
    def validate_manifest_url(cls, v: str) -> str:
        """An empty URL is allowed here; the sync command demands one."""
        if v and not v.lower().startswith(("http://", "https://")):
            raise ValueError("Manifest URL must be an absolute http(s) URL.")
        return v

    @field_validator("output_root")
    @classmethod
    def validate_output_root(cls, v: str) -> str:
        if not v:
            raise ValueError("Output root cannot be empty.")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers."""
        if v < 1 or v > 64:
            raise ValueError("Max workers must be between 1 and 64.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("request_timeout", "drain_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("user_agent")
    @classmethod
    def validate_user_agent(cls, v: str) -> str:
        if not v:
            raise ValueError("User agent cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
