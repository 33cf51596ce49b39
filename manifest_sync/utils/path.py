"""
Utilities for handling output paths derived from manifest entries.
"""

import os
from pathlib import Path, PurePosixPath

from manifest_sync.exceptions import ManifestError


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def resolve_entry_path(base_dir: Path, relative_path: str) -> Path:
    """
    Joins a manifest-relative path onto a base directory.

    Manifest names always use forward slashes. Absolute names, names that
    climb out of `base_dir` and names the filesystem cannot represent are
    rejected.

    Raises:
        ManifestError: If the name is unusable or escapes the base directory.
    """
    normalized = relative_path.replace("\\", "/")
    if "\x00" in normalized:
        raise ManifestError(
            f"Refusing manifest path with a NUL byte: {relative_path!r}."
        )
    try:
        os.fsencode(normalized)
    except UnicodeError as e:
        raise ManifestError(
            f"Refusing manifest path that cannot be encoded: {relative_path!r}."
        ) from e

    pure = PurePosixPath(normalized)
    if not normalized.strip("/") or pure.is_absolute() or ".." in pure.parts:
        raise ManifestError(f"Refusing unsafe manifest path '{relative_path}'.")
    return base_dir.joinpath(*pure.parts)
