"""
Pydantic models and parsers for the two manifest shapes: the component index
and the flat file tree.
"""

import json
import logging
from collections.abc import Iterator
from typing import Any, Literal, Union

from pydantic import BaseModel, StrictStr, ValidationError

from manifest_sync.exceptions import ManifestError

log = logging.getLogger(__name__)

FILES_KEY = "files"


class ManifestDescriptor(BaseModel):
    """Points at a component's sub-manifest and the hash it must have."""

    component: str
    sha1: StrictStr
    url: StrictStr


class DirectoryNode(BaseModel):
    kind: Literal["directory"] = "directory"
    relative_path: str


class FileNode(BaseModel):
    kind: Literal["file"] = "file"
    relative_path: str
    sha1: StrictStr
    url: StrictStr


class MalformedNode(BaseModel):
    """A `file` entry whose download descriptor is unusable. Still counted."""

    kind: Literal["malformed"] = "malformed"
    relative_path: str
    reason: str


FileTreeNode = Union[DirectoryNode, FileNode, MalformedNode]


def parse_document(payload: bytes | str | None, source: str) -> dict[str, Any]:
    """
    Parses a manifest payload into a JSON object.

    Raises:
        ManifestError: If the payload is empty, not JSON, or not an object.
    """
    if not payload:
        raise ManifestError(f"Manifest from '{source}' is empty.")
    try:
        document = json.loads(payload)
    except ValueError as e:
        raise ManifestError(f"Manifest from '{source}' is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise ManifestError(f"Manifest from '{source}' is not a JSON object.")
    return document


def is_flat_tree(document: dict[str, Any]) -> bool:
    """A document carrying `files` is an already expanded single tree."""
    return FILES_KEY in document


def first_descriptor(component: str, value: Any) -> ManifestDescriptor | None:
    """
    Extracts the first descriptor listed for a component.

    Only element [0] is consulted; later versions are ignored. Returns None for
    any shape other than a non-empty list whose first item has a `manifest`
    object with string `sha1` and `url` fields.
    """
    if not isinstance(value, list) or not value:
        return None
    head = value[0]
    if not isinstance(head, dict) or not isinstance(head.get("manifest"), dict):
        return None
    manifest = head["manifest"]
    try:
        return ManifestDescriptor(
            component=component, sha1=manifest.get("sha1"), url=manifest.get("url")
        )
    except ValidationError:
        return None


def iter_descriptors(index: dict[str, Any]) -> Iterator[ManifestDescriptor]:
    """Yields one descriptor per well-formed component, in index order."""
    for component, value in index.items():
        descriptor = first_descriptor(component, value)
        if descriptor is None:
            log.debug(f"Skipping component '{component}': unrecognized descriptor.")
            continue
        yield descriptor


def _parse_file_entry(name: str, entry: dict[str, Any]) -> FileTreeNode:
    downloads = entry.get("downloads")
    raw = downloads.get("raw") if isinstance(downloads, dict) else None
    if not isinstance(raw, dict):
        return MalformedNode(relative_path=name, reason="missing downloads.raw")
    try:
        return FileNode(relative_path=name, sha1=raw.get("sha1"), url=raw.get("url"))
    except ValidationError:
        return MalformedNode(
            relative_path=name, reason="downloads.raw needs string sha1 and url"
        )


def parse_file_tree(document: dict[str, Any]) -> list[FileTreeNode]:
    """
    Classifies the entries of a file-tree document.

    Directory and file entries are returned (broken file entries as
    MalformedNode); entries with any other type are dropped, so the length of
    the result is exactly the number of entries that count toward progress.

    Raises:
        ManifestError: If the document has no `files` object.
    """
    files = document.get(FILES_KEY)
    if not isinstance(files, dict):
        raise ManifestError("File-tree manifest has no 'files' object.")

    nodes: list[FileTreeNode] = []
    for name, entry in files.items():
        if not isinstance(entry, dict):
            continue
        entry_type = entry.get("type")
        if not isinstance(entry_type, str):
            continue
        entry_type = entry_type.lower()
        if entry_type == "directory":
            nodes.append(DirectoryNode(relative_path=name))
        elif entry_type == "file":
            nodes.append(_parse_file_entry(name, entry))
        else:
            log.debug(f"Ignoring entry '{name}' with unknown type '{entry_type}'.")
    return nodes
