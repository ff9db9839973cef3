"""Timestamp capture and restore operations."""

from __future__ import annotations

from .capture import capture_directory
from .errors import (
    DirectoryNotFoundError,
    EncodingError,
    FileTimestampWriteError,
    NameEncodingError,
    PathEncodingError,
    SnapshotError,
)
from .history import list_captures, prune_captures
from .identity import find_directory_id, resolve_directory_id
from .models import (
    CaptureResult,
    CaptureSummary,
    RestoreAnchor,
    RestoreFailure,
    RestoreOutcome,
    RestoreResult,
)
from .restore import restore_directory
from .traversal import capture_tree

__all__ = [
    "capture_directory",
    "capture_tree",
    "restore_directory",
    "list_captures",
    "prune_captures",
    "find_directory_id",
    "resolve_directory_id",
    "CaptureResult",
    "CaptureSummary",
    "RestoreAnchor",
    "RestoreFailure",
    "RestoreOutcome",
    "RestoreResult",
    "SnapshotError",
    "DirectoryNotFoundError",
    "EncodingError",
    "PathEncodingError",
    "NameEncodingError",
    "FileTimestampWriteError",
]
