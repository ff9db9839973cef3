"""Errors raised by capture and restore operations."""

from __future__ import annotations


class SnapshotError(Exception):
    """Base exception for capture and restore operations."""


class DirectoryNotFoundError(SnapshotError):
    """Raised when the target directory does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Directory does not exist: {path}")
        self.path = path


class EncodingError(SnapshotError):
    """Raised when a filesystem value cannot be stored as text."""


class PathEncodingError(EncodingError):
    """Raised when a directory path cannot be represented as UTF-8 text."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Unable to encode directory path as text: {path!r}")
        self.path = path


class NameEncodingError(EncodingError):
    """Raised when a file name cannot be represented as UTF-8 text."""

    def __init__(self, directory: str, name: str) -> None:
        super().__init__(f"Unable to encode file name as text: {name!r} in {directory}")
        self.directory = directory
        self.name = name


class FileTimestampWriteError(SnapshotError):
    """Raised when a modification time cannot be written back to a file."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to set modification time on {path}: {reason}")
        self.path = path
        self.reason = reason


__all__ = [
    "SnapshotError",
    "DirectoryNotFoundError",
    "EncodingError",
    "PathEncodingError",
    "NameEncodingError",
    "FileTimestampWriteError",
]
