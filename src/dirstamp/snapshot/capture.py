"""Capture live file timestamps for a directory into the metadata store."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy import select

from dirstamp.store import (
    ActionKind,
    CaptureLogEntry,
    FileTimestampRecord,
    MetadataStore,
)

from .errors import DirectoryNotFoundError, NameEncodingError
from .identity import is_text_encodable, resolve_directory_id
from .models import CaptureResult

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def require_directory(path: str) -> None:
    """Raise DirectoryNotFoundError unless ``path`` is an existing directory."""
    if not os.path.isdir(path):
        raise DirectoryNotFoundError(path)


def creation_time_ns(stat: os.stat_result) -> int:
    """Return the file creation time in nanoseconds.

    Falls back to the inode change time where the platform has no birth time.
    """
    birth_ns = getattr(stat, "st_birthtime_ns", None)
    if birth_ns is not None:
        return birth_ns
    birth = getattr(stat, "st_birthtime", None)
    if birth is not None:
        return int(birth * 1_000_000_000)
    return stat.st_ctime_ns


def from_nanoseconds(value: int) -> datetime:
    """Convert integer nanoseconds since the epoch to an aware UTC datetime.

    Sub-microsecond digits are truncated.
    """
    return _EPOCH + timedelta(microseconds=value // 1_000)


def capture_directory(
    store: MetadataStore,
    path: str | Path,
    *,
    clock: Optional[Clock] = None,
) -> CaptureResult:
    """Record the timestamps of every regular file directly inside ``path``.

    The log entry and every upserted record share one capture timestamp and
    are committed in one transaction, so a failed pass leaves no trace in the
    log or the file records. Subdirectories, symlinks, and special files are
    skipped.

    Args:
        store: Metadata store to write to.
        path: Directory to capture.
        clock: Source of the capture timestamp, read exactly once.

    Returns:
        CaptureResult: Summary of the pass.

    Raises:
        DirectoryNotFoundError: If ``path`` is not an existing directory.
        PathEncodingError: If ``path`` cannot be stored as text.
        NameEncodingError: If any file name cannot be stored as text.
        StoreError: If the store fails.
        OSError: If the directory cannot be read.
    """
    directory = os.fspath(path)
    require_directory(directory)
    directory_id = resolve_directory_id(store, directory)
    captured_at = (clock or utc_now)()

    recorded = 0
    skipped = 0
    with store.transaction("capture", immediate=True) as session:
        session.add(
            CaptureLogEntry(
                directory_id=directory_id,
                action_kind=ActionKind.TIMESTAMPS_CAPTURED,
                captured_at=captured_at,
            )
        )
        existing = {
            record.name: record
            for record in session.scalars(
                select(FileTimestampRecord).where(FileTimestampRecord.directory_id == directory_id)
            )
        }

        with os.scandir(directory) as entries:
            for entry in entries:
                if not entry.is_file(follow_symlinks=False):
                    skipped += 1
                    continue
                if not is_text_encodable(entry.name):
                    raise NameEncodingError(directory, entry.name)
                try:
                    stat = entry.stat(follow_symlinks=False)
                except FileNotFoundError:
                    LOGGER.debug("Skipping %s; removed during capture", entry.path)
                    skipped += 1
                    continue

                created_at = from_nanoseconds(creation_time_ns(stat))
                modified_at = from_nanoseconds(stat.st_mtime_ns)

                record = existing.get(entry.name)
                if record is None:
                    session.add(
                        FileTimestampRecord(
                            directory_id=directory_id,
                            name=entry.name,
                            captured_at=captured_at,
                            created_at=created_at,
                            modified_at=modified_at,
                        )
                    )
                else:
                    record.captured_at = captured_at
                    record.created_at = created_at
                    record.modified_at = modified_at
                recorded += 1

    LOGGER.info(
        "Captured %d file(s) in %s at %s",
        recorded,
        directory,
        captured_at.isoformat(),
    )
    return CaptureResult(
        directory=directory,
        directory_id=directory_id,
        captured_at=captured_at,
        files_recorded=recorded,
        entries_skipped=skipped,
    )


__all__ = [
    "Clock",
    "utc_now",
    "require_directory",
    "creation_time_ns",
    "from_nanoseconds",
    "capture_directory",
]
