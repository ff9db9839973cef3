"""Reapply captured modification times to the files of a directory."""

from __future__ import annotations

import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.orm import Session

from dirstamp.store import (
    ActionKind,
    CaptureLogEntry,
    FileTimestampRecord,
    MetadataStore,
)

from .capture import require_directory
from .errors import FileTimestampWriteError
from .identity import find_directory_id
from .models import RestoreAnchor, RestoreFailure, RestoreOutcome, RestoreResult

LOGGER = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def latest_capture(session: Session, directory_id: int) -> CaptureLogEntry | None:
    """Return the newest capture log entry for a directory.

    Entries with identical timestamps are ordered by row id, so the most
    recently inserted one wins.
    """
    return session.scalars(
        select(CaptureLogEntry)
        .where(
            CaptureLogEntry.directory_id == directory_id,
            CaptureLogEntry.action_kind == ActionKind.TIMESTAMPS_CAPTURED,
        )
        .order_by(CaptureLogEntry.captured_at.desc(), CaptureLogEntry.id.desc())
        .limit(1)
    ).first()


def to_nanoseconds(value: datetime) -> int:
    """Convert an aware datetime to integer nanoseconds since the epoch."""
    delta = value - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


def set_modified_time(path: str, modified_at: datetime) -> None:
    """Set the modification time of ``path``, keeping its access time."""
    current = os.stat(path)
    os.utime(path, ns=(current.st_atime_ns, to_nanoseconds(modified_at)))


def _is_regular_file(path: str) -> bool:
    try:
        return stat.S_ISREG(os.lstat(path).st_mode)
    except FileNotFoundError:
        return False


def restore_directory(
    store: MetadataStore,
    path: str | Path,
    *,
    fail_fast: bool = True,
    anchor: RestoreAnchor = RestoreAnchor.LATEST_CAPTURE,
) -> RestoreResult:
    """Write the most recently captured modification times back to ``path``.

    Records are read in one transaction; files are touched only after it
    closes. Files that are gone or are no longer regular files are skipped.
    Creation times are never written.

    Args:
        store: Metadata store to read from.
        path: Directory to restore.
        fail_fast: Raise on the first write failure instead of collecting it.
        anchor: Apply only the records of the latest capture, or the stored
            value of every file regardless of which capture wrote it.

    Returns:
        RestoreResult: Summary of the pass. Directories that were never
        captured produce a no-op result rather than an error.

    Raises:
        DirectoryNotFoundError: If ``path`` is not an existing directory.
        PathEncodingError: If ``path`` cannot be stored as text.
        FileTimestampWriteError: If a write fails while ``fail_fast`` is set.
        StoreError: If the store fails.
    """
    directory = os.fspath(path)
    require_directory(directory)

    directory_id = find_directory_id(store, directory)
    if directory_id is None:
        LOGGER.info("%s has never been captured; nothing to restore", directory)
        return RestoreResult(
            directory=directory, outcome=RestoreOutcome.UNKNOWN_DIRECTORY, anchor=anchor
        )

    with store.transaction("restore read") as session:
        latest = latest_capture(session, directory_id)
        if latest is None:
            anchor_time = None
            planned: list[tuple[str, datetime]] = []
        else:
            anchor_time = latest.captured_at
            query = select(FileTimestampRecord.name, FileTimestampRecord.modified_at).where(
                FileTimestampRecord.directory_id == directory_id
            )
            if anchor is RestoreAnchor.LATEST_CAPTURE:
                query = query.where(FileTimestampRecord.captured_at == anchor_time)
            planned = [(name, modified_at) for name, modified_at in session.execute(query)]

    if anchor_time is None:
        LOGGER.info("No capture found for %s; nothing to restore", directory)
        return RestoreResult(directory=directory, outcome=RestoreOutcome.NO_CAPTURE, anchor=anchor)

    result = RestoreResult(
        directory=directory,
        outcome=RestoreOutcome.RESTORED,
        anchor=anchor,
        anchor_time=anchor_time,
    )
    for name, modified_at in planned:
        target = os.path.join(directory, name)
        if not _is_regular_file(target):
            LOGGER.debug("Skipping %s; not a regular file", target)
            result.skipped.append(name)
            continue
        try:
            set_modified_time(target, modified_at)
        except FileNotFoundError:
            result.skipped.append(name)
            continue
        except OSError as exc:
            if fail_fast:
                raise FileTimestampWriteError(target, str(exc)) from exc
            LOGGER.warning("Failed to restore %s: %s", target, exc)
            result.failed.append(RestoreFailure(name=name, reason=str(exc)))
            continue
        LOGGER.debug("Restored %s to %s", target, modified_at.isoformat())
        result.restored.append(name)

    LOGGER.info(
        "Restored %d file(s) in %s from capture at %s (%d skipped, %d failed)",
        len(result.restored),
        directory,
        anchor_time.isoformat(),
        len(result.skipped),
        len(result.failed),
    )
    return result


__all__ = [
    "latest_capture",
    "to_nanoseconds",
    "set_modified_time",
    "restore_directory",
]
