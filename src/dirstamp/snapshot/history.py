"""Inspect and trim the capture log of a directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from sqlalchemy import delete, func, select

from dirstamp.store import CaptureLogEntry, FileTimestampRecord, MetadataStore

from .identity import find_directory_id
from .models import CaptureSummary

LOGGER = logging.getLogger(__name__)


def list_captures(
    store: MetadataStore,
    path: str | Path,
    *,
    limit: Optional[int] = None,
) -> List[CaptureSummary]:
    """Return capture log entries for ``path``, newest first.

    Each summary reports how many file records still carry that capture's
    timestamp. Paths that were never captured yield an empty list.
    """
    directory_id = find_directory_id(store, path)
    if directory_id is None:
        return []

    with store.transaction("history") as session:
        query = (
            select(CaptureLogEntry)
            .where(CaptureLogEntry.directory_id == directory_id)
            .order_by(CaptureLogEntry.captured_at.desc(), CaptureLogEntry.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        entries = list(session.scalars(query))

        counts = dict(
            session.execute(
                select(FileTimestampRecord.captured_at, func.count(FileTimestampRecord.id))
                .where(FileTimestampRecord.directory_id == directory_id)
                .group_by(FileTimestampRecord.captured_at)
            ).all()
        )

    return [
        CaptureSummary(
            captured_at=entry.captured_at,
            action_kind=entry.action_kind.name.lower(),
            files=counts.get(entry.captured_at, 0),
        )
        for entry in entries
    ]


def prune_captures(store: MetadataStore, path: str | Path, *, keep: int) -> int:
    """Delete all but the newest ``keep`` capture log entries of ``path``.

    The newest entry is always kept, so the restore anchor never changes. File
    timestamp records are left alone.

    Returns:
        int: Number of log entries removed.

    Raises:
        ValueError: If ``keep`` is less than one.
    """
    if keep < 1:
        raise ValueError("keep must be at least 1")

    directory_id = find_directory_id(store, path)
    if directory_id is None:
        return 0

    with store.transaction("prune", immediate=True) as session:
        survivors = (
            select(CaptureLogEntry.id)
            .where(CaptureLogEntry.directory_id == directory_id)
            .order_by(CaptureLogEntry.captured_at.desc(), CaptureLogEntry.id.desc())
            .limit(keep)
        )
        outcome = session.execute(
            delete(CaptureLogEntry)
            .where(
                CaptureLogEntry.directory_id == directory_id,
                CaptureLogEntry.id.not_in(survivors),
            )
            .execution_options(synchronize_session=False)
        )
        removed = outcome.rowcount or 0

    LOGGER.info("Pruned %d capture log entr(ies) for %s", removed, path)
    return removed


__all__ = ["list_captures", "prune_captures"]
