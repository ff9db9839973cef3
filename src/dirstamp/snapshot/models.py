"""Result models returned by capture, restore, and log operations."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class RestoreOutcome(str, enum.Enum):
    """How a restore pass ended."""

    RESTORED = "restored"
    NO_CAPTURE = "no_capture"
    UNKNOWN_DIRECTORY = "unknown_directory"


class RestoreAnchor(str, enum.Enum):
    """Which stored records a restore pass applies."""

    LATEST_CAPTURE = "latest_capture"
    NEWEST_PER_FILE = "newest_per_file"


class CaptureResult(BaseModel):
    """Summary of one capture pass.

    Attributes:
        directory: Directory path as stored.
        directory_id: Store identifier of the directory.
        captured_at: Timestamp shared by the log entry and every record of the pass.
        files_recorded: Number of regular files upserted.
        entries_skipped: Number of directory entries that were not regular files.
    """

    directory: str
    directory_id: int
    captured_at: datetime
    files_recorded: int = 0
    entries_skipped: int = 0


class RestoreFailure(BaseModel):
    """A file whose modification time could not be written."""

    name: str
    reason: str


class RestoreResult(BaseModel):
    """Summary of one restore pass.

    Attributes:
        directory: Directory path that was restored.
        outcome: Whether timestamps were applied or the pass was a no-op.
        anchor: Record selection mode used for the pass.
        anchor_time: Capture timestamp the records were selected by, if any.
        restored: Names whose modification time was written.
        skipped: Names that no longer exist as regular files.
        failed: Names that could not be written (only when not failing fast).
    """

    directory: str
    outcome: RestoreOutcome
    anchor: RestoreAnchor = RestoreAnchor.LATEST_CAPTURE
    anchor_time: Optional[datetime] = None
    restored: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[RestoreFailure] = Field(default_factory=list)


class CaptureSummary(BaseModel):
    """One capture log entry with the number of records still tagged by it."""

    captured_at: datetime
    action_kind: str
    files: int


__all__ = [
    "RestoreOutcome",
    "RestoreAnchor",
    "CaptureResult",
    "RestoreFailure",
    "RestoreResult",
    "CaptureSummary",
]
