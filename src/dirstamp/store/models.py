"""Relational schema for captured directory timestamps."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class Base(DeclarativeBase):
    """Base class for all dirstamp tables."""

    pass


class ActionKind(enum.IntEnum):
    """Kinds of entries recorded in the capture log."""

    TIMESTAMPS_CAPTURED = 0


class UTCDateTime(TypeDecorator):
    """Store timezone-aware datetimes as naive UTC values.

    Naive values handed to the column are assumed to already be UTC. Values
    read back are always timezone-aware UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class ActionKindType(TypeDecorator):
    """Persist :class:`ActionKind` members as their integer value."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value: Optional[ActionKind], dialect) -> Optional[int]:
        if value is None:
            return None
        return int(ActionKind(value))

    def process_result_value(self, value: Optional[int], dialect) -> Optional[ActionKind]:
        if value is None:
            return None
        return ActionKind(value)


class DirectoryRecord(Base):
    """A directory known to the store, keyed by its exact path string."""

    __tablename__ = "dir_props"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<DirectoryRecord(id={self.id}, path={self.path!r})>"


class FileTimestampRecord(Base):
    """Timestamps observed for one file name inside a directory."""

    __tablename__ = "dir_file_props"
    __table_args__ = (UniqueConstraint("dir_id", "name", name="uq_dir_file_props_dir_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    directory_id: Mapped[int] = mapped_column(
        "dir_id", Integer, ForeignKey("dir_props.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    captured_at: Mapped[datetime] = mapped_column("cached_date", UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column("created_date", UTCDateTime, nullable=False)
    modified_at: Mapped[datetime] = mapped_column("modified_date", UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<FileTimestampRecord(directory_id={self.directory_id}, name={self.name!r}, "
            f"captured_at={self.captured_at})>"
        )


class CaptureLogEntry(Base):
    """Append-only marker written once per capture pass."""

    __tablename__ = "dir_actions_log"
    __table_args__ = (Index("ix_dir_actions_log_dir_cached", "dir_id", "cached_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    directory_id: Mapped[int] = mapped_column(
        "dir_id", Integer, ForeignKey("dir_props.id"), nullable=False
    )
    action_kind: Mapped[ActionKind] = mapped_column("action_type", ActionKindType, nullable=False)
    captured_at: Mapped[datetime] = mapped_column("cached_date", UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CaptureLogEntry(id={self.id}, directory_id={self.directory_id}, "
            f"action_kind={self.action_kind.name}, captured_at={self.captured_at})>"
        )


__all__ = [
    "Base",
    "ActionKind",
    "UTCDateTime",
    "ActionKindType",
    "DirectoryRecord",
    "FileTimestampRecord",
    "CaptureLogEntry",
]
