"""Map directory paths to stable store identifiers."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from dirstamp.store import DirectoryRecord, MetadataStore, StoreError

from .errors import PathEncodingError

LOGGER = logging.getLogger(__name__)


def is_text_encodable(value: str) -> bool:
    """Return whether ``value`` survives encoding as UTF-8.

    Undecodable bytes in filesystem names surface in Python as lone surrogates,
    which UTF-8 refuses to encode.
    """
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def directory_key(path: str | Path) -> str:
    """Return the exact string under which ``path`` is stored.

    Raises:
        PathEncodingError: If the path cannot be represented as text.
    """
    text = os.fspath(path)
    if not is_text_encodable(text):
        raise PathEncodingError(text)
    return text


def find_directory_id(store: MetadataStore, path: str | Path) -> int | None:
    """Return the identifier stored for ``path`` without creating one.

    Args:
        store: Metadata store to query.
        path: Directory path, compared as an exact string.

    Returns:
        int | None: The identifier, or None if the path was never recorded.

    Raises:
        PathEncodingError: If the path cannot be represented as text.
        StoreError: If the lookup fails.
    """
    key = directory_key(path)
    with store.transaction("resolve directory") as session:
        return session.scalar(select(DirectoryRecord.id).where(DirectoryRecord.path == key))


def resolve_directory_id(store: MetadataStore, path: str | Path) -> int:
    """Return the identifier for ``path``, creating a record on first use.

    Lookup and insert share one transaction. If another process inserts the
    same path first, the unique constraint rejects our insert and the winning
    row is fetched instead.

    Args:
        store: Metadata store to query and update.
        path: Directory path, compared as an exact string.

    Returns:
        int: Identifier of the directory record.

    Raises:
        PathEncodingError: If the path cannot be represented as text.
        StoreError: If the lookup or insert fails.
    """
    key = directory_key(path)
    try:
        with store.transaction("resolve directory", immediate=True) as session:
            existing = session.scalar(
                select(DirectoryRecord.id).where(DirectoryRecord.path == key)
            )
            if existing is not None:
                return existing
            record = DirectoryRecord(path=key)
            session.add(record)
            session.flush()
            LOGGER.debug("Registered directory %s as id %s", key, record.id)
            return record.id
    except StoreError as exc:
        if not isinstance(exc.__cause__, IntegrityError):
            raise

    LOGGER.debug("Directory %s was registered concurrently; re-fetching", key)
    winner = find_directory_id(store, key)
    if winner is None:
        raise StoreError("resolve directory", f"no record for {key} after insert conflict")
    return winner


__all__ = ["is_text_encodable", "directory_key", "find_directory_id", "resolve_directory_id"]
