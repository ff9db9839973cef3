"""Directory identity resolver tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dirstamp.snapshot import PathEncodingError, find_directory_id, resolve_directory_id
from dirstamp.store import DirectoryRecord, MetadataStore


@pytest.fixture
def store(tmp_path: Path) -> MetadataStore:
    store = MetadataStore(tmp_path / "stamps.db")
    store.initialize()
    return store


def _directory_count(store: MetadataStore) -> int:
    with store.transaction("count") as session:
        return session.scalar(select(func.count(DirectoryRecord.id)))


def test_resolve_creates_record_on_first_use(store: MetadataStore) -> None:
    directory_id = resolve_directory_id(store, "/home/user/photos")

    assert isinstance(directory_id, int)
    assert _directory_count(store) == 1


def test_resolve_returns_same_id_for_same_path(store: MetadataStore) -> None:
    first = resolve_directory_id(store, "/home/user/photos")
    second = resolve_directory_id(store, Path("/home/user/photos"))

    assert first == second
    assert _directory_count(store) == 1


def test_resolve_compares_paths_as_exact_strings(store: MetadataStore) -> None:
    plain = resolve_directory_id(store, "/home/user/photos")
    trailing = resolve_directory_id(store, "/home/user/photos/")
    folded = resolve_directory_id(store, "/home/user/Photos")

    assert len({plain, trailing, folded}) == 3


def test_find_does_not_create_records(store: MetadataStore) -> None:
    assert find_directory_id(store, "/never/seen") is None
    assert _directory_count(store) == 0

    created = resolve_directory_id(store, "/never/seen")

    assert find_directory_id(store, "/never/seen") == created


def test_resolve_refetches_after_concurrent_insert(
    store: MetadataStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    winner = resolve_directory_id(store, "/shared")
    real_scalar = Session.scalar
    calls = {"count": 0}

    def _miss_first_lookup(self, statement, *args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            # Simulate losing the race: the row exists but our lookup missed it.
            return None
        return real_scalar(self, statement, *args, **kwargs)

    monkeypatch.setattr(Session, "scalar", _miss_first_lookup)

    assert resolve_directory_id(store, "/shared") == winner
    assert _directory_count(store) == 1


def test_unencodable_path_raises(store: MetadataStore) -> None:
    with pytest.raises(PathEncodingError) as excinfo:
        resolve_directory_id(store, "/data/bad-\udcff")

    assert excinfo.value.path == "/data/bad-\udcff"
    assert _directory_count(store) == 0
