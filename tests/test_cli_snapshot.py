"""CLI integration tests for `dirstamp save`, `apply`, `history`, and `prune`."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from click.testing import CliRunner

from dirstamp.cli import cli

ORIGINAL = 1_600_000_000
CLOBBERED = 1_700_000_000


def _env_with_home(tmp_path: Path) -> dict[str, str | None]:
    """Return environment variables pointing HOME to a temp directory.

    Database locations inherited from the caller are removed so each test
    chooses its own.
    """
    env: dict[str, str | None] = dict(os.environ)
    env["HOME"] = str(tmp_path / "home")
    env["DATABASE_PATH"] = None
    env["DIRSTAMP__STORE__DATABASE_PATH"] = None
    return env


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    (root / "nested").mkdir(parents=True)
    for path in (root / "a.txt", root / "b.txt", root / "nested" / "c.txt"):
        path.write_text(path.name, encoding="utf-8")
        os.utime(path, (ORIGINAL, ORIGINAL))
    return root


@pytest.fixture
def database(tmp_path: Path) -> str:
    return str(tmp_path / "db" / "stamps.db")


def _clobber(*paths: Path) -> None:
    for path in paths:
        os.utime(path, (CLOBBERED, CLOBBERED))


def test_save_then_apply_round_trip(tmp_path: Path, data_dir: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    saved = runner.invoke(cli, ["--database", database, "save", str(data_dir)], env=env)
    _clobber(data_dir / "a.txt", data_dir / "b.txt")
    applied = runner.invoke(cli, ["--database", database, "apply", str(data_dir)], env=env)

    assert saved.exit_code == 0, saved.output
    assert "directories=1" in saved.output
    assert "files=2" in saved.output
    assert applied.exit_code == 0, applied.output
    assert "restored=2" in applied.output
    assert int((data_dir / "a.txt").stat().st_mtime) == ORIGINAL
    assert int((data_dir / "b.txt").stat().st_mtime) == ORIGINAL


def test_save_recursive_json(tmp_path: Path, data_dir: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli, ["--database", database, "save", str(data_dir), "-r", "--json"], env=env
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["context"] == {"root": str(data_dir), "recursive": True}
    assert payload["counts"] == {"directories": 2, "files": 3}
    assert [Path(entry["directory"]) for entry in payload["captures"]] == [
        data_dir,
        data_dir / "nested",
    ]


def test_apply_is_not_recursive(tmp_path: Path, data_dir: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    runner.invoke(cli, ["--database", database, "save", str(data_dir), "-r"], env=env)
    nested = data_dir / "nested" / "c.txt"
    _clobber(nested)

    result = runner.invoke(cli, ["--database", database, "apply", str(data_dir)], env=env)

    assert result.exit_code == 0, result.output
    assert int(nested.stat().st_mtime) == CLOBBERED


def test_apply_unknown_directory_is_not_an_error(
    tmp_path: Path, data_dir: Path, database: str
) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["--database", database, "apply", str(data_dir)], env=env)

    assert result.exit_code == 0, result.output
    assert "never been saved" in result.output


def test_apply_json_reports_outcome(tmp_path: Path, data_dir: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    runner.invoke(cli, ["--database", database, "save", str(data_dir)], env=env)
    (data_dir / "b.txt").unlink()
    result = runner.invoke(
        cli, ["--database", database, "apply", str(data_dir), "--json"], env=env
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["outcome"] == "restored"
    assert payload["restored"] == ["a.txt"]
    assert payload["skipped"] == ["b.txt"]
    assert payload["failed"] == []


def test_missing_database_is_reported(tmp_path: Path, data_dir: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["save", str(data_dir), "--json"], env=env)

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "config_error"
    assert "No database path configured" in payload["error"]["message"]


def test_missing_directory_is_reported(tmp_path: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    missing = tmp_path / "missing"

    result = runner.invoke(cli, ["--database", database, "save", str(missing)], env=env)

    assert result.exit_code == 1
    assert "Save failed" in result.output
    assert "Directory does not exist" in result.output


def test_missing_directory_json_error_code(tmp_path: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli,
        ["--database", database, "apply", str(tmp_path / "missing"), "--json"],
        env=env,
    )

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "directory_not_found"
    assert payload["error"]["details"]["exception"] == "DirectoryNotFoundError"


def test_database_path_variable_locates_store(
    tmp_path: Path, data_dir: Path, database: str
) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    env["DATABASE_PATH"] = database

    result = runner.invoke(cli, ["save", str(data_dir)], env=env)

    assert result.exit_code == 0, result.output
    assert Path(database).exists()


def test_quiet_suppresses_summary(tmp_path: Path, data_dir: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli, ["--database", database, "save", str(data_dir), "--quiet"], env=env
    )

    assert result.exit_code == 0
    assert result.output == ""


def test_apply_keep_going_reports_failures(
    tmp_path: Path, data_dir: Path, database: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    runner.invoke(cli, ["--database", database, "save", str(data_dir)], env=env)

    def _deny(path: str, modified_at) -> None:
        raise PermissionError(13, "Permission denied", path)

    monkeypatch.setattr("dirstamp.snapshot.restore.set_modified_time", _deny)

    result = runner.invoke(
        cli, ["--database", database, "apply", str(data_dir), "--keep-going"], env=env
    )

    assert result.exit_code == 1
    assert "failed=2" in result.output
    assert "could not be restored" in result.output


def test_apply_fail_fast_reports_first_failure(
    tmp_path: Path, data_dir: Path, database: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    runner.invoke(cli, ["--database", database, "save", str(data_dir)], env=env)

    def _deny(path: str, modified_at) -> None:
        raise PermissionError(13, "Permission denied", path)

    monkeypatch.setattr("dirstamp.snapshot.restore.set_modified_time", _deny)

    result = runner.invoke(
        cli, ["--database", database, "apply", str(data_dir), "--json"], env=env
    )

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "timestamp_write_error"


def test_history_and_prune(tmp_path: Path, data_dir: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    for _ in range(3):
        runner.invoke(cli, ["--database", database, "save", str(data_dir)], env=env)

    listed = runner.invoke(
        cli, ["--database", database, "history", str(data_dir), "--json"], env=env
    )
    pruned = runner.invoke(
        cli, ["--database", database, "prune", str(data_dir), "--keep", "1"], env=env
    )
    relisted = runner.invoke(
        cli, ["--database", database, "history", str(data_dir), "--json"], env=env
    )

    assert listed.exit_code == 0, listed.output
    assert len(json.loads(listed.stdout)["captures"]) == 3
    assert pruned.exit_code == 0, pruned.output
    assert "removed=2" in pruned.output
    assert len(json.loads(relisted.stdout)["captures"]) == 1


def test_history_for_unknown_directory(tmp_path: Path, data_dir: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["--database", database, "history", str(data_dir)], env=env)

    assert result.exit_code == 0
    assert "No captures recorded" in result.output


def test_prune_rejects_zero(tmp_path: Path, data_dir: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli, ["--database", database, "prune", str(data_dir), "--keep", "0"], env=env
    )

    assert result.exit_code == 2


def test_trailing_slash_names_the_same_directory(
    tmp_path: Path, data_dir: Path, database: str
) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    runner.invoke(cli, ["--database", database, "save", f"{data_dir}/"], env=env)
    _clobber(data_dir / "a.txt")
    result = runner.invoke(
        cli, ["--database", database, "apply", f"{data_dir}/./", "--json"], env=env
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["directory"] == str(data_dir)
    assert payload["outcome"] == "restored"
    assert int((data_dir / "a.txt").stat().st_mtime) == ORIGINAL


def test_long_paths_keep_messages_on_one_line(tmp_path: Path, database: str) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    deep = tmp_path / ("a-rather-long-directory-name-" * 4) / "data"
    deep.mkdir(parents=True)

    result = runner.invoke(cli, ["--database", database, "apply", str(deep)], env=env)

    assert result.exit_code == 0, result.output
    assert f"{deep} has never been saved; nothing to restore." in result.output


def _unusable_database(tmp_path: Path) -> str:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    return str(blocker / "sub" / "stamps.db")


def test_history_reports_unusable_database_location(tmp_path: Path, data_dir: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli,
        ["--database", _unusable_database(tmp_path), "history", str(data_dir), "--json"],
        env=env,
    )

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "io_error"
    assert payload["error"]["details"]["exception"] == "NotADirectoryError"


def test_prune_reports_unusable_database_location(tmp_path: Path, data_dir: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli,
        ["--database", _unusable_database(tmp_path), "prune", str(data_dir), "--keep", "1"],
        env=env,
    )

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Prune failed" in result.output
