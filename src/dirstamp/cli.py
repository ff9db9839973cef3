"""Command line interface for dirstamp."""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from dirstamp.config import (
    ConfigError,
    ConfigManager,
    DirstampConfig,
    resolve_with_precedence,
    set_dotted,
)
from dirstamp.snapshot import (
    CaptureResult,
    DirectoryNotFoundError,
    EncodingError,
    FileTimestampWriteError,
    RestoreAnchor,
    RestoreOutcome,
    SnapshotError,
    capture_tree,
    list_captures,
    prune_captures,
    restore_directory,
)
from dirstamp.store import MetadataStore, StoreError

console = Console(soft_wrap=True)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_ERROR_CODES: tuple[tuple[type[Exception], str], ...] = (
    (ConfigError, "config_error"),
    (DirectoryNotFoundError, "directory_not_found"),
    (EncodingError, "encoding_error"),
    (FileTimestampWriteError, "timestamp_write_error"),
    (StoreError, "store_error"),
    (SnapshotError, "snapshot_error"),
    (OSError, "io_error"),
)


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _handle_operation_error(exc: Exception, *, action: str, path: str, json_output: bool) -> None:
    """Translate a failed operation into a CLI error naming the action and path."""
    code = next(code for kind, code in _ERROR_CODES if isinstance(exc, kind))
    details: dict[str, Any] = {"exception": type(exc).__name__, "path": path}
    if isinstance(exc, StoreError):
        details["step"] = exc.step
    _handle_cli_error(
        f"{action} failed for {path}: {exc}",
        code=code,
        json_output=json_output,
        details=details,
        original=exc,
    )


def _emit_message(message: Any, *, mode: str, quiet: bool) -> None:
    """Print CLI output unless quiet mode suppresses it.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
    """

    if quiet and mode != "error":
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        root: Target path relevant to the command.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _configure_logging(level: str) -> None:
    """Route log records to stderr through Rich at the given level."""
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


def _load_config(ctx: click.Context) -> DirstampConfig:
    """Resolve configuration for a command, applying global CLI overrides."""
    overrides: dict[str, Any] = {}
    options = ctx.find_root().obj or {}
    if options.get("database"):
        overrides["store.database_path"] = options["database"]
    if options.get("log_level"):
        overrides["logging.level"] = options["log_level"]

    manager = ConfigManager()
    manager.ensure_exists()
    config = manager.load(cli_overrides=overrides)
    _configure_logging(config.logging.level)
    return config


def _open_store(config: DirstampConfig) -> MetadataStore:
    """Open and initialize the configured metadata store."""
    store = MetadataStore.from_config(config.store)
    try:
        store.initialize()
    except (StoreError, OSError):
        store.close()
        raise
    return store


def _quiet_enabled(ctx: click.Context, quiet: bool, config: DirstampConfig) -> bool:
    explicit = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    return quiet if explicit else config.cli.quiet_default


def _absolute(path: str) -> str:
    """Return the absolute spelling of ``path`` used as its store key.

    ``~`` is expanded; trailing slashes and ``.`` segments are dropped. Symlinks
    and ``..`` segments are kept as written.
    """
    return str(Path(path).expanduser().absolute())


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="dirstamp")
@click.option(
    "--database",
    type=click.Path(dir_okay=False, path_type=str),
    help="Metadata database file (overrides configuration and environment).",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging verbosity for this invocation.",
)
@click.pass_context
def cli(ctx: click.Context, database: str | None, log_level: str | None) -> None:
    """dirstamp saves file timestamps of a directory and restores them later.

    Returns:
        None: This function is invoked for its side effects.
    """
    load_dotenv(override=False)
    ctx.ensure_object(dict)
    ctx.obj["database"] = database
    ctx.obj["log_level"] = log_level.upper() if log_level else None


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=str))
@click.option("-r", "--recursive", is_flag=True, help="Include all subdirectories.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the captures.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def save(
    ctx: click.Context,
    path: str,
    recursive: bool,
    json_output: bool,
    quiet: bool,
) -> None:
    """Capture timestamps for the files directly inside PATH.

    Args:
        ctx: Click context used for parameter source inspection.
        path: Directory to capture.
        recursive: Whether to capture every subdirectory as well.
        json_output: If True, emit a JSON payload instead of text.
        quiet: When True, suppress non-error CLI output entirely.

    Raises:
        click.ClickException: If configuration, the store, or the capture fails.
    """

    root = _absolute(path)
    try:
        config = _load_config(ctx)
        quiet_enabled = _quiet_enabled(ctx, quiet, config) or json_output

        def _report(result: CaptureResult) -> None:
            _emit_message(
                f"[cyan]Captured {result.files_recorded} file(s) in {result.directory}.[/cyan]",
                mode="detail",
                quiet=quiet_enabled,
            )

        with _open_store(config) as store:
            results = capture_tree(store, root, recursive=recursive, on_capture=_report)
    except (ConfigError, SnapshotError, StoreError, OSError) as exc:
        _handle_operation_error(exc, action="Save", path=root, json_output=json_output)
        return

    counts = {
        "directories": len(results),
        "files": sum(result.files_recorded for result in results),
    }
    if json_output:
        console.print_json(
            data={
                "context": {"root": root, "recursive": recursive},
                "captures": [result.model_dump(mode="json") for result in results],
                "counts": counts,
            }
        )
        return

    _emit_message(_format_summary_line("Save", root, counts), mode="summary", quiet=quiet_enabled)


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=str))
@click.option(
    "--fail-fast/--keep-going",
    default=True,
    help="Abort on the first file that cannot be updated (default) or continue.",
)
@click.option(
    "--newest-per-file",
    is_flag=True,
    help="Apply every stored record, not only those written by the latest capture.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the restore.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def apply(
    ctx: click.Context,
    path: str,
    fail_fast: bool,
    newest_per_file: bool,
    json_output: bool,
    quiet: bool,
) -> None:
    """Restore the most recently saved modification times in PATH.

    Args:
        ctx: Click context used for parameter source inspection.
        path: Directory to restore.
        fail_fast: Abort on the first write failure when True.
        newest_per_file: Select records per file instead of by latest capture.
        json_output: If True, emit a JSON payload instead of text.
        quiet: When True, suppress non-error CLI output entirely.

    Raises:
        click.ClickException: If configuration, the store, or a write fails.
    """

    root = _absolute(path)
    try:
        config = _load_config(ctx)
        quiet_enabled = _quiet_enabled(ctx, quiet, config) or json_output

        if ctx.get_parameter_source("fail_fast") != ParameterSource.COMMANDLINE:
            fail_fast = config.restore.fail_fast
        if ctx.get_parameter_source("newest_per_file") != ParameterSource.COMMANDLINE:
            newest_per_file = config.restore.newest_per_file
        anchor = RestoreAnchor.NEWEST_PER_FILE if newest_per_file else RestoreAnchor.LATEST_CAPTURE

        with _open_store(config) as store:
            result = restore_directory(store, root, fail_fast=fail_fast, anchor=anchor)
    except (ConfigError, SnapshotError, StoreError, OSError) as exc:
        _handle_operation_error(exc, action="Apply", path=root, json_output=json_output)
        return

    if json_output:
        console.print_json(data=result.model_dump(mode="json"))
        if result.failed:
            raise SystemExit(1)
        return

    if result.outcome is RestoreOutcome.UNKNOWN_DIRECTORY:
        _emit_message(
            f"[yellow]{root} has never been saved; nothing to restore.[/yellow]",
            mode="warning",
            quiet=quiet_enabled,
        )
        return
    if result.outcome is RestoreOutcome.NO_CAPTURE:
        _emit_message(
            f"[yellow]No saved capture found for {root}; nothing to restore.[/yellow]",
            mode="warning",
            quiet=quiet_enabled,
        )
        return

    for failure in result.failed:
        _emit_message(f"  - {failure.name}: {failure.reason}", mode="error", quiet=quiet_enabled)

    summary = {
        "restored": len(result.restored),
        "skipped": len(result.skipped),
        "failed": len(result.failed),
    }
    _emit_message(_format_summary_line("Apply", root, summary), mode="summary", quiet=quiet_enabled)
    if result.failed:
        raise click.ClickException(f"{len(result.failed)} file(s) in {root} could not be restored.")


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=str))
@click.option("--limit", type=click.IntRange(min=1), help="Maximum number of entries to show.")
@click.option("--json", "json_output", is_flag=True, help="Emit the capture log as JSON.")
@click.pass_context
def history(ctx: click.Context, path: str, limit: int | None, json_output: bool) -> None:
    """List the saved captures of PATH, newest first."""

    root = _absolute(path)
    try:
        config = _load_config(ctx)
        with _open_store(config) as store:
            entries = list_captures(store, root, limit=limit or config.cli.history_limit)
    except (ConfigError, SnapshotError, StoreError, OSError) as exc:
        _handle_operation_error(exc, action="History", path=root, json_output=json_output)
        return

    if json_output:
        console.print_json(
            data={
                "context": {"root": root},
                "captures": [entry.model_dump(mode="json") for entry in entries],
            }
        )
        return

    if not entries:
        console.print(f"[yellow]No captures recorded for {root}.[/yellow]")
        return

    table = Table(title=f"Captures for {root}")
    table.add_column("Captured at", style="cyan")
    table.add_column("Action")
    table.add_column("Files", justify="right", style="green")
    for entry in entries:
        table.add_row(entry.captured_at.isoformat(), entry.action_kind, str(entry.files))
    console.print(table)


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=str))
@click.option(
    "--keep",
    type=click.IntRange(min=1),
    required=True,
    help="Number of most recent captures to keep.",
)
@click.pass_context
def prune(ctx: click.Context, path: str, keep: int) -> None:
    """Delete older capture log entries of PATH, keeping the newest KEEP."""

    root = _absolute(path)
    try:
        config = _load_config(ctx)
        with _open_store(config) as store:
            removed = prune_captures(store, root, keep=keep)
    except (ConfigError, SnapshotError, StoreError, OSError) as exc:
        _handle_operation_error(exc, action="Prune", path=root, json_output=False)
        return

    console.print(_format_summary_line("Prune", root, {"removed": removed, "kept": keep}))


@cli.group()
def config() -> None:
    """Manage dirstamp configuration files and overrides.

    Returns:
        None: This function is invoked for its side effects.
    """


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = _settings_lines(manager.read_text())
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException(
            "KEY must specify a dotted path such as 'store.database_path'."
        )

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        set_dotted(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=DirstampConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = _settings_lines(manager.read_text())

    if before == after:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    diff = difflib.unified_diff(
        before,
        after,
        fromfile="config.yaml (before)",
        tofile="config.yaml (after)",
        lineterm="",
    )
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def _settings_lines(text: str) -> list[str]:
    """Return config file lines without the comment header."""
    return [line for line in text.splitlines() if not line.startswith("#")]


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=DirstampConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point.

    Returns:
        None: This function is invoked for its side effects.
    """
    cli()


if __name__ == "__main__":
    main()
