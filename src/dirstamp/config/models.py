"""Configuration models describing dirstamp settings."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class DirstampBaseModel(BaseModel):
    """Shared configuration for dirstamp Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class StoreSettings(DirstampBaseModel):
    """Metadata store location and connection options.

    Attributes:
        database_path: Path to the SQLite database file. Required to run any
            command that touches the store.
        busy_timeout_seconds: How long to wait on another process's lock.
        echo_sql: Whether to log every SQL statement.
    """

    database_path: Optional[str] = None
    busy_timeout_seconds: float = Field(default=30.0, ge=0)
    echo_sql: bool = False


class RestoreSettings(DirstampBaseModel):
    """Defaults for the `apply` command.

    Attributes:
        fail_fast: Abort on the first file that cannot be updated.
        newest_per_file: Apply every stored record instead of only those of
            the latest capture.
    """

    fail_fast: bool = True
    newest_per_file: bool = False


class LoggingSettings(DirstampBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


class CLIOptions(DirstampBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        history_limit: Default number of capture log entries shown by `history`.
    """

    quiet_default: bool = False
    history_limit: int = Field(default=10, ge=1)


class DirstampConfig(DirstampBaseModel):
    """Top-level configuration struct for dirstamp.

    Attributes:
        store: Metadata store settings.
        restore: Restore defaults.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    store: StoreSettings = Field(default_factory=StoreSettings)
    restore: RestoreSettings = Field(default_factory=RestoreSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "DirstampBaseModel",
    "StoreSettings",
    "RestoreSettings",
    "LoggingSettings",
    "CLIOptions",
    "DirstampConfig",
]
